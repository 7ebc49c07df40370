# SPDX-License-Identifier: MIT
"""Upstream source adapters and the HTTP client they share."""

from .base import SourceAdapter
from .fpl import BootstrapLoader, EventSource, FixtureSource, TeamSource
from .http_client import UpstreamClient


__all__ = [
    "BootstrapLoader",
    "EventSource",
    "FixtureSource",
    "SourceAdapter",
    "TeamSource",
    "UpstreamClient",
]
