# SPDX-License-Identifier: MIT
"""Persistent store for canonical records and sync state."""

from .repository import Repository
from .schema import init_database
from .sync_state import SyncStateManager


__all__ = ["Repository", "SyncStateManager", "init_database"]
