# SPDX-License-Identifier: MIT
"""Synchronization engine: entity definitions, write path and read path."""

from .coordinator import SyncCoordinator
from .definitions import AggregateDefinition, EntityDefinition, EntityRegistry
from .reader import ProjectionReader


__all__ = [
    "AggregateDefinition",
    "EntityDefinition",
    "EntityRegistry",
    "ProjectionReader",
    "SyncCoordinator",
]
