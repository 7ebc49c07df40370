# SPDX-License-Identifier: MIT
"""Base utilities for cache components."""

import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..enums import CacheErrorCode
from ..errors import CacheError
from ..store.base import SqliteBase
from ..store.connection_utils import is_connection_error


Clock = Callable[[], float]


class CacheBase(SqliteBase):
    """Base class for cache components with shared utilities.

    Expiry is stored as epoch seconds and compared against ``clock()``
    rather than the database clock, so TTL behaviour follows an injected
    clock in tests.
    """

    config_section = "cache"

    def __init__(
        self,
        db_path: Path | None = None,
        timeout: float | None = None,
        clock: Clock = time.time,
    ):
        super().__init__(db_path, timeout)
        self.clock = clock

    @staticmethod
    def _cache_error(
        operation: str, error: sqlite3.Error, **context: Any
    ) -> CacheError:
        code = (
            CacheErrorCode.CONNECTION
            if is_connection_error(error)
            else CacheErrorCode.OPERATION
        )
        return CacheError(
            f"Cache {operation} failed: {error}",
            code,
            cause=error,
            context={"operation": operation, **context},
        )
