# SPDX-License-Identifier: MIT
"""Centralized SQLite connection configuration utilities.

Every store and cache access goes through `get_configured_connection()` so
all connections share WAL mode (readers see either the old or the new state
of a unit while a replace is running), a bounded busy timeout and the same
performance settings.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..logging_config import get_detail_logger


detail_logger = get_detail_logger()

# sqlite3.OperationalError messages that mean the backend is unreachable or
# busy rather than that the statement itself is wrong
_CONNECTION_MARKERS = (
    "database is locked",
    "database is busy",
    "unable to open database",
    "disk i/o error",
    "no such table",
)


def configure_sqlite_connection(
    conn: sqlite3.Connection,
    enable_wal: bool = True,
) -> None:
    """Configure SQLite connection with performance optimizations and WAL mode.

    Args:
        conn: SQLite database connection to configure
        enable_wal: Whether to enable WAL mode (default: True)
    """
    if enable_wal:
        conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA cache_size = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")


@contextmanager
def get_configured_connection(
    db_path: str | Path,
    timeout: float = 30.0,
    enable_wal: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Get a configured SQLite connection with proper timeout and settings.

    Args:
        db_path: Path to the SQLite database file
        timeout: Seconds to wait on a locked database before failing
        enable_wal: Whether to enable WAL mode (default: True)

    Yields:
        Configured SQLite connection

    Example:
        ```python
        with get_configured_connection(repository.db_path) as conn:
            rows = conn.execute("SELECT payload FROM records").fetchall()
        ```
    """
    detail_logger.debug(
        f"Opening SQLite connection to {db_path} with {timeout}s timeout"
    )
    conn = sqlite3.connect(str(db_path), timeout=timeout)

    try:
        configure_sqlite_connection(conn, enable_wal=enable_wal)
        yield conn
    finally:
        conn.close()
        detail_logger.debug(f"Closed SQLite connection to {db_path}")


def is_connection_error(error: sqlite3.Error) -> bool:
    """Whether a sqlite error means the backend was unavailable (retryable)."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return any(marker in message for marker in _CONNECTION_MARKERS)
