# SPDX-License-Identifier: MIT
"""Base class for sqlite-backed store and cache components."""

import sqlite3
from pathlib import Path

from ..logging_config import get_detail_logger, get_status_logger
from .schema import init_database


detail_logger = get_detail_logger()
status_logger = get_status_logger()


class SqliteBase:
    """Resolves the database path from config and initialises the schema."""

    # Config section ("store" or "cache") holding db_path and timeout
    config_section = "store"

    def __init__(self, db_path: Path | None = None, timeout: float | None = None):
        """Initialize with a database path.

        Args:
            db_path: Path to the SQLite database file. If None, gets from config.
            timeout: Connection timeout in seconds. If None, gets from config.

        Raises:
            RuntimeError: If config structure is invalid or database initialization fails.
        """
        if db_path is None or timeout is None:
            # Local import to avoid circular dependency
            from ..config import get_config_manager

            try:
                section = getattr(
                    get_config_manager().load_config(), self.config_section
                )
            except AttributeError as e:
                error_msg = f"Invalid config structure: missing '{self.config_section}' section"
                status_logger.error(error_msg)
                detail_logger.exception(f"{error_msg}: {e}")
                raise RuntimeError(error_msg) from e

            if timeout is None:
                timeout = float(section.timeout)
            if db_path is None:
                db_path = Path(section.db_path)
                detail_logger.debug(f"Using database path from config: {db_path}")

        db_path = Path(db_path)
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            error_msg = f"Failed to create database directory: {db_path.parent}"
            status_logger.error(error_msg)
            detail_logger.exception(f"{error_msg}: {e}")
            raise RuntimeError(error_msg) from e

        try:
            init_database(db_path)
            detail_logger.debug(f"Database schema initialized: {db_path}")
        except (sqlite3.Error, OSError) as e:
            error_msg = f"Failed to initialize database at {db_path}"
            status_logger.error(error_msg)
            detail_logger.exception(f"{error_msg}: {e}")
            raise RuntimeError(error_msg) from e

        self.db_path = db_path
        self.timeout = timeout
