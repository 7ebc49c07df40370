# SPDX-License-Identifier: MIT
"""Generic key-value caching for the cache system."""

import sqlite3

from ..constants import MAX_CACHE_KEY_LENGTH, MAX_CACHE_TTL
from ..logging_config import get_detail_logger
from ..store.connection_utils import get_configured_connection
from .base import CacheBase


detail_logger = get_detail_logger()


def _validate_key(key: str) -> None:
    if not key or not key.strip():
        raise ValueError("Cache key cannot be empty")
    if len(key) > MAX_CACHE_KEY_LENGTH:
        raise ValueError(
            f"Cache key exceeds maximum length ({MAX_CACHE_KEY_LENGTH} characters)"
        )


class KeyValueCache(CacheBase):
    """Manages generic key-value caching with TTL.

    Used to memoise raw upstream payloads so several source adapters can
    share one response while it is fresh.
    """

    def set_cached_value(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a key-value pair in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time-to-live in seconds

        Raises:
            ValueError: If key is empty, too long, or TTL is invalid
            CacheError: If the backend failed
        """
        _validate_key(key)

        if ttl_seconds <= 0:
            raise ValueError("TTL must be positive")
        if ttl_seconds > MAX_CACHE_TTL:
            raise ValueError(f"TTL exceeds maximum allowed ({MAX_CACHE_TTL} seconds)")

        now = self.clock()
        detail_logger.debug(f"Storing cache entry: key='{key}', ttl_seconds={ttl_seconds}")

        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO key_value_cache (key, value, created_at, expires_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (key, value, now, now + ttl_seconds),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise self._cache_error("set_cached_value", e, key=key) from e

        detail_logger.debug(f"Successfully stored cache entry for key '{key}'")

    def get_cached_value(self, key: str) -> str | None:
        """Get a cached value by key.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found or expired

        Raises:
            ValueError: If key is empty or too long
            CacheError: If the backend failed
        """
        _validate_key(key)

        detail_logger.debug(f"Looking up cache entry for key '{key}'")

        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                row = conn.execute(
                    "SELECT value FROM key_value_cache WHERE key = ? AND expires_at > ?",
                    (key, self.clock()),
                ).fetchone()
        except sqlite3.Error as e:
            raise self._cache_error("get_cached_value", e, key=key) from e

        result = row[0] if row else None
        if result is not None:
            detail_logger.debug(f"Cache hit for key '{key}'")
        else:
            detail_logger.debug(f"Cache miss for key '{key}' (not found or expired)")
        return result

    def delete_cached_value(self, key: str) -> None:
        _validate_key(key)
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                conn.execute("DELETE FROM key_value_cache WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            raise self._cache_error("delete_cached_value", e, key=key) from e

    def cleanup_expired(self) -> int:
        """Remove expired entries and return how many were deleted."""
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                deleted = conn.execute(
                    "DELETE FROM key_value_cache WHERE expires_at <= ?",
                    (self.clock(),),
                ).rowcount
                conn.commit()
        except sqlite3.Error as e:
            raise self._cache_error("cleanup_expired", e) from e

        detail_logger.debug(f"Removed {deleted} expired key-value entries")
        return deleted
