# SPDX-License-Identifier: MIT
"""Projection cache: fast-read collections keyed by domain and unit key."""

import json
import sqlite3
import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from ..constants import GROUP_KEY_SEPARATOR
from ..enums import CacheErrorCode
from ..errors import CacheError
from ..logging_config import get_detail_logger
from ..store.connection_utils import get_configured_connection
from .base import CacheBase, Clock


detail_logger = get_detail_logger()

Member = BaseModel | Mapping[str, Any]


def group_key(unit_key: str, group: str | int) -> str:
    """Cache key of one grouped collection under a unit."""
    return f"{unit_key}{GROUP_KEY_SEPARATOR}{group}"


class ProjectionCache(CacheBase):
    """Stores enriched projections as one row per collection member.

    A collection is all-or-nothing: if any member is past its TTL the whole
    collection reads as a miss, and ``set_all`` swaps the full member set in
    one transaction.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        ttl_seconds: int | None = None,
        timeout: float | None = None,
        clock: Clock = time.time,
    ):
        super().__init__(db_path, timeout, clock)
        if ttl_seconds is None:
            from ..config import get_config_manager

            ttl_seconds = get_config_manager().load_config().cache.ttl_seconds
        if ttl_seconds <= 0:
            raise ValueError("TTL must be positive")
        self.ttl_seconds = ttl_seconds

    def _serialize(
        self, domain: str, unit_key: str, records: Sequence[Member]
    ) -> list[tuple[str, int, str]]:
        rows = []
        try:
            for position, record in enumerate(records):
                data = (
                    record.model_dump(mode="json")
                    if isinstance(record, BaseModel)
                    else dict(record)
                )
                rows.append((str(data["id"]), position, json.dumps(data)))
        except (KeyError, TypeError, ValueError) as e:
            raise CacheError(
                f"Could not serialize {domain} projection for {unit_key}",
                CacheErrorCode.SERIALIZATION,
                cause=e,
                context={"domain": domain, "unit_key": unit_key},
            ) from e
        return rows

    @staticmethod
    def _deserialize(domain: str, unit_key: str, payload: str) -> dict[str, Any]:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise CacheError(
                f"Corrupt {domain} cache entry for {unit_key}",
                CacheErrorCode.DESERIALIZATION,
                cause=e,
                context={"domain": domain, "unit_key": unit_key},
            ) from e
        if not isinstance(data, dict):
            raise CacheError(
                f"Corrupt {domain} cache entry for {unit_key}",
                CacheErrorCode.DESERIALIZATION,
                context={"domain": domain, "unit_key": unit_key},
            )
        return data

    def get_all(self, domain: str, unit_key: str) -> list[dict[str, Any]]:
        """Return the cached collection, or an empty list on a miss.

        Raises:
            CacheError: If the backend failed or an entry is corrupt
        """
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                rows = conn.execute(
                    """
                    SELECT payload, expires_at FROM projection_cache
                    WHERE domain = ? AND unit_key = ?
                    ORDER BY position
                    """,
                    (domain, unit_key),
                ).fetchall()
        except sqlite3.Error as e:
            raise self._cache_error("get_all", e, domain=domain, unit_key=unit_key) from e

        if not rows:
            detail_logger.debug(f"Cache miss for {domain}/{unit_key}")
            return []

        now = self.clock()
        if any(expires_at <= now for _, expires_at in rows):
            detail_logger.debug(f"Cache entry for {domain}/{unit_key} has expired")
            return []

        detail_logger.debug(f"Cache hit for {domain}/{unit_key} ({len(rows)} members)")
        return [self._deserialize(domain, unit_key, payload) for payload, _ in rows]

    def get_one(
        self, domain: str, unit_key: str, member_id: str | int
    ) -> dict[str, Any] | None:
        """Return one fresh member of a collection, or None."""
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                row = conn.execute(
                    """
                    SELECT payload FROM projection_cache
                    WHERE domain = ? AND unit_key = ? AND member_id = ? AND expires_at > ?
                    """,
                    (domain, unit_key, str(member_id), self.clock()),
                ).fetchone()
        except sqlite3.Error as e:
            raise self._cache_error("get_one", e, domain=domain, unit_key=unit_key) from e

        return self._deserialize(domain, unit_key, row[0]) if row else None

    def set_all(self, domain: str, unit_key: str, records: Sequence[Member]) -> int:
        """Replace the whole collection with ``records`` and a fresh expiry.

        Members absent from ``records`` disappear; read order follows the
        order given here.

        Returns:
            Number of members stored
        """
        rows = self._serialize(domain, unit_key, records)
        now = self.clock()
        expires_at = now + self.ttl_seconds

        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                try:
                    conn.execute("BEGIN IMMEDIATE")
                    conn.execute(
                        "DELETE FROM projection_cache WHERE domain = ? AND unit_key = ?",
                        (domain, unit_key),
                    )
                    conn.executemany(
                        """
                        INSERT INTO projection_cache
                            (domain, unit_key, member_id, position, payload, created_at, expires_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (domain, unit_key, member_id, position, payload, now, expires_at)
                            for member_id, position, payload in rows
                        ],
                    )
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
        except sqlite3.Error as e:
            raise self._cache_error("set_all", e, domain=domain, unit_key=unit_key) from e

        detail_logger.debug(f"Cached {len(rows)} members for {domain}/{unit_key}")
        return len(rows)

    def set_groups(
        self,
        domain: str,
        unit_key: str,
        groups: Mapping[str | int, Sequence[Member]],
    ) -> int:
        """Atomically replace every grouped collection under ``unit_key``.

        Groups present before but missing from ``groups`` are removed.

        Returns:
            Number of groups stored
        """
        serialized = {
            group_key(unit_key, group): self._serialize(domain, unit_key, members)
            for group, members in groups.items()
        }
        prefix = group_key(unit_key, "")
        now = self.clock()
        expires_at = now + self.ttl_seconds

        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                try:
                    conn.execute("BEGIN IMMEDIATE")
                    conn.execute(
                        """
                        DELETE FROM projection_cache
                        WHERE domain = ? AND substr(unit_key, 1, ?) = ?
                        """,
                        (domain, len(prefix), prefix),
                    )
                    for key, rows in serialized.items():
                        conn.executemany(
                            """
                            INSERT INTO projection_cache
                                (domain, unit_key, member_id, position, payload, created_at, expires_at)
                            VALUES (?, ?, ?, ?, ?, ?, ?)
                            """,
                            [
                                (domain, key, member_id, position, payload, now, expires_at)
                                for member_id, position, payload in rows
                            ],
                        )
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
        except sqlite3.Error as e:
            raise self._cache_error(
                "set_groups", e, domain=domain, unit_key=unit_key
            ) from e

        detail_logger.debug(
            f"Cached {len(serialized)} {domain} groups under unit {unit_key}"
        )
        return len(serialized)

    def get_group(
        self, domain: str, unit_key: str, group: str | int
    ) -> list[dict[str, Any]]:
        return self.get_all(domain, group_key(unit_key, group))

    def invalidate(self, domain: str, unit_key: str) -> int:
        """Drop a collection and every group stored under it."""
        prefix = group_key(unit_key, "")
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                deleted = conn.execute(
                    """
                    DELETE FROM projection_cache
                    WHERE domain = ? AND (unit_key = ? OR substr(unit_key, 1, ?) = ?)
                    """,
                    (domain, unit_key, len(prefix), prefix),
                ).rowcount
                conn.commit()
        except sqlite3.Error as e:
            raise self._cache_error(
                "invalidate", e, domain=domain, unit_key=unit_key
            ) from e

        detail_logger.debug(f"Invalidated {deleted} cache rows for {domain}/{unit_key}")
        return deleted

    def cleanup_expired(self) -> int:
        """Remove expired members and return how many were deleted."""
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                deleted = conn.execute(
                    "DELETE FROM projection_cache WHERE expires_at <= ?",
                    (self.clock(),),
                ).rowcount
                conn.commit()
        except sqlite3.Error as e:
            raise self._cache_error("cleanup_expired", e) from e

        detail_logger.debug(f"Removed {deleted} expired projection cache rows")
        return deleted
