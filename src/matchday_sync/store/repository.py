# SPDX-License-Identifier: MIT
"""Canonical record store, scoped by domain and unit key."""

import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..enums import StoreErrorCode
from ..errors import StoreError
from ..logging_config import get_detail_logger
from ..models import Record
from .base import SqliteBase
from .connection_utils import get_configured_connection, is_connection_error


detail_logger = get_detail_logger()

R = TypeVar("R", bound=Record)


def _store_error(
    operation: str, error: sqlite3.Error, domain: str, unit_key: str | None
) -> StoreError:
    if isinstance(error, sqlite3.IntegrityError):
        code = StoreErrorCode.CONSTRAINT
    elif is_connection_error(error):
        code = StoreErrorCode.CONNECTION
    else:
        code = StoreErrorCode.QUERY
    return StoreError(
        f"Store {operation} failed for {domain}/{unit_key}: {error}",
        code,
        cause=error,
        context={"domain": domain, "unit_key": unit_key, "operation": operation},
    )


class Repository(SqliteBase, Generic[R]):
    """Persistent records of one domain.

    Rows are keyed by ``(domain, unit_key, record_id)`` and keep the upstream
    order through a ``position`` column. ``replace_all`` deletes and inserts
    in a single transaction, so a reader never observes a half-replaced unit.
    """

    config_section = "store"

    def __init__(
        self,
        domain: str,
        model: type[R],
        db_path: Path | None = None,
        timeout: float | None = None,
    ):
        super().__init__(db_path, timeout)
        self.domain = domain
        self.model = model

    def _decode(self, payload: str, unit_key: str) -> R:
        try:
            return self.model.model_validate_json(payload)
        except PydanticValidationError as e:
            raise StoreError(
                f"Stored {self.domain} record could not be decoded",
                StoreErrorCode.TRANSFORMATION,
                cause=e,
                context={"domain": self.domain, "unit_key": unit_key},
            ) from e

    def find_all(self, unit_key: str) -> list[R]:
        """Return every record stored for ``unit_key`` in upstream order."""
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                rows = conn.execute(
                    """
                    SELECT payload FROM records
                    WHERE domain = ? AND unit_key = ?
                    ORDER BY position
                    """,
                    (self.domain, unit_key),
                ).fetchall()
        except sqlite3.Error as e:
            raise _store_error("find_all", e, self.domain, unit_key) from e

        detail_logger.debug(
            f"Store read {len(rows)} {self.domain} records for unit {unit_key}"
        )
        return [self._decode(row[0], unit_key) for row in rows]

    def find_one(self, unit_key: str, record_id: int) -> R | None:
        """Return one record by natural id, or None if it is not stored."""
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                row = conn.execute(
                    """
                    SELECT payload FROM records
                    WHERE domain = ? AND unit_key = ? AND record_id = ?
                    """,
                    (self.domain, unit_key, record_id),
                ).fetchone()
        except sqlite3.Error as e:
            raise _store_error("find_one", e, self.domain, unit_key) from e

        return self._decode(row[0], unit_key) if row else None

    def replace_all(self, unit_key: str, records: Sequence[R]) -> int:
        """Atomically replace the full record set of ``unit_key``.

        Args:
            unit_key: Scope being replaced
            records: The complete new set; an empty sequence clears the unit

        Returns:
            Number of records stored

        Raises:
            StoreError: If the transaction failed; the previous set is kept
        """
        rows = [
            (self.domain, unit_key, record.id, position, record.model_dump_json())
            for position, record in enumerate(records)
        ]

        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                try:
                    # Take the write lock up front so two writers cannot interleave
                    conn.execute("BEGIN IMMEDIATE")
                    deleted = conn.execute(
                        "DELETE FROM records WHERE domain = ? AND unit_key = ?",
                        (self.domain, unit_key),
                    ).rowcount
                    conn.executemany(
                        """
                        INSERT INTO records (domain, unit_key, record_id, position, payload)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        rows,
                    )
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
        except sqlite3.Error as e:
            raise _store_error("replace_all", e, self.domain, unit_key) from e

        detail_logger.debug(
            f"Replaced {deleted} {self.domain} records with {len(rows)} for unit {unit_key}"
        )
        return len(rows)

    def delete_all(self, unit_key: str) -> int:
        """Delete every record of ``unit_key`` and return how many were removed."""
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                deleted = conn.execute(
                    "DELETE FROM records WHERE domain = ? AND unit_key = ?",
                    (self.domain, unit_key),
                ).rowcount
                conn.commit()
        except sqlite3.Error as e:
            raise _store_error("delete_all", e, self.domain, unit_key) from e

        detail_logger.debug(f"Deleted {deleted} {self.domain} records for unit {unit_key}")
        return deleted

    def count(self, unit_key: str) -> int:
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                row = conn.execute(
                    "SELECT COUNT(*) FROM records WHERE domain = ? AND unit_key = ?",
                    (self.domain, unit_key),
                ).fetchone()
        except sqlite3.Error as e:
            raise _store_error("count", e, self.domain, unit_key) from e
        return int(row[0])
