# SPDX-License-Identifier: MIT
"""Per-unit sync state and the history of sync attempts."""

import sqlite3
from datetime import datetime
from typing import Any

from ..enums import StoreErrorCode, UpdateStatus
from ..errors import DataError, StoreError
from ..logging_config import get_detail_logger
from ..models import SyncResult
from .base import SqliteBase
from .connection_utils import get_configured_connection, is_connection_error


detail_logger = get_detail_logger()


class SyncStateManager(SqliteBase):
    """Tracks which units are synced, failed, or need a re-sync."""

    config_section = "store"

    def _execute(self, operation: str, sql: str, params: tuple[Any, ...]) -> None:
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                conn.execute(sql, params)
                conn.commit()
        except sqlite3.Error as e:
            code = (
                StoreErrorCode.CONNECTION
                if is_connection_error(e)
                else StoreErrorCode.QUERY
            )
            raise StoreError(
                f"Sync state {operation} failed: {e}",
                code,
                cause=e,
                context={"operation": operation},
            ) from e

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        try:
            with get_configured_connection(self.db_path, self.timeout) as conn:
                conn.row_factory = sqlite3.Row
                return [dict(row) for row in conn.execute(sql, params).fetchall()]
        except sqlite3.Error as e:
            code = (
                StoreErrorCode.CONNECTION
                if is_connection_error(e)
                else StoreErrorCode.QUERY
            )
            raise StoreError(f"Sync state query failed: {e}", code, cause=e) from e

    def mark_needs_resync(self, domain: str, unit_key: str) -> None:
        """Flag the unit as possibly inconsistent between store and cache.

        Set before the store is replaced and cleared only by
        :meth:`mark_success`, so an interrupted sync stays visible.
        """
        self._execute(
            "mark_needs_resync",
            """
            INSERT INTO sync_state (domain, unit_key, status, needs_resync, last_attempt_at)
            VALUES (?, ?, ?, TRUE, CURRENT_TIMESTAMP)
            ON CONFLICT (domain, unit_key) DO UPDATE SET
                status = excluded.status,
                needs_resync = TRUE,
                last_attempt_at = excluded.last_attempt_at
            """,
            (domain, unit_key, UpdateStatus.IN_PROGRESS.value),
        )

    def mark_success(self, result: SyncResult) -> None:
        """Clear the re-sync flag and log a successful sync."""
        self._execute(
            "mark_success",
            """
            INSERT INTO sync_state
                (domain, unit_key, status, needs_resync, records,
                 last_attempt_at, last_success_at, error_code, error_message)
            VALUES (?, ?, ?, FALSE, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, NULL, NULL)
            ON CONFLICT (domain, unit_key) DO UPDATE SET
                status = excluded.status,
                needs_resync = FALSE,
                records = excluded.records,
                last_success_at = excluded.last_success_at,
                error_code = NULL,
                error_message = NULL
            """,
            (
                result.domain,
                result.unit_key,
                UpdateStatus.SUCCESS.value,
                result.records_stored,
            ),
        )
        self.log_attempt(
            result.domain,
            result.unit_key,
            UpdateStatus.SUCCESS,
            records_stored=result.records_stored,
            records_projected=result.records_projected,
            records_dropped=result.records_dropped,
        )

    def mark_failed(
        self, domain: str, unit_key: str, error: DataError, step: str | None
    ) -> None:
        """Record a failed sync; the re-sync flag is left as it was."""
        self._execute(
            "mark_failed",
            """
            INSERT INTO sync_state
                (domain, unit_key, status, last_attempt_at, error_code, error_message)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP, ?, ?)
            ON CONFLICT (domain, unit_key) DO UPDATE SET
                status = excluded.status,
                error_code = excluded.error_code,
                error_message = excluded.error_message
            """,
            (domain, unit_key, UpdateStatus.FAILED.value, error.code, error.message),
        )
        self.log_attempt(
            domain,
            unit_key,
            UpdateStatus.FAILED,
            step=step,
            error_code=error.code,
            error_message=error.message,
        )

    def log_attempt(
        self,
        domain: str,
        unit_key: str,
        status: UpdateStatus,
        step: str | None = None,
        records_stored: int = 0,
        records_projected: int = 0,
        records_dropped: int = 0,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> None:
        """Append an entry to the sync history.

        Args:
            domain: Entity domain that was synced
            unit_key: Unit that was synced
            status: Outcome of the attempt
            step: Step that failed, if any
            records_stored: Number of records written to the store
            records_projected: Number of projections cached
            records_dropped: Number of records dropped during enrichment
            error_code: Error code if the attempt failed
            error_message: Error message if the attempt failed
        """
        detail_logger.debug(
            f"Logging sync of {domain}/{unit_key}: status={status.value}, step={step}, "
            f"stored={records_stored}, projected={records_projected}, dropped={records_dropped}"
        )
        self._execute(
            "log_attempt",
            """
            INSERT INTO sync_log
                (domain, unit_key, status, step, records_stored, records_projected,
                 records_dropped, error_code, error_message)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                domain,
                unit_key,
                status.value,
                step,
                records_stored,
                records_projected,
                records_dropped,
                error_code,
                error_message,
            ),
        )

    def get_state(self, domain: str, unit_key: str) -> dict[str, Any] | None:
        rows = self._query(
            "SELECT * FROM sync_state WHERE domain = ? AND unit_key = ?",
            (domain, unit_key),
        )
        if not rows:
            return None
        state = rows[0]
        state["needs_resync"] = bool(state["needs_resync"])
        return state

    def list_states(self) -> list[dict[str, Any]]:
        """Return the state of every unit ever synced."""
        states = self._query("SELECT * FROM sync_state ORDER BY domain, unit_key")
        for state in states:
            state["needs_resync"] = bool(state["needs_resync"])
        return states

    def units_needing_resync(self) -> list[tuple[str, str]]:
        rows = self._query(
            """
            SELECT domain, unit_key FROM sync_state
            WHERE needs_resync = TRUE
            ORDER BY domain, unit_key
            """
        )
        return [(row["domain"], row["unit_key"]) for row in rows]

    def get_last_success(self, domain: str, unit_key: str) -> datetime | None:
        """Get the last successful sync time for a unit.

        Returns:
            Datetime of the last successful sync or None if never synced
        """
        rows = self._query(
            """
            SELECT MAX(completed_at) AS completed_at FROM sync_log
            WHERE domain = ? AND unit_key = ? AND status = ?
            """,
            (domain, unit_key, UpdateStatus.SUCCESS.value),
        )
        if rows and rows[0]["completed_at"]:
            return datetime.fromisoformat(rows[0]["completed_at"])
        return None

    def recent_attempts(self, limit: int = 20) -> list[dict[str, Any]]:
        return self._query(
            "SELECT * FROM sync_log ORDER BY id DESC LIMIT ?",
            (limit,),
        )
