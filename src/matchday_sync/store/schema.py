# SPDX-License-Identifier: MIT
"""Database schema initialization for the store and the cache."""

import sqlite3
from pathlib import Path

from ..enums import UpdateStatus


def init_database(db_path: Path) -> None:
    """Initialize the database schema.

    The same schema serves both the record store and the projection cache;
    they are normally separate files so the cache can be dropped at any time.

    Args:
        db_path: Path to the SQLite database file
    """
    status_values = ", ".join(f"'{s.value}'" for s in UpdateStatus)

    with sqlite3.connect(db_path) as conn:
        conn.executescript(
            f"""
            -- Canonical records, fully replaced per (domain, unit_key) on each sync
            CREATE TABLE IF NOT EXISTS records (
                domain TEXT NOT NULL,
                unit_key TEXT NOT NULL,
                record_id INTEGER NOT NULL,
                position INTEGER NOT NULL,
                payload TEXT NOT NULL,
                synced_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (domain, unit_key, record_id)
            );

            -- Latest sync state per unit; needs_resync is set before a replace
            -- starts and cleared only after the projection is repopulated
            CREATE TABLE IF NOT EXISTS sync_state (
                domain TEXT NOT NULL,
                unit_key TEXT NOT NULL,
                status TEXT NOT NULL,
                needs_resync BOOLEAN NOT NULL DEFAULT FALSE,
                records INTEGER NOT NULL DEFAULT 0,
                last_attempt_at TIMESTAMP,
                last_success_at TIMESTAMP,
                error_code TEXT,
                error_message TEXT,
                PRIMARY KEY (domain, unit_key),
                CHECK (status IN ({status_values}))
            );

            -- Append-only history of sync attempts
            CREATE TABLE IF NOT EXISTS sync_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                domain TEXT NOT NULL,
                unit_key TEXT NOT NULL,
                status TEXT NOT NULL,
                step TEXT,
                records_stored INTEGER DEFAULT 0,
                records_projected INTEGER DEFAULT 0,
                records_dropped INTEGER DEFAULT 0,
                error_code TEXT,
                error_message TEXT,
                completed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                CHECK (status IN ({status_values}))
            );
            CREATE INDEX IF NOT EXISTS idx_sync_log_unit ON sync_log(domain, unit_key);

            -- Projection cache: one row per member of a (domain, unit_key) collection
            -- Timestamps are epoch seconds so TTL checks use the caller's clock
            CREATE TABLE IF NOT EXISTS projection_cache (
                domain TEXT NOT NULL,
                unit_key TEXT NOT NULL,
                member_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                payload TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL,
                PRIMARY KEY (domain, unit_key, member_id)
            );
            CREATE INDEX IF NOT EXISTS idx_projection_cache_expires ON projection_cache(expires_at);

            -- Generic key-value cache with TTL (memoised upstream payloads)
            CREATE TABLE IF NOT EXISTS key_value_cache (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_key_value_cache_expires ON key_value_cache(expires_at);
            """
        )
