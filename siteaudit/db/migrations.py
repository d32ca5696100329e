"""Schema setup for the audit store.

``schema.sql`` holds the base tables.  Indexes and later changes are
versioned in ``MIGRATIONS`` and recorded in ``schema_version`` so each runs
exactly once per database.
"""

from __future__ import annotations

import logging
import sqlite3

from siteaudit.config import settings

logger = logging.getLogger(__name__)

# (version, statement) pairs, applied in ascending order.
MIGRATIONS: list[tuple[int, str]] = [
    (1, "CREATE INDEX IF NOT EXISTS idx_audits_created_at ON audits (created_at)"),
    (2, "CREATE INDEX IF NOT EXISTS idx_audits_state ON audits (state)"),
]


def init_db(conn: sqlite3.Connection) -> None:
    """Create the base tables, then bring the schema up to date.

    Safe to call on every start-up.
    """
    conn.executescript(settings.schema_path.read_text(encoding="utf-8"))
    migrate(conn)


def current_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return row[0]


def migrate(conn: sqlite3.Connection) -> int:
    """Apply pending migrations; return the resulting schema version."""
    version = current_version(conn)
    for target, statement in sorted(MIGRATIONS):
        if target <= version:
            continue
        with conn:
            conn.execute(statement)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (target,))
        logger.info("Applied schema migration %d", target)
        version = target
    return version
