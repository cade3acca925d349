"""Database initialisation for the local ledger.

``init_db(conn)`` is idempotent and safe to call on an existing database.
"""

from __future__ import annotations

import sqlite3

from backend.config import settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_schema() -> str:
    """Load the bundled schema.sql script."""
    schema_path = settings.schema_path
    return schema_path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def init_db(conn: sqlite3.Connection) -> None:
    """Create the ledger tables and seed the availability flag.

    Every DDL statement uses ``IF NOT EXISTS`` and the seed row is
    ``INSERT OR IGNORE``, so calling this on an existing ledger keeps its
    data and its paused/available state.

    Args:
        conn: An open, configured SQLite connection.
    """
    # executescript() issues an implicit COMMIT before running the script.
    conn.executescript(_read_schema())
