"""Key/value operations on the local ledger (``kv_store`` + ``tx_log``).

The local ledger emulates the generic key-value contract: writes overwrite
whole values, each write is logged as a pseudo transaction with a hash, and a
single availability flag mirrors the contract's ``isAvailable()``.
"""

from __future__ import annotations

import hashlib
import sqlite3
import uuid
from time import time
from typing import Optional

from backend.db.models import KvEntry, TxRecord


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_entry(row: sqlite3.Row) -> KvEntry:
    return KvEntry(
        key=row["key"],
        value=bytes(row["value"]),
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
    )


def _row_to_tx(row: sqlite3.Row) -> TxRecord:
    return TxRecord(
        tx_hash=row["tx_hash"],
        key=row["key"],
        sender=row["sender"],
        size=row["size"],
        created_at=row["created_at"],
    )


def _tx_hash(key: str, value: bytes) -> str:
    digest = hashlib.sha256()
    digest.update(key.encode("utf-8"))
    digest.update(value)
    digest.update(uuid.uuid4().bytes)
    return "0x" + digest.hexdigest()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_value(conn: sqlite3.Connection, key: str) -> bytes:
    """Return the value stored under *key*, or ``b""`` when the key is unset.

    An unset key reads as empty bytes, exactly like the contract's
    ``getData`` on a missing key.
    """
    row = conn.execute(
        "SELECT value FROM kv_store WHERE key = ?", (key,)
    ).fetchone()
    return bytes(row["value"]) if row else b""


def get_entry(conn: sqlite3.Connection, key: str) -> Optional[KvEntry]:
    """Fetch the full row for *key*.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM kv_store WHERE key = ?", (key,)
    ).fetchone()
    return _row_to_entry(row) if row else None


def put_value(
    conn: sqlite3.Connection,
    key: str,
    value: bytes,
    sender: Optional[str] = None,
) -> TxRecord:
    """Overwrite *key* with *value* and log the write as a transaction.

    Both statements run in one SQLite transaction; the returned
    :class:`~backend.db.models.TxRecord` carries the pseudo transaction hash.
    """
    now = int(time())
    tx_hash = _tx_hash(key, value)

    with conn:
        conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at, updated_by)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at,
                updated_by = excluded.updated_by
            """,
            (key, value, now, sender),
        )
        conn.execute(
            """
            INSERT INTO tx_log (tx_hash, key, sender, size, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (tx_hash, key, sender, len(value), now),
        )

    return TxRecord(tx_hash=tx_hash, key=key, sender=sender, size=len(value), created_at=now)


def list_keys(conn: sqlite3.Connection, prefix: str = "") -> list[str]:
    """Return every stored key starting with *prefix*, sorted."""
    rows = conn.execute(
        "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
        (len(prefix), prefix),
    ).fetchall()
    return [r["key"] for r in rows]


def list_transactions(
    conn: sqlite3.Connection,
    key: Optional[str] = None,
    limit: int = 50,
) -> list[TxRecord]:
    """Return logged writes, newest first, optionally for a single key."""
    if key:
        rows = conn.execute(
            "SELECT * FROM tx_log WHERE key = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (key, limit),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM tx_log ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_tx(r) for r in rows]


def is_available(conn: sqlite3.Connection) -> bool:
    """Return the ledger's availability flag."""
    row = conn.execute(
        "SELECT value FROM ledger_meta WHERE name = 'available'"
    ).fetchone()
    return bool(row) and row["value"] == "1"


def set_available(conn: sqlite3.Connection, available: bool) -> None:
    """Pause (``False``) or resume (``True``) the ledger."""
    with conn:
        conn.execute(
            """
            INSERT INTO ledger_meta (name, value) VALUES ('available', ?)
            ON CONFLICT(name) DO UPDATE SET value = excluded.value
            """,
            ("1" if available else "0",),
        )
