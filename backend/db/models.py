"""Dataclass models representing local ledger rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class KvEntry:
    key: str
    value: bytes
    updated_at: int
    updated_by: str | None


@dataclass
class TxRecord:
    tx_hash: str
    key: str
    sender: str | None
    size: int
    created_at: int
