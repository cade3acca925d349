"""Contract gateway abstraction and the local-ledger implementation.

The gateway is the only component that touches persistent state.  It offers
the three calls of the generic key-value contract and nothing more: no
ordering or atomicity across calls.

All gateways share a common async interface::

    await gateway.is_available() -> bool
    await gateway.get_data(key) -> bytes          # b"" when unset
    await gateway.set_data(key, value, sender) -> TxHandle

Gateways that can enumerate stored keys set ``can_scan = True`` and implement
:meth:`ContractGateway.scan_keys`; the index repair pass uses it.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from backend.db import kv
from backend.market.errors import GatewayUnavailable, WriteFailed


@dataclass
class TxHandle:
    """Receipt-like result of a completed ``set_data`` call."""

    tx_hash: str
    key: str
    block_number: Optional[int] = None


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class ContractGateway(ABC):
    """Abstract base class for a key-value contract gateway."""

    can_scan: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable gateway name."""

    @abstractmethod
    async def is_available(self) -> bool:
        """Return ``True`` when the contract is reachable and active."""

    @abstractmethod
    async def get_data(self, key: str) -> bytes:
        """Return the value under *key* (``b""`` when unset).

        Raises:
            GatewayUnavailable: The contract could not be reached.
        """

    @abstractmethod
    async def set_data(self, key: str, value: bytes, sender: Optional[str] = None) -> TxHandle:
        """Overwrite *key* with *value* and wait for the write to land.

        Raises:
            UserRejected: The signer declined the transaction.
            WriteFailed: Any other write failure.
        """

    async def scan_keys(self, prefix: str) -> list[str]:
        """Return every stored key beginning with *prefix*."""
        raise NotImplementedError(f"{self.name} gateway cannot enumerate keys")


# ---------------------------------------------------------------------------
# Local ledger (SQLite)
# ---------------------------------------------------------------------------

class LocalLedgerGateway(ContractGateway):
    """Key-value contract emulated on the local SQLite ledger.

    Used for offline operation and by the test suite.  Writes are rejected
    while the ledger is paused, mirroring a contract whose ``isAvailable()``
    returns false.
    """

    can_scan = True

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @property
    def name(self) -> str:
        return "local-ledger"

    async def is_available(self) -> bool:
        try:
            return kv.is_available(self.conn)
        except sqlite3.Error as exc:
            raise GatewayUnavailable(f"local ledger unreadable: {exc}") from exc

    async def get_data(self, key: str) -> bytes:
        try:
            return kv.get_value(self.conn, key)
        except sqlite3.Error as exc:
            raise GatewayUnavailable(f"local ledger unreadable: {exc}") from exc

    async def set_data(self, key: str, value: bytes, sender: Optional[str] = None) -> TxHandle:
        try:
            if not kv.is_available(self.conn):
                raise WriteFailed("contract is not available")
            tx = kv.put_value(self.conn, key, value, sender=sender)
        except sqlite3.Error as exc:
            raise WriteFailed(f"local ledger write failed: {exc}") from exc
        return TxHandle(tx_hash=tx.tx_hash, key=key)

    async def scan_keys(self, prefix: str) -> list[str]:
        try:
            return kv.list_keys(self.conn, prefix)
        except sqlite3.Error as exc:
            raise GatewayUnavailable(f"local ledger unreadable: {exc}") from exc
