"""Wire a gateway, engine, tracker and actions together from settings.

Usage::

    from backend.market.factory import build_runtime

    runtime = build_runtime()
    try:
        await runtime.actions.refresh()
    finally:
        runtime.close()
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Optional

from backend.config import settings
from backend.db import get_connection, init_db
from backend.market.actions import MarketActions
from backend.market.gateway import ContractGateway, LocalLedgerGateway
from backend.market.sync import MarketSyncEngine
from backend.market.tracker import TransactionTracker


@dataclass
class MarketRuntime:
    gateway: ContractGateway
    engine: MarketSyncEngine
    tracker: TransactionTracker
    actions: MarketActions
    conn: Optional[sqlite3.Connection] = None

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None


def open_gateway(conn: Optional[sqlite3.Connection] = None) -> tuple[ContractGateway, Optional[sqlite3.Connection]]:
    """Return the gateway selected by ``settings.gateway_backend``.

    For the local ledger the (possibly newly opened) SQLite connection is
    returned alongside so the caller can close it.
    """
    backend = settings.gateway_backend.lower()
    if backend == "local":
        if conn is None:
            conn = get_connection()
            init_db(conn)
        return LocalLedgerGateway(conn), conn
    if backend == "web3":
        # Imported lazily so the local ledger works without web3 configured.
        from backend.market.web3_gateway import Web3Gateway

        gateway = Web3Gateway(
            rpc_url=settings.rpc_url,
            contract_address=settings.contract_address,
            private_key=settings.signer_private_key,
            chain_id=settings.chain_id,
            tx_timeout=settings.tx_timeout,
        )
        return gateway, None
    raise ValueError(f"Unknown GATEWAY_BACKEND {settings.gateway_backend!r}. Use: local | web3")


def build_runtime(
    conn: Optional[sqlite3.Connection] = None,
    account: Optional[str] = None,
) -> MarketRuntime:
    """Build the full market stack.

    *account* connects the session; with the web3 gateway and a configured
    signing key the signer's address is connected when *account* is omitted.
    """
    gateway, conn = open_gateway(conn)
    engine = MarketSyncEngine(gateway)
    tracker = TransactionTracker()
    actions = MarketActions(engine, tracker)

    signer = getattr(gateway, "signer_address", None)
    if account:
        engine.connect(account)
    elif signer:
        engine.connect(signer)

    return MarketRuntime(gateway=gateway, engine=engine, tracker=tracker, actions=actions, conn=conn)
