"""Market core: key-index sync, record codecs and the transaction tracker.

Public API::

    from backend.market import MarketSyncEngine, TransactionTracker
    engine = MarketSyncEngine(gateway)
    records = await engine.load_all()
"""

from backend.market.actions import ActionResult, MarketActions
from backend.market.gateway import ContractGateway, LocalLedgerGateway, TxHandle
from backend.market.models import Category, Record, RepairReport, Status, TxState, TxStatus
from backend.market.sync import MarketSyncEngine
from backend.market.tracker import TransactionTracker

__all__ = [
    "ActionResult",
    "Category",
    "ContractGateway",
    "LocalLedgerGateway",
    "MarketActions",
    "MarketSyncEngine",
    "Record",
    "RepairReport",
    "Status",
    "TransactionTracker",
    "TxHandle",
    "TxState",
    "TxStatus",
]
