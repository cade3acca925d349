"""User-facing market actions: engine operations wired to the tracker.

Every action follows the same sequence:

1. ``tracker.begin`` with the pending message.
2. Run the engine operation.
3. On success: append a line to the session history, ``tracker.succeed``.
4. On :class:`~backend.market.errors.MarketError`: ``tracker.fail`` with a
   message naming the operation (or the rejection message when the signer
   declined).

Errors never leave this layer; callers read the returned
:class:`ActionResult` (its ``state.error`` holds the exception class name).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from backend.config import settings
from backend.market.errors import MarketError, UserRejected
from backend.market.models import Record, TxState
from backend.market.sync import MarketSyncEngine
from backend.market.tracker import TransactionTracker

T = TypeVar("T")

REJECTED_MESSAGE = "Transaction rejected by user"


@dataclass
class ActionResult:
    """Tracker state after an action, plus the operation's return value."""

    state: TxState
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.state.error is None


class MarketActions:
    def __init__(
        self,
        engine: MarketSyncEngine,
        tracker: Optional[TransactionTracker] = None,
        history_limit: Optional[int] = None,
    ):
        self.engine = engine
        self.tracker = tracker or TransactionTracker()
        self._history: deque[str] = deque(
            maxlen=settings.history_limit if history_limit is None else history_limit
        )

    @property
    def history(self) -> list[str]:
        return list(self._history)

    async def refresh(self) -> list[Record]:
        """Reload the snapshot.  Read-path problems never reach the tracker."""
        return await self.engine.load_all()

    async def submit(self, fields: Mapping[str, Any]) -> ActionResult:
        return await self._run(
            operation="create",
            pending="Encrypting dark web data with FHE...",
            success="Encrypted data submitted for FHE analysis!",
            failure="Submission failed",
            op=lambda: self.engine.create_record(fields),
            history=lambda record: f"Added {record.category} data",
        )

    async def analyze(self, record_id: str) -> ActionResult:
        return await self._run(
            operation="analyze",
            pending="Processing encrypted data with FHE...",
            success="FHE analysis completed successfully!",
            failure="Analysis failed",
            op=lambda: self.engine.analyze(record_id),
            history=lambda record: f"Analyzed data #{record.short_id()}",
        )

    async def flag(self, record_id: str) -> ActionResult:
        return await self._run(
            operation="flag",
            pending="Flagging data with FHE analysis...",
            success="Data flagged successfully with FHE!",
            failure="Flagging failed",
            op=lambda: self.engine.flag(record_id),
            history=lambda record: f"Flagged data #{record.short_id()}",
        )

    async def repair(self) -> ActionResult:
        return await self._run(
            operation="repair",
            pending="Rebuilding market index...",
            success="Market index is consistent",
            failure="Index repair failed",
            op=self.engine.repair_index,
            history=lambda report: (
                f"Repaired index (+{len(report.added)} / -{len(report.dropped)})"
            ),
        )

    async def _run(
        self,
        operation: str,
        pending: str,
        success: str,
        failure: str,
        op: Callable[[], Awaitable[T]],
        history: Callable[[T], str],
    ) -> ActionResult:
        self.tracker.begin(pending, operation=operation)
        try:
            result = await op()
        except MarketError as exc:
            self.tracker.fail(failure_message(failure, exc), error=exc.__class__.__name__)
            return ActionResult(self.tracker.state)

        self._history.append(history(result))
        self.tracker.succeed(success)
        return ActionResult(self.tracker.state, result)


def failure_message(prefix: str, exc: MarketError) -> str:
    if isinstance(exc, UserRejected):
        return REJECTED_MESSAGE
    return f"{prefix}: {str(exc) or 'Unknown error'}"
