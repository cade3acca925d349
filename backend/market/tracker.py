"""Transaction lifecycle tracker.

One tracker per process reports the state of the multi-step chain operation
currently on screen::

    idle -> pending -> success | error -> idle

``success`` and ``error`` return to ``idle`` on their own after
``settings.tx_success_dismiss`` / ``settings.tx_error_dismiss`` seconds,
unless a new operation begins first.  There is no queue: ``begin`` always
overwrites whatever is displayed.

Timers are scheduled on the running asyncio loop, so ``succeed`` and ``fail``
must be called from inside it.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Callable, Optional

from backend.config import settings
from backend.market.models import TxState, TxStatus

TxListener = Callable[[TxState], None]


class TransactionTracker:
    def __init__(
        self,
        success_dismiss: Optional[float] = None,
        error_dismiss: Optional[float] = None,
    ):
        self.success_dismiss = settings.tx_success_dismiss if success_dismiss is None else success_dismiss
        self.error_dismiss = settings.tx_error_dismiss if error_dismiss is None else error_dismiss
        self._state = TxState()
        self._listeners: list[TxListener] = []
        self._dismiss_handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> TxState:
        return replace(self._state)

    def subscribe(self, listener: TxListener) -> Callable[[], None]:
        """Call *listener* on every state change.  Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def begin(self, message: str, operation: Optional[str] = None) -> None:
        self._cancel_dismiss()
        self._set(TxState(status=TxStatus.PENDING, message=message, operation=operation))

    def succeed(self, message: str) -> None:
        self._cancel_dismiss()
        self._set(TxState(status=TxStatus.SUCCESS, message=message, operation=self._state.operation))
        self._schedule_dismiss(self.success_dismiss)

    def fail(self, message: str, error: Optional[str] = None) -> None:
        self._cancel_dismiss()
        self._set(
            TxState(
                status=TxStatus.ERROR,
                message=message,
                operation=self._state.operation,
                error=error,
            )
        )
        self._schedule_dismiss(self.error_dismiss)

    def dismiss(self) -> None:
        """Return to ``idle`` immediately."""
        self._cancel_dismiss()
        if self._state.status is not TxStatus.IDLE:
            self._set(TxState())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _set(self, state: TxState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(replace(state))

    def _schedule_dismiss(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._dismiss_handle = loop.call_later(delay, self._auto_dismiss)

    def _auto_dismiss(self) -> None:
        self._dismiss_handle = None
        self._set(TxState())

    def _cancel_dismiss(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
