"""Transaction tracker endpoints with Server-Sent Events (SSE) streaming.

Routes
------
GET /tx          Current tracker state
GET /tx/stream   ``text/event-stream`` of tracker state changes

SSE event format
----------------
Each event is the JSON-encoded tracker state on the ``data:`` line::

    data: {"status": "pending", "message": "Processing encrypted data with FHE...", ...}

The first event is always the state at the time of connection.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from backend.market.models import TxState
from backend.market.tracker import TransactionTracker

router = APIRouter()


# ---------------------------------------------------------------------------
# SSE helpers
# ---------------------------------------------------------------------------

def _sse(payload: dict[str, Any]) -> str:
    """Format a payload dict as a single SSE ``data:`` line."""
    return f"data: {json.dumps(payload)}\n\n"


async def tracker_sse_generator(
    tracker: TransactionTracker,
    max_events: Optional[int] = None,
) -> AsyncIterator[str]:
    """Yield SSE frames for every tracker change until *max_events* were sent."""
    queue: asyncio.Queue[TxState] = asyncio.Queue()
    unsubscribe = tracker.subscribe(queue.put_nowait)
    try:
        sent = 0
        state = tracker.state
        while True:
            yield _sse(state.to_dict())
            sent += 1
            if max_events is not None and sent >= max_events:
                break
            state = await queue.get()
    finally:
        unsubscribe()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("", response_model=dict[str, Any])
def get_tx_state_endpoint(request: Request) -> dict[str, Any]:
    """Return the tracker's current state."""
    return request.app.state.market.tracker.state.to_dict()


@router.get("/stream")
async def stream_tx_state(request: Request, max_events: Optional[int] = None) -> StreamingResponse:
    """Stream tracker state changes as SSE."""
    return StreamingResponse(
        tracker_sse_generator(request.app.state.market.tracker, max_events),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",   # disable nginx proxy buffering
        },
    )
