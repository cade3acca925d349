"""Market record endpoints.

Routes
------
GET  /market                      Snapshot (optional ?q=, ?category=, ?refresh=)
POST /market                      Submit a new record (record write + index update)
POST /market/refresh              Full resync from the contract
GET  /market/stats                Status counts, average risk, risk histogram
GET  /market/history              This session's recent actions
POST /market/repair               Rebuild the key index from stored records
GET  /market/{id}                 One record from the snapshot
POST /market/{id}/analyze         pending -> analyzed (owner only)
POST /market/{id}/flag            pending|analyzed -> flagged (owner only)

Write endpoints answer with the transaction tracker state.  A failed action
is reported with the tracker state as ``detail`` and a status code chosen
from the error kind.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from backend.market.actions import ActionResult
from backend.market.factory import MarketRuntime
from backend.market.models import Record
from backend.market.stats import filter_records, summarize

router = APIRouter()

_ERROR_STATUS: dict[str, int] = {
    "NotConnected": 401,
    "RecordNotFound": 404,
    "InvalidTransition": 409,
    "UserRejected": 409,
    "InvalidRecord": 422,
    "DecodeError": 502,
    "GatewayUnavailable": 502,
    "WriteFailed": 502,
}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class RecordCreate(BaseModel):
    category: str
    content: str
    description: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _runtime(request: Request) -> MarketRuntime:
    return request.app.state.market


def _record_dict(record: Record, runtime: MarketRuntime) -> dict[str, Any]:
    return {
        "id": record.id,
        "encrypted_data": record.encoded_payload,
        "timestamp": record.created_at,
        "owner": record.owner,
        "category": record.category,
        "status": record.status.value,
        "risk_level": record.risk_level,
        "is_owner": runtime.engine.is_owner(record),
    }


def _raise_for_failure(result: ActionResult) -> None:
    if result.state.error is not None:
        raise HTTPException(
            status_code=_ERROR_STATUS.get(result.state.error, 500),
            detail=result.state.to_dict(),
        )


def _check_owner(runtime: MarketRuntime, record_id: str) -> None:
    """Reject analyze/flag on someone else's record.

    Advisory only: the contract itself accepts writes from anyone.  Records
    missing from the snapshot fall through so the engine reports them.
    """
    if runtime.engine.account is None:
        return
    record = runtime.engine.get(record_id)
    if record is not None and not runtime.engine.is_owner(record):
        raise HTTPException(
            status_code=403,
            detail=f"Only the owner of record '{record_id}' can change its status.",
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=list[dict[str, Any]])
async def list_records_endpoint(
    request: Request,
    q: str = "",
    category: str = "all",
    refresh: bool = False,
) -> list[dict[str, Any]]:
    """Return the snapshot, newest first, filtered by search text and category."""
    runtime = _runtime(request)
    if refresh:
        await runtime.actions.refresh()
    records = filter_records(runtime.engine.snapshot, query=q, category=category)
    return [_record_dict(r, runtime) for r in records]


@router.post("", status_code=201, response_model=dict[str, Any])
async def create_record_endpoint(body: RecordCreate, request: Request) -> dict[str, Any]:
    """Submit a new record and return it with the tracker state."""
    runtime = _runtime(request)
    result = await runtime.actions.submit(body.model_dump())
    _raise_for_failure(result)
    return {"record": _record_dict(result.value, runtime), "tx": result.state.to_dict()}


@router.post("/refresh", response_model=list[dict[str, Any]])
async def refresh_endpoint(request: Request) -> list[dict[str, Any]]:
    """Resync the snapshot from the contract and return it."""
    runtime = _runtime(request)
    records = await runtime.actions.refresh()
    return [_record_dict(r, runtime) for r in records]


@router.get("/stats", response_model=dict[str, Any])
def stats_endpoint(request: Request) -> dict[str, Any]:
    """Return dashboard statistics for the current snapshot."""
    return summarize(_runtime(request).engine.snapshot).to_dict()


@router.get("/history", response_model=dict[str, Any])
def history_endpoint(request: Request) -> dict[str, Any]:
    """Return the most recent actions of this session."""
    return {"history": _runtime(request).actions.history}


@router.post("/repair", response_model=dict[str, Any])
async def repair_endpoint(request: Request) -> dict[str, Any]:
    """Rebuild the key index and report what changed."""
    result = await _runtime(request).actions.repair()
    _raise_for_failure(result)
    report = result.value
    return {
        "index": report.index,
        "added": report.added,
        "dropped": report.dropped,
        "written": report.written,
        "tx": result.state.to_dict(),
    }


@router.get("/{record_id}", response_model=dict[str, Any])
def get_record_endpoint(record_id: str, request: Request) -> dict[str, Any]:
    """Return one record from the current snapshot."""
    runtime = _runtime(request)
    record = runtime.engine.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Record '{record_id}' not found.")
    return _record_dict(record, runtime)


@router.post("/{record_id}/analyze", response_model=dict[str, Any])
async def analyze_endpoint(record_id: str, request: Request) -> dict[str, Any]:
    """Run the simulated FHE analysis and mark the record analyzed."""
    runtime = _runtime(request)
    _check_owner(runtime, record_id)
    result = await runtime.actions.analyze(record_id)
    _raise_for_failure(result)
    return {"record": _record_dict(result.value, runtime), "tx": result.state.to_dict()}


@router.post("/{record_id}/flag", response_model=dict[str, Any])
async def flag_endpoint(record_id: str, request: Request) -> dict[str, Any]:
    """Flag the record."""
    runtime = _runtime(request)
    _check_owner(runtime, record_id)
    result = await runtime.actions.flag(record_id)
    _raise_for_failure(result)
    return {"record": _record_dict(result.value, runtime), "tx": result.state.to_dict()}
