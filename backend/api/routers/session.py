"""Signing-account session endpoints.

Routes
------
GET  /session              Current account (if any)
POST /session/connect      Body: {"account": "0x..."}
POST /session/disconnect   Forget the account
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

router = APIRouter()


class ConnectRequest(BaseModel):
    account: str


def _session_dict(account: Optional[str]) -> dict[str, Any]:
    return {"account": account, "connected": account is not None}


@router.get("", response_model=dict[str, Any])
def get_session_endpoint(request: Request) -> dict[str, Any]:
    return _session_dict(request.app.state.market.engine.account)


@router.post("/connect", response_model=dict[str, Any])
def connect_endpoint(body: ConnectRequest, request: Request) -> dict[str, Any]:
    """Connect *account* as the session's signing account."""
    engine = request.app.state.market.engine
    try:
        engine.connect(body.account)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _session_dict(engine.account)


@router.post("/disconnect", response_model=dict[str, Any])
def disconnect_endpoint(request: Request) -> dict[str, Any]:
    engine = request.app.state.market.engine
    engine.disconnect()
    return _session_dict(engine.account)
