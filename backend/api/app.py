"""FastAPI application factory.

Lifespan
--------
On startup the app builds the market runtime (gateway, sync engine,
transaction tracker) once, shares it across all requests via
``request.app.state.market`` and performs the initial full load.  On
shutdown it closes the local ledger connection, if any.

Routers
-------
All endpoint groups are mounted under their respective path prefix:

    /market   — record snapshot, create / analyze / flag, index repair, stats
    /session  — connect / disconnect the signing account
    /tx       — transaction tracker state and its SSE stream
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.market.factory import build_runtime

from backend.api.routers import market as market_router
from backend.api.routers import session as session_router
from backend.api.routers import transactions as transactions_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the market runtime on startup and close it on shutdown."""
    runtime = build_runtime()
    app.state.market = runtime
    await runtime.actions.refresh()
    try:
        yield
    finally:
        app.state.market.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Cipher Market API",
        description=(
            "REST interface for the Cipher Market dashboard. Exposes the "
            "market record snapshot kept in sync with the key-value contract, "
            "record submission and simulated FHE analysis, index repair, "
            "and the transaction tracker via Server-Sent Events."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(market_router.router, prefix="/market", tags=["market"])
    app.include_router(session_router.router, prefix="/session", tags=["session"])
    app.include_router(transactions_router.router, prefix="/tx", tags=["tx"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn backend.api.app:app --reload
app = create_app()
