"""Local ledger commands (the SQLite stand-in for the key-value contract)."""

from datetime import datetime

import typer

from backend.config import settings
from backend.db import get_connection, init_db, kv

ledger_app = typer.Typer(help="Inspect and control the local ledger.", no_args_is_help=True)


def _require_local() -> None:
    if settings.gateway_backend.lower() != "local":
        typer.echo(f"❌ GATEWAY_BACKEND is {settings.gateway_backend!r}; ledger commands need 'local'.")
        raise typer.Exit(code=1)


@ledger_app.command("init")
def ledger_init() -> None:
    """Initialise the local ledger database (create tables if they do not exist)."""
    _require_local()
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[ledger init] Ledger ready at {settings.db_path}")


@ledger_app.command("status")
def ledger_status() -> None:
    """Show availability, stored keys and logged writes."""
    _require_local()
    conn = get_connection()
    init_db(conn)
    try:
        available = kv.is_available(conn)
        keys = kv.list_keys(conn, settings.record_key_prefix)
        index_entry = kv.get_entry(conn, settings.index_key)
        txs = kv.list_transactions(conn, limit=5)
    finally:
        conn.close()

    record_keys = [k for k in keys if k != settings.index_key]
    typer.echo(f"[ledger status] {settings.db_path}")
    typer.echo(f"   Available   : {'yes' if available else 'no (paused)'}")
    if index_entry is None:
        typer.echo(f"   Index key   : {settings.index_key} (unset)")
    else:
        written = datetime.fromtimestamp(index_entry.updated_at).strftime("%Y-%m-%d %H:%M:%S")
        typer.echo(f"   Index key   : {settings.index_key} (set)")
        typer.echo(f"   Index write : {written} by {index_entry.updated_by or '-'}")
    typer.echo(f"   Record keys : {len(record_keys)}")
    if txs:
        typer.echo("   Recent writes:")
        for tx in txs:
            typer.echo(f"    - {tx.tx_hash[:18]}…  {tx.key}  ({tx.size} bytes)")


@ledger_app.command("pause")
def ledger_pause() -> None:
    """Make the ledger report itself unavailable and reject writes."""
    _require_local()
    conn = get_connection()
    init_db(conn)
    try:
        kv.set_available(conn, False)
    finally:
        conn.close()
    typer.echo("[ledger pause] Ledger paused.")


@ledger_app.command("resume")
def ledger_resume() -> None:
    """Make the ledger available again."""
    _require_local()
    conn = get_connection()
    init_db(conn)
    try:
        kv.set_available(conn, True)
    finally:
        conn.close()
    typer.echo("[ledger resume] Ledger available.")
