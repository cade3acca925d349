"""Cipher Market CLI — entry-point for all backend operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    ledger  → local ledger (SQLite key-value contract stand-in)
    wallet  → signing account used for contract writes
    market  → record listing, submission, analysis, flagging, index repair
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that
# `from backend.xxx import ...` works when the CLI is invoked as
# `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import typer

from backend.config import settings
from cli.commands.ledger import ledger_app
from cli.commands.market import market_app
from cli.commands.wallet import wallet_app

app = typer.Typer(
    name="ciphermarket",
    help="Cipher Market backend CLI.",
    no_args_is_help=True,
)

app.add_typer(ledger_app, name="ledger")
app.add_typer(wallet_app, name="wallet")
app.add_typer(market_app, name="market")


@app.command("config")
def show_config() -> None:
    """Print the effective gateway configuration."""
    typer.echo(f"[config] Gateway backend : {settings.gateway_backend}")
    if settings.gateway_backend.lower() == "web3":
        typer.echo(f"[config] RPC URL         : {settings.rpc_url}")
        typer.echo(f"[config] Contract        : {settings.contract_address or '(unset)'}")
        typer.echo(f"[config] Signing key     : {'configured' if settings.signer_private_key else '(none)'}")
    else:
        typer.echo(f"[config] Ledger          : {settings.db_path}")
    typer.echo(f"[config] Index key       : {settings.index_key}")
    typer.echo(f"[config] Record prefix   : {settings.record_key_prefix}")
    typer.echo(f"[config] Analysis delay  : {settings.analysis_delay:g}s")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
