"""Wallet (signing account) commands."""

import typer

from cli.context import load_context, save_context
from cli.rendering import short_address

wallet_app = typer.Typer(help="Connect the account used to sign contract writes.", no_args_is_help=True)


@wallet_app.command("connect")
def wallet_connect(
    address: str = typer.Argument(..., help="Account address (0x...)."),
) -> None:
    """Connect an account; later writes are signed as this owner."""
    address = address.strip()
    if not address:
        typer.echo("❌ Address must not be empty.")
        raise typer.Exit(code=1)

    ctx = load_context()
    ctx.active_account = address
    save_context(ctx)
    typer.echo(f"🔗 Connected: {short_address(address)}")


@wallet_app.command("disconnect")
def wallet_disconnect() -> None:
    """Forget the connected account."""
    ctx = load_context()
    ctx.active_account = None
    save_context(ctx)
    typer.echo("🔌 Wallet disconnected.")


@wallet_app.command("status")
def wallet_status() -> None:
    """Show the connected account."""
    ctx = load_context()
    if ctx.active_account:
        typer.echo(f"🔗 Connected: {ctx.active_account}")
    else:
        typer.echo("Not connected.")
