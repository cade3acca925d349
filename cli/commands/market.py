"""Market record commands."""

import asyncio
from typing import Awaitable, Callable, TypeVar

import typer

from backend.market.actions import ActionResult
from backend.market.factory import MarketRuntime, build_runtime
from backend.market.models import TxState
from backend.market.stats import filter_records, summarize
from cli.context import load_context, require_account, save_context
from cli.rendering import render_records, render_risk_chart, render_tx, short_address

market_app = typer.Typer(help="Browse and update market data on the contract.", no_args_is_help=True)

T = TypeVar("T")


def _echo_tx(state: TxState) -> None:
    line = render_tx(state)
    if line:
        typer.echo(line)


def _with_runtime(action: Callable[[MarketRuntime], Awaitable[T]]) -> T:
    """Build the runtime for the connected account and run *action* on a fresh loop."""
    ctx = load_context()
    runtime = build_runtime(account=ctx.active_account)
    unsubscribe = runtime.tracker.subscribe(_echo_tx)
    try:
        return asyncio.run(action(runtime))
    finally:
        unsubscribe()
        runtime.close()


def _finish(result: ActionResult, runtime_history: list[str]) -> None:
    """Persist the action in the CLI history, or exit non-zero on failure."""
    if not result.ok:
        raise typer.Exit(code=1)
    ctx = load_context()
    for line in runtime_history:
        ctx.remember(line)
    save_context(ctx)


async def _status_change(runtime: MarketRuntime, record_id: str, flag: bool) -> ActionResult:
    await runtime.actions.refresh()
    record = runtime.engine.get(record_id)
    if record is not None and not runtime.engine.is_owner(record):
        typer.echo(f"❌ Only the owner ({short_address(record.owner)}) can change record {record_id}.")
        raise typer.Exit(code=1)
    if flag:
        return await runtime.actions.flag(record_id)
    return await runtime.actions.analyze(record_id)


@market_app.command("list")
def market_list(
    query: str = typer.Option("", "--query", "-q", help="Search category or owner address."),
    category: str = typer.Option("all", "--category", "-c", help="Category filter (or 'all')."),
) -> None:
    """List market records, newest first."""
    async def _run(runtime: MarketRuntime):
        await runtime.actions.refresh()
        return runtime.engine.snapshot, runtime.engine.account

    records, account = _with_runtime(_run)
    typer.echo(render_records(filter_records(records, query=query, category=category), account))


@market_app.command("show")
def market_show(
    record_id: str = typer.Argument(..., help="Record id."),
) -> None:
    """Show one record; the owner also sees the decoded payload."""
    async def _run(runtime: MarketRuntime):
        await runtime.actions.refresh()
        record = runtime.engine.get(record_id)
        return record, runtime.engine.is_owner(record) if record else False, runtime.engine.payload_codec

    record, owned, codec = _with_runtime(_run)
    if record is None:
        typer.echo(f"❌ Record '{record_id}' not found.")
        raise typer.Exit(code=1)

    typer.echo(f"\n🔐 Record {record.id}")
    typer.echo("-" * 40)
    typer.echo(f"   Category : {record.category}")
    typer.echo(f"   Owner    : {record.owner}")
    typer.echo(f"   Created  : {record.created_at}")
    typer.echo(f"   Status   : {record.status.value}")
    typer.echo(f"   Risk     : {record.risk_level}/10")
    typer.echo(f"   Payload  : {record.encoded_payload[:48]}{'…' if len(record.encoded_payload) > 48 else ''}")
    if owned:
        try:
            fields = codec.decode(record.encoded_payload)
        except ValueError as exc:
            typer.echo(f"   (payload not decodable: {exc})")
        else:
            typer.echo(f"   Content  : {fields.get('content', '')}")
            if fields.get("description"):
                typer.echo(f"   Notes    : {fields['description']}")
    typer.echo("")


@market_app.command("create")
@require_account
def market_create(
    category: str = typer.Option(..., "--category", "-c", help="Narcotics | Weapons | Credentials | Digital | Other."),
    content: str = typer.Option(..., "--content", help="Market data to submit (encoded before upload)."),
    description: str = typer.Option("", "--description", "-d", help="Optional description."),
) -> None:
    """Submit a new record: record write, then index update."""
    async def _run(runtime: MarketRuntime):
        result = await runtime.actions.submit(
            {"category": category, "content": content, "description": description}
        )
        return result, runtime.actions.history

    result, history = _with_runtime(_run)
    _finish(result, history)
    typer.echo(f"🆔 Record id: {result.value.id}  (risk {result.value.risk_level}/10)")


@market_app.command("analyze")
@require_account
def market_analyze(
    record_id: str = typer.Argument(..., help="Record id."),
) -> None:
    """Run the simulated FHE analysis on a pending record you own."""
    async def _run(runtime: MarketRuntime):
        result = await _status_change(runtime, record_id, flag=False)
        return result, runtime.actions.history

    result, history = _with_runtime(_run)
    _finish(result, history)


@market_app.command("flag")
@require_account
def market_flag(
    record_id: str = typer.Argument(..., help="Record id."),
) -> None:
    """Flag a record you own."""
    async def _run(runtime: MarketRuntime):
        result = await _status_change(runtime, record_id, flag=True)
        return result, runtime.actions.history

    result, history = _with_runtime(_run)
    _finish(result, history)


@market_app.command("repair")
@require_account
def market_repair() -> None:
    """Rebuild the key index from every record still stored on the contract."""
    async def _run(runtime: MarketRuntime):
        result = await runtime.actions.repair()
        return result, runtime.actions.history

    result, history = _with_runtime(_run)
    _finish(result, history)
    report = result.value
    typer.echo(f"   Index size : {len(report.index)}")
    for record_id in report.added:
        typer.echo(f"   + {record_id}")
    for record_id in report.dropped:
        typer.echo(f"   - {record_id}")
    if not report.written:
        typer.echo("   Index unchanged.")


@market_app.command("stats")
def market_stats(
    chart: bool = typer.Option(True, "--chart/--no-chart", help="Show the risk distribution."),
) -> None:
    """Show record counts by status and the risk distribution."""
    async def _run(runtime: MarketRuntime):
        return await runtime.actions.refresh()

    stats = summarize(_with_runtime(_run))
    typer.echo(f"\n📊 Total Records : {stats.total}")
    typer.echo(f"   Pending       : {stats.pending}")
    typer.echo(f"   Analyzed      : {stats.analyzed}")
    typer.echo(f"   Flagged       : {stats.flagged}")
    typer.echo(f"   Avg Risk      : {stats.average_risk:.1f}/10")
    if chart:
        typer.echo("")
        typer.echo(render_risk_chart(stats))
    typer.echo("")


@market_app.command("history")
def market_history() -> None:
    """Show your most recent actions."""
    ctx = load_context()
    if not ctx.history:
        typer.echo("No recent actions.")
        return
    for line in ctx.history:
        typer.echo(f"  • {line}")
