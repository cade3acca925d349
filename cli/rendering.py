"""Utilities for rendering market records in the CLI."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from backend.market.models import Record, Status, TxState, TxStatus
from backend.market.stats import MarketStats

_STATUS_ICONS = {
    Status.PENDING: "⏳",
    Status.ANALYZED: "✅",
    Status.FLAGGED: "🚩",
}

_TX_ICONS = {
    TxStatus.PENDING: "⏳",
    TxStatus.SUCCESS: "✅",
    TxStatus.ERROR: "❌",
}


def short_address(address: str) -> str:
    """``0x1234...abcd`` style abbreviation for long addresses."""
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


def render_records(records: List[Record], account: Optional[str] = None) -> str:
    """Render records as an aligned table, one per line.

    Records owned by *account* are marked with ``*``.
    """
    if not records:
        return "No market data found."

    lines = [f"  {'ID':<22} {'CATEGORY':<12} {'OWNER':<14} {'DATE':<10} {'RISK':>4}  STATUS"]
    for r in records:
        marker = "*" if r.is_owned_by(account) else " "
        date = datetime.fromtimestamp(r.created_at).strftime("%Y-%m-%d")
        icon = _STATUS_ICONS.get(r.status, "?")
        lines.append(
            f"{marker} {r.id:<22} {r.category:<12} {short_address(r.owner):<14} "
            f"{date:<10} {r.risk_level:>4}  {icon} {r.status.value}"
        )
    return "\n".join(lines)


def render_risk_chart(stats: MarketStats, width: int = 30) -> str:
    """Render the 1–10 risk distribution as horizontal bars."""
    max_count = max(max(stats.risk_histogram), 1)
    lines = ["Risk Level Distribution"]
    for level, count in enumerate(stats.risk_histogram, start=1):
        bar = "█" * round(count / max_count * width)
        lines.append(f"  {level:>2} │{bar} {count}")
    return "\n".join(lines)


def render_tx(state: TxState) -> str:
    """One-line rendering of a tracker state change."""
    if state.status is TxStatus.IDLE:
        return ""
    return f"{_TX_ICONS[state.status]} {state.message}"
