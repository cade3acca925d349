"""Dashboard statistics and filtering over a record snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from backend.market.models import Record, Status

RISK_LEVELS = range(1, 11)


@dataclass
class MarketStats:
    total: int = 0
    pending: int = 0
    analyzed: int = 0
    flagged: int = 0
    average_risk: float = 0.0
    # Index 0 counts risk level 1, index 9 counts risk level 10.
    risk_histogram: list[int] = field(default_factory=lambda: [0] * len(RISK_LEVELS))

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "pending": self.pending,
            "analyzed": self.analyzed,
            "flagged": self.flagged,
            "average_risk": self.average_risk,
            "risk_histogram": list(self.risk_histogram),
        }


def summarize(records: Iterable[Record]) -> MarketStats:
    """Count records by status, average their risk and bucket it 1–10.

    Out-of-range risk levels (including the ``0`` default for records stored
    without one) count towards the average but not the histogram.
    """
    stats = MarketStats()
    risk_sum = 0
    for record in records:
        stats.total += 1
        if record.status is Status.PENDING:
            stats.pending += 1
        elif record.status is Status.ANALYZED:
            stats.analyzed += 1
        elif record.status is Status.FLAGGED:
            stats.flagged += 1
        risk_sum += record.risk_level
        if record.risk_level in RISK_LEVELS:
            stats.risk_histogram[record.risk_level - 1] += 1
    if stats.total:
        stats.average_risk = risk_sum / stats.total
    return stats


def filter_records(records: Iterable[Record], query: str = "", category: str = "all") -> list[Record]:
    """Keep records whose category or owner contains *query* (any case)
    and whose category equals *category* (``"all"`` matches everything)."""
    needle = query.lower()
    return [
        r
        for r in records
        if (needle in r.category.lower() or needle in r.owner.lower())
        and (category == "all" or r.category == category)
    ]
