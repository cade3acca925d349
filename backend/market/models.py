"""Plain dataclass models for market records and transaction state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from time import time
from typing import Optional


class Category(str, Enum):
    NARCOTICS = "Narcotics"
    WEAPONS = "Weapons"
    CREDENTIALS = "Credentials"
    DIGITAL = "Digital"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Return the member whose value is *value* (case-insensitive)."""
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        raise ValueError(f"Unknown category {value!r}")


class Status(str, Enum):
    PENDING = "pending"
    ANALYZED = "analyzed"
    FLAGGED = "flagged"


# pending -> analyzed -> flagged, pending -> flagged.  flagged is terminal.
ALLOWED_TRANSITIONS: dict[Status, frozenset[Status]] = {
    Status.PENDING: frozenset({Status.ANALYZED, Status.FLAGGED}),
    Status.ANALYZED: frozenset({Status.FLAGGED}),
    Status.FLAGGED: frozenset(),
}


def can_transition(current: Status, requested: Status) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


@dataclass
class Record:
    id: str
    encoded_payload: str
    created_at: int
    owner: str
    category: str
    status: Status = Status.PENDING
    risk_level: int = 0

    def is_owned_by(self, account: Optional[str]) -> bool:
        """Compare *account* with the record owner, ignoring case."""
        if not account:
            return False
        return self.owner.lower() == account.lower()

    def short_id(self) -> str:
        return self.id[:6]


class TxStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class TxState:
    status: TxStatus = TxStatus.IDLE
    message: str = ""
    operation: Optional[str] = None
    error: Optional[str] = None
    updated_at: float = field(default_factory=time)

    @property
    def visible(self) -> bool:
        return self.status is not TxStatus.IDLE

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "message": self.message,
            "operation": self.operation,
            "error": self.error,
            "visible": self.visible,
            "updated_at": self.updated_at,
        }


@dataclass
class RepairReport:
    """Outcome of an index reconciliation pass."""

    index: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    written: bool = False
