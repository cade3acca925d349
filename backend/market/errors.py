"""Error taxonomy for market synchronisation and chain writes.

Read-path errors (``GatewayUnavailable``, ``DecodeError``) are absorbed by the
sync engine; write-path errors abort the operation and are reported through
the transaction tracker.
"""

from __future__ import annotations


class MarketError(Exception):
    """Base class for every error raised by the market core."""


class GatewayUnavailable(MarketError):
    """The contract is not reachable or reports itself inactive."""


class DecodeError(MarketError):
    """A stored blob could not be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot decode {key!r}: {reason}")


class NotConnected(MarketError):
    """A mutating operation was attempted without a connected account."""

    def __init__(self, message: str = "Please connect wallet first"):
        super().__init__(message)


class RecordNotFound(MarketError):
    """The targeted record has no blob on chain."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__("Data not found")


class InvalidTransition(MarketError):
    """The requested status change is not allowed from the current status."""

    def __init__(self, record_id: str, current: str, requested: str):
        self.record_id = record_id
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move record {record_id!r} from {current} to {requested}")


class InvalidRecord(MarketError):
    """Submitted fields are incomplete or use an unknown category."""


class UserRejected(MarketError):
    """The signer declined the transaction."""

    def __init__(self, message: str = "user rejected transaction"):
        super().__init__(message)


class WriteFailed(MarketError):
    """Any other chain-write failure."""
