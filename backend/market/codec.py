"""Wire codecs for the key index and for individual records.

Both wire shapes are UTF-8 JSON:

* index: ``["<id>", "<id>", ...]`` under ``settings.index_key``
* record: ``{"data", "timestamp", "owner", "category", "status", "riskLevel"}``
  under ``settings.record_key(<id>)``

Empty bytes decode to "absent" (``[]`` / ``None``); anything else that does
not validate raises :class:`~backend.market.errors.DecodeError`.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from backend.market.errors import DecodeError
from backend.market.models import Record, Status

_INDEX_ADAPTER: TypeAdapter[list[str]] = TypeAdapter(list[str])


class RecordWire(BaseModel):
    """Stored shape of one record.  Unknown fields are kept on re-encode.

    Validation is stricter than a plain JSON read: a fractional ``riskLevel``
    or a ``status`` outside pending/analyzed/flagged fails, and the sync
    engine skips such records as undecodable.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    data: str
    timestamp: int
    owner: str
    category: str
    status: Status = Status.PENDING
    risk_level: int = Field(default=0, alias="riskLevel")

    @field_validator("status", mode="before")
    @classmethod
    def _missing_status_is_pending(cls, value: Any) -> Any:
        return Status.PENDING if value in (None, "") else value

    @field_validator("risk_level", mode="before")
    @classmethod
    def _missing_risk_is_zero(cls, value: Any) -> Any:
        return 0 if value in (None, "") else value


# ---------------------------------------------------------------------------
# Key index
# ---------------------------------------------------------------------------

def encode_index(ids: Iterable[str]) -> bytes:
    return _INDEX_ADAPTER.dump_json(list(ids))


def decode_index(raw: bytes, key: str = "market_keys") -> list[str]:
    """Decode an index blob.  Empty input is an empty index."""
    if not raw:
        return []
    try:
        return _INDEX_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(key, _first_error(exc)) from exc


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def decode_wire(raw: bytes, key: str) -> Optional[RecordWire]:
    """Validate a record blob into its wire model, or ``None`` when empty."""
    if not raw:
        return None
    try:
        return RecordWire.model_validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(key, _first_error(exc)) from exc


def encode_wire(wire: RecordWire) -> bytes:
    return wire.model_dump_json(by_alias=True).encode("utf-8")


def replace_status(raw: bytes, status: Status) -> bytes:
    """Return the stored blob *raw* with only its ``status`` field replaced.

    Every other field is written back exactly as stored, so absent fields
    stay absent.  *raw* must already have passed :func:`decode_wire`.
    """
    item = json.loads(raw)
    item["status"] = status.value
    return json.dumps(item, separators=(",", ":")).encode("utf-8")


def wire_to_record(record_id: str, wire: RecordWire) -> Record:
    return Record(
        id=record_id,
        encoded_payload=wire.data,
        created_at=wire.timestamp,
        owner=wire.owner,
        category=wire.category,
        status=wire.status,
        risk_level=wire.risk_level,
    )


def record_to_wire(record: Record) -> RecordWire:
    return RecordWire(
        data=record.encoded_payload,
        timestamp=record.created_at,
        owner=record.owner,
        category=record.category,
        status=record.status,
        risk_level=record.risk_level,
    )


def encode_record(record: Record) -> bytes:
    return encode_wire(record_to_wire(record))


def decode_record(record_id: str, raw: bytes, key: Optional[str] = None) -> Optional[Record]:
    """Decode the blob stored for *record_id*.  ``None`` when the blob is empty."""
    wire = decode_wire(raw, key or record_id)
    return wire_to_record(record_id, wire) if wire else None


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"{loc}: {first['msg']}" if loc else first["msg"]
