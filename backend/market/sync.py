"""Market sync engine: key-index synchronisation over a key-value contract.

The contract stores one JSON blob per record under ``<prefix><id>`` and an
ordered list of ids under the index key.  The engine turns that flat store
into an ordered in-memory snapshot and sequences the multi-step writes:

* ``load_all``: full resync, an index read and then one read per record.
* ``create_record``: record write, then index read-modify-write.
* ``set_status``: simulated analysis delay, record read-modify-write.
* ``repair_index``: rebuild the index from every decodable record blob.

Every mutation ends with a full ``load_all``; the snapshot is never patched
incrementally.  Nothing is locked: concurrent writers race on the index and
the last write wins.
"""

from __future__ import annotations

import asyncio
import secrets
import string
from time import time
from typing import Any, Callable, Iterable, Mapping, Optional

from backend.config import settings
from backend.market.capabilities import PayloadCodec, RandomRiskScorer, RiskScorer, SimulatedFheCodec
from backend.market.codec import (
    decode_index,
    decode_record,
    decode_wire,
    encode_index,
    encode_record,
    replace_status,
    wire_to_record,
)
from backend.market.errors import (
    DecodeError,
    GatewayUnavailable,
    InvalidRecord,
    InvalidTransition,
    MarketError,
    NotConnected,
    RecordNotFound,
)
from backend.market.gateway import ContractGateway
from backend.market.models import Category, Record, RepairReport, Status, can_transition

SnapshotListener = Callable[[list[Record]], None]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_record_id(now: Optional[float] = None) -> str:
    """Return ``<epoch-millis>-<7 random base36 chars>``."""
    millis = int((time() if now is None else now) * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"{millis}-{suffix}"


class MarketSyncEngine:
    """Owns the record snapshot and every read/write against the gateway."""

    def __init__(
        self,
        gateway: ContractGateway,
        payload_codec: Optional[PayloadCodec] = None,
        scorer: Optional[RiskScorer] = None,
        *,
        index_key: Optional[str] = None,
        record_key_prefix: Optional[str] = None,
        analysis_delay: Optional[float] = None,
        clock: Callable[[], float] = time,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.gateway = gateway
        self.payload_codec = payload_codec or SimulatedFheCodec()
        self.scorer = scorer or RandomRiskScorer()
        self.index_key = index_key or settings.index_key
        self.record_key_prefix = record_key_prefix or settings.record_key_prefix
        self.analysis_delay = settings.analysis_delay if analysis_delay is None else analysis_delay
        self._clock = clock
        self._id_factory = id_factory or (lambda: generate_record_id(self._clock()))

        self._snapshot: list[Record] = []
        self._listeners: list[SnapshotListener] = []
        self._account: Optional[str] = None
        # Ids whose record write landed but whose index write did not.
        self._orphans: dict[str, None] = {}

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    @property
    def account(self) -> Optional[str]:
        return self._account

    def connect(self, account: str) -> None:
        account = account.strip()
        if not account:
            raise ValueError("account address must not be empty")
        self._account = account

    def disconnect(self) -> None:
        self._account = None

    def is_owner(self, record: Record) -> bool:
        return record.is_owned_by(self._account)

    def _require_account(self) -> str:
        if not self._account:
            raise NotConnected()
        return self._account

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> list[Record]:
        return list(self._snapshot)

    @property
    def orphans(self) -> list[str]:
        return list(self._orphans)

    def get(self, record_id: str) -> Optional[Record]:
        """Look *record_id* up in the current snapshot."""
        for record in self._snapshot:
            if record.id == record_id:
                return record
        return None

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call *listener* with every new snapshot.  Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _replace_snapshot(self, records: list[Record]) -> None:
        self._snapshot = records
        for listener in list(self._listeners):
            listener(list(records))

    def record_key(self, record_id: str) -> str:
        return f"{self.record_key_prefix}{record_id}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def load_all(self) -> list[Record]:
        """Rebuild the snapshot from the contract.

        Never raises for read problems: an unavailable contract returns ``[]``
        and leaves the snapshot untouched; a missing or garbled index is an
        empty index; unreadable records are skipped one by one.
        """
        try:
            available = await self.gateway.is_available()
        except GatewayUnavailable as exc:
            print(f"[SYNC] availability check failed: {exc}")
            return []
        if not available:
            print("[SYNC] contract is not available")
            return []

        try:
            raw_index = await self.gateway.get_data(self.index_key)
        except GatewayUnavailable as exc:
            print(f"[SYNC] could not read index {self.index_key!r}: {exc}")
            return []

        records: list[Record] = []
        for record_id in _unique(self._decode_index_or_empty(raw_index)):
            record = await self._fetch_record(record_id)
            if record is not None:
                records.append(record)

        records.sort(key=lambda r: r.created_at, reverse=True)
        self._replace_snapshot(records)
        return list(records)

    def _decode_index_or_empty(self, raw: bytes) -> list[str]:
        try:
            return decode_index(raw, self.index_key)
        except DecodeError as exc:
            print(f"[SYNC] treating index as empty: {exc}")
            return []

    async def _fetch_record(self, record_id: str, tolerate_unavailable: bool = True) -> Optional[Record]:
        key = self.record_key(record_id)
        try:
            raw = await self.gateway.get_data(key)
        except GatewayUnavailable as exc:
            if not tolerate_unavailable:
                raise
            print(f"[SYNC] skipping {key}: {exc}")
            return None
        try:
            record = decode_record(record_id, raw, key)
        except DecodeError as exc:
            print(f"[SYNC] skipping {key}: {exc.reason}")
            return None
        if record is None:
            print(f"[SYNC] skipping {key}: empty blob")
        return record

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def create_record(self, fields: Mapping[str, Any]) -> Record:
        """Write a new pending record and append its id to the index.

        The record blob is written before the index.  If the index update
        fails the record is left orphaned (remembered in :attr:`orphans`)
        and the error propagates; :meth:`repair_index` reattaches it.
        """
        account = self._require_account()
        submission = _validate_submission(fields)

        record = Record(
            id=self._id_factory(),
            encoded_payload=self.payload_codec.encode(submission),
            created_at=int(self._clock()),
            owner=account,
            category=submission["category"],
            status=Status.PENDING,
            risk_level=self.scorer.score(submission),
        )

        await self.gateway.set_data(self.record_key(record.id), encode_record(record), sender=account)

        try:
            raw_index = await self.gateway.get_data(self.index_key)
            ids = self._decode_index_or_empty(raw_index)
            ids.append(record.id)
            await self.gateway.set_data(self.index_key, encode_index(ids), sender=account)
        except MarketError:
            self._orphans[record.id] = None
            print(f"[SYNC] record {record.id} written but not indexed")
            raise

        await self.load_all()
        return record

    async def set_status(self, record_id: str, new_status: Status | str) -> Record:
        """Move a record to *new_status* after the simulated analysis delay.

        Only ``status`` is rewritten; every other stored field, including
        ones this client does not know about, is preserved.
        """
        account = self._require_account()
        try:
            requested = Status(new_status)
        except ValueError as exc:
            raise InvalidRecord(f"Unknown status {new_status!r}") from exc

        await asyncio.sleep(self.analysis_delay)

        key = self.record_key(record_id)
        raw = await self.gateway.get_data(key)
        wire = decode_wire(raw, key)
        if wire is None:
            raise RecordNotFound(record_id)
        if not can_transition(wire.status, requested):
            raise InvalidTransition(record_id, wire.status.value, requested.value)

        await self.gateway.set_data(key, replace_status(raw, requested), sender=account)

        await self.load_all()
        return wire_to_record(record_id, wire.model_copy(update={"status": requested}))

    async def analyze(self, record_id: str) -> Record:
        return await self.set_status(record_id, Status.ANALYZED)

    async def flag(self, record_id: str) -> Record:
        return await self.set_status(record_id, Status.FLAGGED)

    async def repair_index(self) -> RepairReport:
        """Rebuild the index from every record blob that still decodes.

        Candidates are the current index, the gateway's key scan (when
        supported) and this session's orphans.  Surviving index entries keep
        their order; recovered ids are appended oldest first.  The index is
        only rewritten when it changes.
        """
        account = self._require_account()

        current = self._decode_index_or_empty(await self.gateway.get_data(self.index_key))
        candidates: dict[str, None] = dict.fromkeys(current)
        if self.gateway.can_scan:
            for key in await self.gateway.scan_keys(self.record_key_prefix):
                if key != self.index_key:
                    candidates.setdefault(key[len(self.record_key_prefix):], None)
        for record_id in self._orphans:
            candidates.setdefault(record_id, None)

        good: dict[str, Record] = {}
        for record_id in candidates:
            record = await self._fetch_record(record_id, tolerate_unavailable=False)
            if record is not None:
                good[record_id] = record

        kept = [i for i in _unique(current) if i in good]
        recovered = sorted(
            (good[i] for i in good if i not in kept),
            key=lambda r: r.created_at,
        )
        index = kept + [r.id for r in recovered]
        report = RepairReport(
            index=index,
            added=[r.id for r in recovered],
            dropped=[i for i in _unique(current) if i not in good],
            written=index != current,
        )

        if report.written:
            await self.gateway.set_data(self.index_key, encode_index(index), sender=account)
            print(f"[SYNC] index rebuilt: {len(report.added)} added, {len(report.dropped)} dropped")
        for record_id in index:
            self._orphans.pop(record_id, None)

        await self.load_all()
        return report


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def _validate_submission(fields: Mapping[str, Any]) -> dict[str, str]:
    content = str(fields.get("content") or "").strip()
    raw_category = str(fields.get("category") or "").strip()
    if not raw_category or not content:
        raise InvalidRecord("Please fill required fields")
    try:
        category = Category.parse(raw_category)
    except ValueError as exc:
        raise InvalidRecord(str(exc)) from exc
    return {
        "category": category.value,
        "description": str(fields.get("description") or ""),
        "content": content,
    }
