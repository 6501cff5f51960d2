"""
In-memory version store.

Useful for tests and single-process tools. Writes made inside a transaction go
to a per-thread pending overlay: the writing thread reads through it, other
threads keep seeing the committed chains. When the outermost transaction exits
the pending writes are replayed against the committed chains and published
under the store lock in one step. Rolling back just discards the overlay.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from chronostore.core.exceptions import OverlapError, StorageError
from chronostore.storage.base import RecordFilter, VersionStore
from chronostore.temporal.interval import TimeLike
from chronostore.temporal.record import EntityId, VersionRecord, normalize_identity

ChainKey = tuple[str, EntityId]


class _Pending:
    """Uncommitted writes of one thread's transaction."""

    def __init__(self):
        # Working copies of every chain the transaction touched, in touch order
        self.chains: dict[ChainKey, list[VersionRecord]] = {}
        self.writes: list[tuple[str, VersionRecord, TimeLike | None]] = []


class InMemoryVersionStore(VersionStore):
    """Thread-safe dict-of-lists store."""

    def __init__(self):
        self._chains: dict[str, dict[EntityId, list[VersionRecord]]] = {}
        self._lock = threading.RLock()
        self._local = threading.local()

    # =========================================================================
    # Writes
    # =========================================================================

    def append(self, record: VersionRecord) -> VersionRecord:
        pending = self._pending()
        with self._lock:
            if pending is None:
                records = self._committed(record.kind, record.entity_id)
                _append_to(records, record)
                self._chains.setdefault(record.kind, {})[record.entity_id] = records
            else:
                _append_to(self._working(pending, record.kind, record.entity_id), record)
                pending.writes.append(("append", record, None))
        return record

    def close(self, record: VersionRecord, processing_thru: TimeLike) -> VersionRecord:
        pending = self._pending()
        with self._lock:
            if pending is None:
                records = self._chains.get(record.kind, {}).get(record.entity_id, [])
                return _close_in(records, record, processing_thru)
            closed = _close_in(
                self._working(pending, record.kind, record.entity_id), record, processing_thru
            )
            pending.writes.append(("close", record, processing_thru))
            return closed

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._pending() is not None:
            # Nested: join the outer unit of work
            yield
            return

        pending = _Pending()
        self._local.pending = pending
        try:
            yield
        finally:
            self._local.pending = None
        self._publish(pending)

    def _publish(self, pending: _Pending) -> None:
        """Replay pending writes on copies of the committed chains, then swap them in.

        Raises:
            OverlapError: another writer closed a record this transaction closes
            StorageError: a pending write no longer applies to the committed state
        """
        with self._lock:
            staged: dict[ChainKey, list[VersionRecord]] = {}
            for action, record, processing_thru in pending.writes:
                key = (record.kind, record.entity_id)
                if key not in staged:
                    staged[key] = self._committed(record.kind, record.entity_id)
                if action == "append":
                    _append_to(staged[key], record)
                else:
                    _close_in(staged[key], record, processing_thru)
            for (kind, entity_id), records in staged.items():
                self._chains.setdefault(kind, {})[entity_id] = records

    def _pending(self) -> _Pending | None:
        return getattr(self._local, "pending", None)

    def _committed(self, kind: str, entity_id: EntityId) -> list[VersionRecord]:
        """Copy of a committed chain (empty if the entity is unknown)."""
        return list(self._chains.get(kind, {}).get(entity_id, []))

    def _working(self, pending: _Pending, kind: str, entity_id: EntityId) -> list[VersionRecord]:
        key = (kind, entity_id)
        if key not in pending.chains:
            pending.chains[key] = self._committed(kind, entity_id)
        return pending.chains[key]

    # =========================================================================
    # Reads
    # =========================================================================

    def scan(self, kind: str, entity_id: EntityId) -> list[VersionRecord]:
        entity_id = normalize_identity(entity_id)
        pending = self._pending()
        with self._lock:
            if pending is not None and (kind, entity_id) in pending.chains:
                return list(pending.chains[(kind, entity_id)])
            return self._committed(kind, entity_id)

    def scan_all(self, kind: str, predicate: RecordFilter | None = None) -> list[VersionRecord]:
        with self._lock:
            records = [record for chain in self._visible(kind).values() for record in chain]
        if predicate is not None:
            records = [record for record in records if predicate(record)]
        return records

    def entity_ids(self, kind: str) -> list[EntityId]:
        with self._lock:
            return [entity_id for entity_id, chain in self._visible(kind).items() if chain]

    def _visible(self, kind: str) -> dict[EntityId, list[VersionRecord]]:
        """Committed chains of a kind with this thread's pending chains laid over them."""
        visible = dict(self._chains.get(kind, {}))
        pending = self._pending()
        if pending is not None:
            for (pending_kind, entity_id), records in pending.chains.items():
                if pending_kind == kind:
                    visible[entity_id] = records
        return visible

    def kinds(self) -> list[str]:
        with self._lock:
            return list(self._chains)

    def clear(self) -> None:
        """Drop everything. Useful for testing."""
        with self._lock:
            self._chains.clear()


# =============================================================================
# Chain edits
# =============================================================================


def _append_to(records: list[VersionRecord], record: VersionRecord) -> None:
    if any(existing.key == record.key for existing in records):
        raise StorageError(
            f"Duplicate record key {record.key}",
            kind=record.kind,
            entity_id=record.entity_id,
        )
    records.append(record)


def _close_in(
    records: list[VersionRecord], record: VersionRecord, processing_thru: TimeLike
) -> VersionRecord:
    for index, existing in enumerate(records):
        if existing.key != record.key:
            continue
        if not existing.is_current():
            raise OverlapError(
                f"{existing} was already superseded by another writer",
                kind=record.kind,
                entity_id=record.entity_id,
            )
        closed = existing.closed(processing_thru)
        records[index] = closed
        return closed
    raise StorageError(
        f"No stored record with key {record.key}",
        kind=record.kind,
        entity_id=record.entity_id,
    )
