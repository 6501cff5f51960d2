"""
Storage collaborator contract.

The temporal core only needs to append records, close a record's processing
interval, and scan records back. Anything that can do that atomically within
one transaction (a SQL table, a log, a dict) can back the store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Callable

from chronostore.temporal.chain import VersionChain
from chronostore.temporal.interval import TimeLike
from chronostore.temporal.record import EntityId, VersionRecord

RecordFilter = Callable[[VersionRecord], bool]


class VersionStore(ABC):
    """Persistence for version records."""

    @abstractmethod
    def append(self, record: VersionRecord) -> VersionRecord:
        """Persist a new record.

        Raises:
            StorageError: the record could not be written
        """

    @abstractmethod
    def close(self, record: VersionRecord, processing_thru: TimeLike) -> VersionRecord:
        """Close a stored record's processing interval.

        Returns:
            The closed copy of the record

        Raises:
            OverlapError: the record is no longer current (concurrent writer)
            StorageError: the record does not exist or could not be written
        """

    @abstractmethod
    def scan(self, kind: str, entity_id: EntityId) -> list[VersionRecord]:
        """All records of one entity, in storage order."""

    @abstractmethod
    def scan_all(self, kind: str, predicate: RecordFilter | None = None) -> list[VersionRecord]:
        """All records of one kind, grouped by entity in insertion order."""

    @abstractmethod
    def entity_ids(self, kind: str) -> list[EntityId]:
        """Identities of one kind, in order of first insertion."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Atomic unit of work; writes inside it are visible to reads inside it.

        Nested transactions join the outermost one. An exception rolls back
        every write made since the outermost transaction began.
        """

    # =========================================================================
    # Chain helpers
    # =========================================================================

    def chain(self, kind: str, entity_id: EntityId, bitemporal: bool = True) -> VersionChain:
        """Load one entity's chain."""
        return VersionChain(kind, entity_id, self.scan(kind, entity_id), bitemporal=bitemporal)

    def chains(
        self,
        kind: str,
        bitemporal: bool = True,
        predicate: RecordFilter | None = None,
    ) -> list[VersionChain]:
        """Load every chain of one kind, in insertion order."""
        grouped: dict[EntityId, list[VersionRecord]] = {}
        for record in self.scan_all(kind, predicate):
            grouped.setdefault(record.entity_id, []).append(record)
        return [
            VersionChain(kind, entity_id, records, bitemporal=bitemporal)
            for entity_id, records in grouped.items()
        ]
