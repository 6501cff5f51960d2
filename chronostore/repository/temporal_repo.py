"""
Repository facade over one entity kind.

Validates attributes with the kind's pydantic schema on the way in, and wraps
records as Versioned[T] on the way out. All temporal behavior is delegated to
the MutationProtocol and the TemporalQueryEngine.
"""

from __future__ import annotations

from typing import Any, Generic, Mapping

from chronostore.core.exceptions import NotFoundError
from chronostore.repository.models import EntityKind, T, Versioned
from chronostore.temporal.chain import VersionChain
from chronostore.temporal.interval import INFINITY, TimeLike
from chronostore.temporal.mutation import MutationProtocol
from chronostore.temporal.query import (
    AsOf,
    Current,
    History,
    Predicate,
    Scheduled,
    TemporalMode,
    TemporalQueryEngine,
)
from chronostore.temporal.record import EntityId, VersionRecord


class TemporalRepository(Generic[T]):
    """Typed access to the versions of one entity kind."""

    def __init__(self, kind: EntityKind[T], protocol: MutationProtocol):
        self.kind = kind
        self.protocol = protocol

    @property
    def store(self):
        return self.protocol.store

    @property
    def clock(self):
        return self.protocol.clock

    # =========================================================================
    # Mutations
    # =========================================================================

    def insert(
        self,
        attributes: T | Mapping[str, Any],
        entity_id: EntityId | None = None,
        effective_date: TimeLike | None = None,
    ) -> Versioned[T]:
        """Create an entity.

        Args:
            attributes: Schema instance or mapping validated by the schema
            entity_id: Identity; allocated when omitted
            effective_date: Business start (bi-temporal kinds; default now)
        """
        record = self.protocol.insert(
            self.kind.name,
            self.kind.dump(attributes),
            entity_id=entity_id,
            effective_date=effective_date,
            bitemporal=self.kind.bitemporal,
        )
        return self._wrap(record)

    def update(
        self,
        entity_id: EntityId,
        attributes: T | Mapping[str, Any],
        business_date: TimeLike | None = None,
    ) -> Versioned[T]:
        """Correct the version current at business_date (default now)."""
        record = self.protocol.update(
            self.kind.name,
            entity_id,
            self.kind.dump(attributes),
            business_date=business_date,
            bitemporal=self.kind.bitemporal,
        )
        return self._wrap(record)

    def transfer(
        self,
        entity_id: EntityId,
        changes: Mapping[str, Any],
        effective_date: TimeLike,
    ) -> Versioned[T]:
        """Schedule changes to take effect at effective_date.

        Changes are validated against the schema merged over the entity's
        open-ended version.
        """
        latest = self.chain(entity_id).latest() if self.kind.bitemporal else None
        if latest is not None:
            merged = self.kind.schema.model_validate({**latest.attributes, **changes})
            changes = merged.model_dump(mode="json", include=set(changes))
        record = self.protocol.transfer(
            self.kind.name,
            entity_id,
            changes,
            effective_date,
            bitemporal=self.kind.bitemporal,
        )
        return self._wrap(record)

    def terminate(self, entity_id: EntityId, business_date: TimeLike | None = None) -> Versioned[T]:
        record = self.protocol.terminate(
            self.kind.name,
            entity_id,
            business_date=business_date,
            bitemporal=self.kind.bitemporal,
        )
        return self._wrap(record)

    # =========================================================================
    # Point lookups
    # =========================================================================

    def find_by_id(
        self, entity_id: EntityId, business_time: TimeLike | None = None
    ) -> Versioned[T] | None:
        """Current version valid at business_time (default now)."""
        record = self.chain(entity_id).current_as_of(self._business_time(business_time))
        return self._wrap(record) if record is not None else None

    def get(self, entity_id: EntityId, business_time: TimeLike | None = None) -> Versioned[T]:
        """Like find_by_id, but raises NotFoundError instead of returning None."""
        found = self.find_by_id(entity_id, business_time)
        if found is None:
            raise NotFoundError(
                f"{self.kind.name}#{entity_id} not found",
                kind=self.kind.name,
                entity_id=entity_id,
                business_time=business_time,
            )
        return found

    def find_by_id_as_of(
        self,
        entity_id: EntityId,
        business_time: TimeLike | None,
        processing_time: Any,
    ) -> Versioned[T] | None:
        """Version believed at processing_time to be valid at business_time."""
        if not self.kind.bitemporal:
            business_time = None
        record = self.chain(entity_id).as_of(business_time, processing_time)
        return self._wrap(record) if record is not None else None

    def exists(self, entity_id: EntityId, business_time: TimeLike | None = None) -> bool:
        return self.find_by_id(entity_id, business_time) is not None

    def history(self, entity_id: EntityId) -> list[Versioned[T]]:
        """Every version, oldest processing first."""
        return [self._wrap(record) for record in self.chain(entity_id).history()]

    def chain(self, entity_id: EntityId) -> VersionChain:
        return self.store.chain(self.kind.name, entity_id, bitemporal=self.kind.bitemporal)

    def current_versions(self) -> list[Versioned[T]]:
        """Every believed version of every entity (all business periods)."""
        return [
            self._wrap(record)
            for chain in self.store.chains(self.kind.name, bitemporal=self.kind.bitemporal)
            for record in chain.current()
        ]

    # =========================================================================
    # Queries
    # =========================================================================

    def find_all_as_of(
        self, business_time: TimeLike | None = None, processing_time: Any = INFINITY
    ) -> list[Versioned[T]]:
        records = self.protocol.find_all_as_of(
            self.kind.name,
            self._business_time(business_time),
            processing_time,
            bitemporal=self.kind.bitemporal,
        )
        return [self._wrap(record) for record in records]

    def find(
        self,
        predicate: Predicate | None = None,
        mode: TemporalMode | None = None,
    ) -> list[Versioned[T]]:
        """Query by attributes under a temporal mode (Current(now) by default)."""
        return [self._wrap(record) for record in self._run(predicate, mode)]

    def count(self, predicate: Predicate | None = None, mode: TemporalMode | None = None) -> int:
        return len(self._run(predicate, mode))

    def scheduled(self, after: TimeLike | None = None) -> list[Versioned[T]]:
        """Believed versions starting strictly after `after` (default now)."""
        if not self.kind.bitemporal:
            return []
        return self.find(mode=Scheduled(after if after is not None else self.clock.now()))

    def _run(self, predicate: Predicate | None, mode: TemporalMode | None) -> list[VersionRecord]:
        mode = mode if mode is not None else Current()
        if isinstance(mode, Current):
            mode = Current(self._business_time(mode.business_time))
        elif isinstance(mode, AsOf):
            mode = AsOf(self._business_time(mode.business_time), mode.processing_time)
        elif isinstance(mode, History):
            return TemporalQueryEngine.run([self.chain(mode.entity_id)], predicate, mode)
        chains = self.store.chains(self.kind.name, bitemporal=self.kind.bitemporal)
        return TemporalQueryEngine.run(chains, predicate, mode)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _business_time(self, business_time: TimeLike | None):
        if not self.kind.bitemporal:
            return None
        return business_time if business_time is not None else self.clock.now()

    def _wrap(self, record: VersionRecord) -> Versioned[T]:
        return Versioned.from_record(record, self.kind)

    def __repr__(self) -> str:
        return f"TemporalRepository({self.kind.name!r})"
