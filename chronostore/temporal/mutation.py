"""
Mutation protocol: the only way version chains change.

Every operation runs under the entity's identity lock and inside one store
transaction. New records are admitted to an in-memory copy of the chain first,
so invariant violations surface before anything is written; the store writes
then happen as one atomic unit.

Usage:
    protocol = MutationProtocol(store, clock=SystemClock(), allocator=InMemorySequenceGenerator())
    record = protocol.insert("Salary", {"amount": 5_000_000}, effective_date=date(2024, 1, 1))
    protocol.update("Salary", record.entity_id, {"amount": 5_500_000}, business_date=date(2024, 7, 1))
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from chronostore.core.clock import Clock, SystemClock
from chronostore.core.exceptions import (
    ConfigurationError,
    IdentityConflictError,
    InvalidIntervalError,
    NotFoundError,
    TemporalConstraintError,
)
from chronostore.identity.sequence import IdentityAllocator
from chronostore.storage.base import VersionStore
from chronostore.storage.locks import LockRegistry
from chronostore.temporal.chain import VersionChain
from chronostore.temporal.interval import INFINITY, Interval, TimeLike, to_instant
from chronostore.temporal.query import TemporalQueryEngine
from chronostore.temporal.record import EntityId, VersionRecord, normalize_identity

logger = logging.getLogger(__name__)


class MutationProtocol:
    """Insert, correct, transfer and terminate versioned entities."""

    def __init__(
        self,
        store: VersionStore,
        clock: Clock | None = None,
        locks: LockRegistry | None = None,
        allocator: IdentityAllocator | None = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.locks = locks or LockRegistry()
        self.allocator = allocator

    # =========================================================================
    # Create
    # =========================================================================

    def insert(
        self,
        kind: str,
        attributes: Mapping[str, Any],
        entity_id: EntityId | None = None,
        effective_date: TimeLike | None = None,
        bitemporal: bool = True,
    ) -> VersionRecord:
        """Create the first version of an entity (or revive a terminated one).

        Args:
            kind: Entity kind name
            attributes: Domain payload
            entity_id: Identity; allocated when omitted (or 0)
            effective_date: Business start (default: now). Bi-temporal only.
            bitemporal: Whether the kind tracks business time

        Returns:
            The inserted record

        Raises:
            ConfigurationError: no identity supplied and no allocator configured
            IdentityConflictError: the identity is already current over that business period
            TemporalConstraintError: effective_date given for a uni-temporal kind
        """
        if not bitemporal and effective_date is not None:
            raise TemporalConstraintError(
                f"{kind} is uni-temporal; it has no effective date",
                kind=kind,
            )
        entity_id = self._resolve_identity(kind, entity_id)

        with self._mutating(kind, entity_id):
            now = self.clock.now()
            chain = self.store.chain(kind, entity_id, bitemporal=bitemporal)
            business = None
            if bitemporal:
                business = Interval.open(effective_date if effective_date is not None else now)
            record = VersionRecord(kind, entity_id, attributes, Interval.open(now), business)

            for existing in chain.current():
                if existing.business_interval.overlaps(record.business_interval):
                    raise IdentityConflictError(
                        f"{kind}#{entity_id} already exists: {existing}",
                        kind=kind,
                        entity_id=entity_id,
                        existing=existing,
                    )
            chain.append(record)
            self.store.append(record)

        logger.debug("Inserted %s", record)
        return record

    # =========================================================================
    # Correct
    # =========================================================================

    def update(
        self,
        kind: str,
        entity_id: EntityId,
        attributes: Mapping[str, Any],
        business_date: TimeLike | None = None,
        bitemporal: bool = True,
    ) -> VersionRecord:
        """Replace the attributes of the version current at business_date.

        Without a business date the new attributes cover the corrected
        version's whole business interval. With a business date inside that
        interval the version is split: the part before business_date keeps the
        old attributes.

        Returns:
            The new record carrying the given attributes

        Raises:
            NotFoundError: nothing is current at the business date
            InvalidIntervalError: a second correction at the same processing instant
            TemporalConstraintError: business_date given for a uni-temporal kind
        """
        if not bitemporal and business_date is not None:
            raise TemporalConstraintError(
                f"{kind} is uni-temporal; it cannot be updated at a business date",
                kind=kind,
                entity_id=entity_id,
            )
        entity_id = normalize_identity(entity_id)

        with self._mutating(kind, entity_id):
            now = self.clock.now()
            chain = self.store.chain(kind, entity_id, bitemporal=bitemporal)
            lookup = None
            if bitemporal:
                lookup = to_instant(business_date) if business_date is not None else now
            current = self._require(chain, lookup)

            if not bitemporal:
                replacements = [VersionRecord(kind, entity_id, attributes, Interval.open(now))]
            elif lookup == current.business.start or business_date is None:
                replacements = [
                    VersionRecord(kind, entity_id, attributes, Interval.open(now), current.business)
                ]
            else:
                replacements = [
                    self._prefix(current, lookup, now),
                    VersionRecord(
                        kind,
                        entity_id,
                        attributes,
                        Interval.open(now),
                        Interval(lookup, current.business.thru),
                    ),
                ]

            self._supersede(chain, [current], replacements, now)

        logger.debug("Updated %s#%s at %s: %s", kind, entity_id, lookup, replacements[-1])
        return replacements[-1]

    # =========================================================================
    # Transfer
    # =========================================================================

    def transfer(
        self,
        kind: str,
        entity_id: EntityId,
        changes: Mapping[str, Any],
        effective_date: TimeLike,
        bitemporal: bool = True,
    ) -> VersionRecord:
        """Schedule attribute changes from effective_date onwards.

        The open-ended version is split at effective_date; the part from
        effective_date carries the old attributes merged with changes.

        Returns:
            The new open-ended record

        Raises:
            NotFoundError: the entity has no open-ended version (terminated)
            InvalidIntervalError: effective_date is not after the open version's start
            TemporalConstraintError: the kind is uni-temporal
        """
        if not bitemporal:
            raise TemporalConstraintError(
                f"{kind} is uni-temporal; transfers need business time",
                kind=kind,
                entity_id=entity_id,
            )
        entity_id = normalize_identity(entity_id)
        effective = to_instant(effective_date)

        with self._mutating(kind, entity_id):
            now = self.clock.now()
            chain = self.store.chain(kind, entity_id, bitemporal=True)
            latest = chain.latest()
            if latest is None:
                raise NotFoundError(
                    f"{kind}#{entity_id} has no open-ended version to transfer",
                    kind=kind,
                    entity_id=entity_id,
                )
            if effective <= latest.business.start:
                raise InvalidIntervalError(
                    f"Transfer date {effective.isoformat()} must be after "
                    f"{latest.business.start.isoformat()}",
                    kind=kind,
                    entity_id=entity_id,
                    start=latest.business.start,
                    thru=effective,
                )

            moved = VersionRecord(
                kind,
                entity_id,
                {**latest.attributes, **changes},
                Interval.open(now),
                Interval.open(effective),
            )
            self._supersede(chain, [latest], [self._prefix(latest, effective, now), moved], now)

        logger.debug("Transferred %s#%s effective %s: %s", kind, entity_id, effective, moved)
        return moved

    # =========================================================================
    # Terminate
    # =========================================================================

    def terminate(
        self,
        kind: str,
        entity_id: EntityId,
        business_date: TimeLike | None = None,
        bitemporal: bool = True,
    ) -> VersionRecord:
        """End an entity.

        Bi-temporal: the business interval ends at business_date (default
        now) and any later scheduled versions are withdrawn. Uni-temporal:
        the current version stops being believed.

        Returns:
            The terminated record, with its processing interval closed

        Raises:
            NotFoundError: nothing is current at the business date
            TemporalConstraintError: business_date given for a uni-temporal kind
        """
        if not bitemporal and business_date is not None:
            raise TemporalConstraintError(
                f"{kind} is uni-temporal; it cannot be terminated at a business date",
                kind=kind,
                entity_id=entity_id,
            )
        entity_id = normalize_identity(entity_id)

        with self._mutating(kind, entity_id):
            now = self.clock.now()
            chain = self.store.chain(kind, entity_id, bitemporal=bitemporal)

            if not bitemporal:
                current = self._require(chain, None)
                closed = self._supersede(chain, [current], [], now)[0]
            else:
                end = to_instant(business_date) if business_date is not None else now
                current = self._require(chain, end)
                scheduled = [r for r in chain.current() if r.business.start > end]
                replacements = []
                if current.business.start < end:
                    replacements.append(self._prefix(current, end, now))
                closed = self._supersede(chain, [current, *scheduled], replacements, now)[0]

        logger.debug("Terminated %s", closed)
        return closed

    # =========================================================================
    # Batch reads
    # =========================================================================

    def find_all_as_of(
        self,
        kind: str,
        business_date: TimeLike | None,
        processing_date: Any = INFINITY,
        bitemporal: bool = True,
    ) -> list[VersionRecord]:
        """Every entity's version at (business_date, processing_date)."""
        chains = self.store.chains(kind, bitemporal=bitemporal)
        return TemporalQueryEngine.find_all_as_of(chains, business_date, processing_date)

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _mutating(self, kind: str, entity_id: EntityId) -> Iterator[None]:
        with self.locks.hold(kind, entity_id):
            with self.store.transaction():
                yield

    def _resolve_identity(self, kind: str, entity_id: EntityId | None) -> EntityId:
        # 0 means "not supplied", as with unset primitive keys
        if entity_id is not None and not (isinstance(entity_id, int) and entity_id == 0):
            return normalize_identity(entity_id)
        if self.allocator is None:
            raise ConfigurationError(
                f"No identity supplied for {kind} and no identity allocator configured",
                kind=kind,
            )
        return self.allocator.next_id(kind)

    @staticmethod
    def _require(chain: VersionChain, business_time) -> VersionRecord:
        current = chain.current_as_of(business_time)
        if current is None:
            raise NotFoundError(
                f"{chain.kind}#{chain.entity_id} has no current version"
                + (f" at {business_time.isoformat()}" if business_time is not None else ""),
                kind=chain.kind,
                entity_id=chain.entity_id,
                business_time=business_time,
            )
        return current

    @staticmethod
    def _prefix(record: VersionRecord, thru, now) -> VersionRecord:
        """Re-assertion of record's old attributes up to thru."""
        return VersionRecord(
            record.kind,
            record.entity_id,
            record.attributes,
            Interval.open(now),
            Interval(record.business.start, thru),
        )

    def _supersede(
        self,
        chain: VersionChain,
        superseded: list[VersionRecord],
        replacements: list[VersionRecord],
        now,
    ) -> list[VersionRecord]:
        """Close superseded records at now and admit replacements.

        Everything is validated against the chain before the first store write.
        """
        closed = []
        for record in superseded:
            closed.append(chain.replace(record, record.closed(now)))
        for record in replacements:
            chain.append(record)

        for record in superseded:
            self.store.close(record, now)
        for record in replacements:
            self.store.append(record)
        return closed
