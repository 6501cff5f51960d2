"""
Version chain: every record sharing one entity identity.

The chain enforces that the business x processing rectangles of its records
never overlap. That single rule gives "at most one processing-current record
per business period", and lets point lookups fail loudly instead of guessing
when storage was corrupted by a racing writer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator

from chronostore.core.exceptions import (
    InconsistentChainError,
    OverlapError,
    TemporalConstraintError,
)
from chronostore.temporal.interval import INFINITY, TimeLike, to_bound, to_instant
from chronostore.temporal.record import EntityId, VersionRecord, normalize_identity


class VersionChain:
    """Ordered set of version records for one logical entity."""

    def __init__(
        self,
        kind: str,
        entity_id: EntityId,
        records: Iterable[VersionRecord] = (),
        bitemporal: bool = True,
    ):
        """Wrap records already admitted to storage.

        Records passed here are not re-validated; use append() to admit new
        ones and validate() to audit a loaded chain.

        Args:
            kind: Entity kind name
            entity_id: Identity shared by the records
            records: Existing records, any order
            bitemporal: Whether records carry a business interval
        """
        self.kind = kind
        self.entity_id = normalize_identity(entity_id)
        self.bitemporal = bitemporal
        self._records: list[VersionRecord] = list(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VersionRecord]:
        return iter(self.history())

    def __bool__(self) -> bool:
        return bool(self._records)

    @property
    def records(self) -> tuple[VersionRecord, ...]:
        return tuple(self._records)

    # =========================================================================
    # Admission
    # =========================================================================

    def check(self, record: VersionRecord, ignore: VersionRecord | None = None) -> None:
        """Validate that record may join the chain.

        Args:
            record: Candidate record
            ignore: Existing record to leave out of the overlap check

        Raises:
            TemporalConstraintError: record belongs elsewhere or has the wrong shape
            OverlapError: record overlaps an existing record on both axes
        """
        if record.kind != self.kind or record.entity_id != self.entity_id:
            raise TemporalConstraintError(
                f"Record {record} does not belong to chain {self.kind}#{self.entity_id}",
                kind=self.kind,
                entity_id=self.entity_id,
            )
        if record.is_bitemporal != self.bitemporal:
            expected = "bi-temporal" if self.bitemporal else "uni-temporal"
            raise TemporalConstraintError(
                f"Chain {self.kind}#{self.entity_id} is {expected}; got {record}",
                kind=self.kind,
                entity_id=self.entity_id,
            )
        ignore_key = ignore.key if ignore is not None else None
        for existing in self._records:
            if existing.key == ignore_key:
                continue
            if _collides(existing, record):
                raise OverlapError(
                    f"{record} overlaps {existing}",
                    kind=self.kind,
                    entity_id=self.entity_id,
                    existing=existing,
                    candidate=record,
                )

    def append(self, record: VersionRecord) -> VersionRecord:
        """Admit a new record after validating it against the chain."""
        self.check(record)
        self._records.append(record)
        return record

    def replace(self, old: VersionRecord, new: VersionRecord) -> VersionRecord:
        """Swap a record for its processing-closed copy.

        Only the processing thru may change; everything else identifies the
        same stored record.
        """
        if new.key != old.key or new.business != old.business or new.attributes != old.attributes:
            raise TemporalConstraintError(
                f"Records are immutable; {old} can only have its processing interval closed",
                kind=self.kind,
                entity_id=self.entity_id,
            )
        for index, existing in enumerate(self._records):
            if existing.key == old.key:
                self.check(new, ignore=existing)
                self._records[index] = new
                return new
        raise TemporalConstraintError(
            f"{old} is not part of chain {self.kind}#{self.entity_id}",
            kind=self.kind,
            entity_id=self.entity_id,
        )

    def validate(self) -> None:
        """Audit every pair of records.

        Raises:
            InconsistentChainError: two records overlap on both axes
        """
        records = self.history()
        for i, left in enumerate(records):
            for right in records[i + 1:]:
                if _collides(left, right):
                    raise InconsistentChainError(
                        f"{left} overlaps {right}",
                        kind=self.kind,
                        entity_id=self.entity_id,
                    )

    # =========================================================================
    # Lookups
    # =========================================================================

    def current_as_of(self, business_time: TimeLike | None = None) -> VersionRecord | None:
        """The currently believed record valid at business_time.

        Only records whose processing thru is INFINITY qualify. Uni-temporal
        chains ignore business_time.

        Raises:
            InconsistentChainError: more than one current record matched
            TemporalConstraintError: business_time missing on a bi-temporal chain
        """
        if self.bitemporal:
            instant = to_instant(self._require_business_time(business_time))
            matches = [
                r for r in self._records if r.is_current() and r.business.contains(instant)
            ]
        else:
            matches = [r for r in self._records if r.is_current()]
        return self._single(matches, "current", business_time=business_time)

    def as_of(
        self,
        business_time: TimeLike | None,
        processing_time: TimeLike,
    ) -> VersionRecord | None:
        """The record believed at processing_time to be valid at business_time.

        A processing_time of INFINITY asks for the current belief.

        Returns:
            The matching record, or None if the entity did not exist there

        Raises:
            InconsistentChainError: more than one record matched
            TemporalConstraintError: business_time missing on a bi-temporal chain
        """
        processing = to_bound(processing_time)
        if processing is INFINITY:
            return self.current_as_of(business_time)
        if self.bitemporal:
            business = to_instant(self._require_business_time(business_time))
            matches = [
                r for r in self._records
                if r.business.contains(business) and r.processing.contains(processing)
            ]
        else:
            matches = [r for r in self._records if r.processing.contains(processing)]
        return self._single(
            matches, "as-of", business_time=business_time, processing_time=processing_time
        )

    def history(self) -> list[VersionRecord]:
        """All records, oldest processing first (ties by business start)."""
        return sorted(
            self._records,
            key=lambda r: (r.processing.start, r.business_interval.start),
        )

    def current(self) -> list[VersionRecord]:
        """Processing-current records ordered by business start."""
        return sorted(
            (r for r in self._records if r.is_current()),
            key=lambda r: r.business_interval.start,
        )

    def latest(self) -> VersionRecord | None:
        """The current record whose business interval is open-ended."""
        matches = [
            r for r in self._records
            if r.is_current() and r.business_interval.is_infinite()
        ]
        return self._single(matches, "open-ended")

    def first_processing_start(self) -> datetime | None:
        if not self._records:
            return None
        return min(r.processing.start for r in self._records)

    def is_active(self, business_time: TimeLike | None = None) -> bool:
        return self.current_as_of(business_time) is not None

    def _require_business_time(self, business_time: TimeLike | None) -> TimeLike:
        if business_time is None:
            raise TemporalConstraintError(
                f"{self.kind} is bi-temporal; lookups need a business time",
                kind=self.kind,
                entity_id=self.entity_id,
            )
        return business_time

    def _single(self, matches: list[VersionRecord], lookup: str, **context) -> VersionRecord | None:
        if len(matches) > 1:
            raise InconsistentChainError(
                f"{len(matches)} records match {lookup} lookup for {self.kind}#{self.entity_id}",
                kind=self.kind,
                entity_id=self.entity_id,
                matches=matches,
                **context,
            )
        return matches[0] if matches else None

    def __repr__(self) -> str:
        return f"VersionChain({self.kind!r}, {self.entity_id!r}, records={len(self._records)})"


def _collides(left: VersionRecord, right: VersionRecord) -> bool:
    return (
        left.business_interval.overlaps(right.business_interval)
        and left.processing.overlaps(right.processing)
    )
