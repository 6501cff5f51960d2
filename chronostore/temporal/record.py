"""
Version records: one immutable snapshot of an entity on both time axes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Hashable, Mapping

from chronostore.temporal.interval import (
    INFINITY_INSTANT,
    Interval,
    TimeLike,
)


class Temporality(str, Enum):
    """Which time axes an entity kind tracks."""

    UNI = "uni"  # processing time only
    BI = "bi"  # business + processing time


EntityId = Hashable


def normalize_identity(entity_id: Any) -> EntityId:
    """Make an identity hashable and canonical (lists become tuples)."""
    if isinstance(entity_id, list):
        return tuple(normalize_identity(part) for part in entity_id)
    if isinstance(entity_id, tuple):
        return tuple(normalize_identity(part) for part in entity_id)
    return entity_id


def encode_identity(entity_id: EntityId) -> str:
    """Stable string form of an identity, used as a storage key."""
    return json.dumps(entity_id, sort_keys=True, separators=(",", ":"))


def decode_identity(encoded: str) -> EntityId:
    return normalize_identity(json.loads(encoded))


@dataclass(frozen=True)
class VersionRecord:
    """One version of one logical entity.

    Attributes:
        kind: Entity kind name (identities are scoped per kind)
        entity_id: Identity shared by every version of the entity
        attributes: Domain payload, opaque to the temporal core
        processing: When the system believed this version
        business: When this version was true in the world (None for uni-temporal kinds)
    """

    kind: str
    entity_id: EntityId
    attributes: Mapping[str, Any] = field(hash=False)
    processing: Interval
    business: Interval | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "entity_id", normalize_identity(self.entity_id))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def is_bitemporal(self) -> bool:
        return self.business is not None

    @property
    def business_interval(self) -> Interval:
        """Business interval, implicit and infinite for uni-temporal records."""
        return self.business if self.business is not None else Interval.all_time()

    def is_current(self) -> bool:
        """Currently believed: processing thru is INFINITY."""
        return self.processing.is_infinite()

    @property
    def key(self) -> tuple:
        """Storage key of this record; unchanged when its processing interval closes."""
        business_start = self.business.start if self.business is not None else None
        return (self.kind, self.entity_id, business_start, self.processing.start)

    def closed(self, processing_thru: TimeLike) -> VersionRecord:
        """Copy with the processing interval closed at processing_thru.

        Raises:
            InvalidIntervalError: if processing_thru is not after the processing start
        """
        return replace(self, processing=self.processing.closed_at(processing_thru))

    def to_dict(self, infinity=INFINITY_INSTANT) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "entity_id": self.entity_id,
            "attributes": dict(self.attributes),
            "business": self.business.to_dict(infinity) if self.business else None,
            "processing": self.processing.to_dict(infinity),
        }

    def __str__(self) -> str:
        business = str(self.business) if self.business else "-"
        return f"{self.kind}#{self.entity_id} business={business} processing={self.processing}"
