"""
Entity kinds and typed versions.

An EntityKind binds a kind name to a pydantic attribute schema and a
temporality. Versioned[T] is what repositories hand back: the validated
schema instance together with the intervals it was stored under.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Mapping, TypeVar

from pydantic import BaseModel

from chronostore.temporal.interval import Interval
from chronostore.temporal.record import EntityId, Temporality, VersionRecord

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class EntityKind(Generic[T]):
    """A versioned entity type.

    Attributes:
        name: Kind name, scoping identities and sequences
        schema: pydantic model validating the attribute payload
        temporality: Whether the kind tracks business time
    """

    name: str
    schema: type[T]
    temporality: Temporality = Temporality.BI

    @property
    def bitemporal(self) -> bool:
        return self.temporality is Temporality.BI

    def dump(self, attributes: T | Mapping[str, Any]) -> dict[str, Any]:
        """Validate attributes and return their JSON-compatible payload."""
        model = self.load(attributes)
        return model.model_dump(mode="json")

    def load(self, attributes: T | Mapping[str, Any]) -> T:
        if isinstance(attributes, self.schema):
            return attributes
        if isinstance(attributes, BaseModel):
            attributes = attributes.model_dump()
        return self.schema.model_validate(dict(attributes))


@dataclass(frozen=True)
class Versioned(Generic[T]):
    """One version of an entity, with its attributes parsed."""

    entity_id: EntityId
    model: T
    processing: Interval
    business: Interval | None
    record: VersionRecord

    @classmethod
    def from_record(cls, record: VersionRecord, kind: EntityKind[T]) -> Versioned[T]:
        return cls(
            entity_id=record.entity_id,
            model=kind.schema.model_validate(dict(record.attributes)),
            processing=record.processing,
            business=record.business,
            record=record,
        )

    def is_current(self) -> bool:
        return self.record.is_current()

    def to_dict(self) -> dict[str, Any]:
        return self.record.to_dict()
