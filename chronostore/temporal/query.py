"""
Temporal query engine.

A query is (predicate over attributes) x (one temporal mode). The engine holds
no state: results are a pure function of the chains it is handed.

Usage:
    predicate = where("department_id").eq(10) & where("amount").gte(5_000_000)
    records = TemporalQueryEngine.run(chains, predicate, Current(date(2024, 6, 1)))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping, Union

from pydantic import BaseModel, Field

from chronostore.temporal.chain import VersionChain
from chronostore.temporal.interval import INFINITY, TimeLike, to_instant
from chronostore.temporal.record import EntityId, VersionRecord, normalize_identity


# =============================================================================
# Predicates
# =============================================================================


def _eval_eq(actual: Any, expected: Any) -> bool:
    return actual == expected


def _eval_ne(actual: Any, expected: Any) -> bool:
    return actual != expected


def _eval_in(actual: Any, expected: Any) -> bool:
    if isinstance(expected, (list, tuple, set, frozenset)):
        return actual in expected
    return False


def _eval_not_in(actual: Any, expected: Any) -> bool:
    return not _eval_in(actual, expected)


def _eval_gt(actual: Any, expected: Any) -> bool:
    try:
        return actual > expected
    except TypeError:
        return False


def _eval_lt(actual: Any, expected: Any) -> bool:
    try:
        return actual < expected
    except TypeError:
        return False


def _eval_gte(actual: Any, expected: Any) -> bool:
    try:
        return actual >= expected
    except TypeError:
        return False


def _eval_lte(actual: Any, expected: Any) -> bool:
    try:
        return actual <= expected
    except TypeError:
        return False


def _eval_exists(actual: Any, expected: Any) -> bool:
    return actual is not None


def _eval_not_exists(actual: Any, expected: Any) -> bool:
    return actual is None


OPERATORS = {
    "eq": _eval_eq,
    "ne": _eval_ne,
    "in": _eval_in,
    "not_in": _eval_not_in,
    "gt": _eval_gt,
    "lt": _eval_lt,
    "gte": _eval_gte,
    "lte": _eval_lte,
    "exists": _eval_exists,
    "not_exists": _eval_not_exists,
}

Operator = Literal["eq", "ne", "in", "not_in", "gt", "lt", "gte", "lte", "exists", "not_exists"]


class Condition(BaseModel):
    """One attribute check."""

    field: str
    """Attribute name to check."""

    op: Operator
    """The comparison operator."""

    value: Any = None
    """The value to compare against (unused by exists/not_exists)."""

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return OPERATORS[self.op](attributes.get(self.field), self.value)


class Predicate(BaseModel):
    """Conjunction of conditions. An empty predicate matches everything."""

    conditions: list[Condition] = Field(default_factory=list)

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        return all(condition.evaluate(attributes) for condition in self.conditions)

    def __and__(self, other: Predicate) -> Predicate:
        return Predicate(conditions=[*self.conditions, *other.conditions])

    @classmethod
    def all(cls) -> Predicate:
        return cls()

    @classmethod
    def from_dict(cls, filters: Mapping[str, Any]) -> Predicate:
        """Equality predicate from a {field: value} mapping."""
        return cls(
            conditions=[Condition(field=name, op="eq", value=value) for name, value in filters.items()]
        )


class FieldRef:
    """Fluent builder for single-condition predicates."""

    def __init__(self, name: str):
        self.name = name

    def _check(self, op: Operator, value: Any = None) -> Predicate:
        return Predicate(conditions=[Condition(field=self.name, op=op, value=value)])

    def eq(self, value: Any) -> Predicate:
        return self._check("eq", value)

    def ne(self, value: Any) -> Predicate:
        return self._check("ne", value)

    def in_(self, values: Iterable[Any]) -> Predicate:
        return self._check("in", list(values))

    def not_in(self, values: Iterable[Any]) -> Predicate:
        return self._check("not_in", list(values))

    def gt(self, value: Any) -> Predicate:
        return self._check("gt", value)

    def lt(self, value: Any) -> Predicate:
        return self._check("lt", value)

    def gte(self, value: Any) -> Predicate:
        return self._check("gte", value)

    def lte(self, value: Any) -> Predicate:
        return self._check("lte", value)

    def between(self, low: Any, high: Any) -> Predicate:
        """low <= value < high"""
        return self.gte(low) & self.lt(high)

    def exists(self) -> Predicate:
        return self._check("exists")

    def not_exists(self) -> Predicate:
        return self._check("not_exists")


def where(name: str) -> FieldRef:
    return FieldRef(name)


# =============================================================================
# Temporal modes
# =============================================================================


@dataclass(frozen=True)
class Current:
    """Currently believed versions valid at business_time."""

    business_time: TimeLike | None = None


@dataclass(frozen=True)
class AsOf:
    """Versions believed at processing_time to be valid at business_time."""

    business_time: TimeLike | None
    processing_time: Any


@dataclass(frozen=True)
class History:
    """Every version of one entity, oldest processing first."""

    entity_id: EntityId


@dataclass(frozen=True)
class Scheduled:
    """Currently believed versions whose business interval starts after `after`."""

    after: TimeLike


TemporalMode = Union[Current, AsOf, History, Scheduled]


# =============================================================================
# Engine
# =============================================================================


class TemporalQueryEngine:
    """Resolves temporal queries over version chains."""

    @staticmethod
    def run(
        chains: Iterable[VersionChain],
        predicate: Predicate | None = None,
        mode: TemporalMode | None = None,
    ) -> list[VersionRecord]:
        """Evaluate one query.

        Args:
            chains: Chains to search, in insertion order
            predicate: Attribute filter (matches everything if omitted)
            mode: Temporal mode (Current() if omitted)

        Returns:
            Matching records. Ordered by chain order, except History (oldest
            processing first) and Scheduled (business start ascending).

        Raises:
            InconsistentChainError: a chain has two records for one coordinate
        """
        predicate = predicate or Predicate.all()
        mode = mode if mode is not None else Current()

        if isinstance(mode, History):
            entity_id = normalize_identity(mode.entity_id)
            return [
                record
                for chain in chains
                if chain.entity_id == entity_id
                for record in chain.history()
                if predicate.matches(record.attributes)
            ]

        if isinstance(mode, Scheduled):
            after = to_instant(mode.after)
            upcoming = [
                record
                for chain in chains
                if chain.bitemporal
                for record in chain.current()
                if record.business.start > after and predicate.matches(record.attributes)
            ]
            # sorted() is stable, so same-day changes keep chain order
            return sorted(upcoming, key=lambda r: r.business.start)

        results = []
        for chain in chains:
            if isinstance(mode, AsOf):
                record = chain.as_of(mode.business_time, mode.processing_time)
            elif isinstance(mode, Current):
                record = chain.current_as_of(mode.business_time)
            else:
                raise TypeError(f"Unknown temporal mode: {mode!r}")
            if record is not None and predicate.matches(record.attributes):
                results.append(record)
        return results

    @classmethod
    def find_all_as_of(
        cls,
        chains: Iterable[VersionChain],
        business_time: TimeLike | None,
        processing_time: Any = INFINITY,
    ) -> list[VersionRecord]:
        """Batch as-of: every chain's as_of result that is not None."""
        return cls.run(chains, None, AsOf(business_time, processing_time))

    @classmethod
    def count(
        cls,
        chains: Iterable[VersionChain],
        predicate: Predicate | None = None,
        mode: TemporalMode | None = None,
    ) -> int:
        return len(cls.run(chains, predicate, mode))
