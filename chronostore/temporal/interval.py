"""
Half-open time intervals and the INFINITY sentinel.

An Interval is valid at t iff start <= t < thru. The upper bound may be
INFINITY, a typed sentinel ordered above every concrete timestamp. INFINITY
is never converted to a datetime for arithmetic; it is only mapped to a
fixed far-future instant when serialized.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Union

from chronostore.core.exceptions import InvalidIntervalError


class _Infinity:
    """Upper bound meaning "still true" / "still believed"."""

    _instance: _Infinity | None = None

    def __new__(cls) -> _Infinity:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INFINITY"

    def __reduce__(self):
        return (_Infinity, ())

    def __eq__(self, other: object) -> bool:
        return other is self

    def __hash__(self) -> int:
        return hash("chronostore.INFINITY")

    def __lt__(self, other: object) -> bool:
        if isinstance(other, (datetime, _Infinity)):
            return False
        return NotImplemented

    def __le__(self, other: object) -> bool:
        if isinstance(other, (datetime, _Infinity)):
            return other is self
        return NotImplemented

    def __gt__(self, other: object) -> bool:
        if isinstance(other, (datetime, _Infinity)):
            return other is not self
        return NotImplemented

    def __ge__(self, other: object) -> bool:
        if isinstance(other, (datetime, _Infinity)):
            return True
        return NotImplemented


INFINITY = _Infinity()

# Serialized form of INFINITY (the persistence framework's infinity date)
INFINITY_INSTANT = datetime(9999, 12, 1, 23, 59, tzinfo=timezone.utc)

# Lower bound of the implicit business interval of uni-temporal records
BEGINNING_OF_TIME = datetime.min.replace(tzinfo=timezone.utc)

Bound = Union[datetime, _Infinity]
TimeLike = Union[datetime, date, str]


# =============================================================================
# Boundary conversion
# =============================================================================


def to_instant(value: TimeLike) -> datetime:
    """Normalize a boundary value to an aware UTC datetime.

    Accepts datetimes (naive values are taken as UTC), dates (midnight UTC)
    and ISO-8601 strings. INFINITY is rejected: it is not an instant.
    """
    if isinstance(value, _Infinity):
        raise TypeError("INFINITY is not a concrete instant")
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise TypeError(f"Cannot interpret {value!r} as an instant")


def to_bound(value: TimeLike | _Infinity, infinity: datetime = INFINITY_INSTANT) -> Bound:
    """Like to_instant, but maps INFINITY and the serialized sentinel to INFINITY."""
    if isinstance(value, _Infinity):
        return INFINITY
    instant = to_instant(value)
    if instant >= infinity:
        return INFINITY
    return instant


def format_bound(value: Bound, infinity: datetime = INFINITY_INSTANT) -> str:
    """Serialize a bound as a fixed-width ISO-8601 UTC string.

    The fixed width keeps lexicographic order equal to time order, which the
    SQL backend relies on.
    """
    if value is INFINITY:
        value = infinity
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def later_of(a: Bound, b: Bound) -> Bound:
    """Max of two bounds; INFINITY wins without touching the other value."""
    if a is INFINITY or b is INFINITY:
        return INFINITY
    return a if a >= b else b


def earlier_of(a: Bound, b: Bound) -> Bound:
    """Min of two bounds; INFINITY loses without touching the other value."""
    if a is INFINITY:
        return b
    if b is INFINITY:
        return a
    return a if a <= b else b


# =============================================================================
# Interval
# =============================================================================


@dataclass(frozen=True)
class Interval:
    """Half-open interval [start, thru)."""

    start: datetime
    thru: Bound = INFINITY

    def __post_init__(self) -> None:
        start = to_instant(self.start)
        thru = self.thru if self.thru is INFINITY else to_instant(self.thru)
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "thru", thru)
        if not start < thru:
            raise InvalidIntervalError(
                f"Interval start {start.isoformat()} must be before thru {_show(thru)}",
                start=start,
                thru=thru,
            )

    @classmethod
    def open(cls, start: TimeLike) -> Interval:
        """[start, INFINITY)"""
        return cls(to_instant(start), INFINITY)

    @classmethod
    def all_time(cls) -> Interval:
        return cls(BEGINNING_OF_TIME, INFINITY)

    def contains(self, t: TimeLike | _Infinity) -> bool:
        if isinstance(t, _Infinity):
            return False
        instant = to_instant(t)
        return self.start <= instant < self.thru

    def overlaps(self, other: Interval) -> bool:
        return self.start < other.thru and other.start < self.thru

    def is_infinite(self) -> bool:
        return self.thru is INFINITY

    def intersect(self, other: Interval) -> Interval | None:
        """Overlapping part of two intervals, or None when they are disjoint."""
        start = later_of(self.start, other.start)
        thru = earlier_of(self.thru, other.thru)
        if start < thru:
            return Interval(start, thru)
        return None

    def closed_at(self, thru: TimeLike) -> Interval:
        """Copy of this interval ending at thru.

        Raises:
            InvalidIntervalError: if thru is not after start
        """
        return Interval(self.start, to_instant(thru))

    def to_dict(self, infinity: datetime = INFINITY_INSTANT) -> dict[str, Any]:
        return {
            "from": format_bound(self.start, infinity),
            "thru": format_bound(self.thru, infinity),
        }

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {_show(self.thru)})"


def _show(bound: Bound) -> str:
    return "INFINITY" if bound is INFINITY else bound.isoformat()
