"""
Temporal package - intervals, version records, chains and the query engine.

The mutation protocol lives in chronostore.temporal.mutation; it depends on
the storage package and is not re-exported here.
"""

from chronostore.temporal.interval import (
    BEGINNING_OF_TIME,
    INFINITY,
    INFINITY_INSTANT,
    Interval,
    earlier_of,
    format_bound,
    later_of,
    to_bound,
    to_instant,
)
from chronostore.temporal.record import (
    Temporality,
    VersionRecord,
    decode_identity,
    encode_identity,
    normalize_identity,
)
from chronostore.temporal.chain import VersionChain
from chronostore.temporal.query import (
    AsOf,
    Condition,
    Current,
    History,
    Predicate,
    Scheduled,
    TemporalMode,
    TemporalQueryEngine,
    where,
)

__all__ = [
    # Intervals
    "INFINITY",
    "INFINITY_INSTANT",
    "BEGINNING_OF_TIME",
    "Interval",
    "to_instant",
    "to_bound",
    "format_bound",
    "later_of",
    "earlier_of",
    # Records
    "Temporality",
    "VersionRecord",
    "normalize_identity",
    "encode_identity",
    "decode_identity",
    # Chains
    "VersionChain",
    # Queries
    "TemporalQueryEngine",
    "Predicate",
    "Condition",
    "where",
    "TemporalMode",
    "Current",
    "AsOf",
    "History",
    "Scheduled",
]
