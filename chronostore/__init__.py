"""Chronostore - a bitemporal versioned store.

Every entity keeps its full history on two axes: business time (when a fact
was true in the world) and processing time (when the system believed it).
Mutations never edit or delete; they close a version's processing interval
and chain new versions after it.

Environment Variables:
    CHRONOSTORE_DATABASE_URL / DATABASE_URL: SQL database for SqlVersionStore.
                      Default is a SQLite file under CHRONOSTORE_DATA_DIR.
    CHRONOSTORE_LOG_LEVEL: Level applied by configure_logging().
"""

# Core
from .core import (
    ChronostoreError,
    Clock,
    ConfigurationError,
    IdentityConflictError,
    InconsistentChainError,
    InvalidIntervalError,
    ManualClock,
    NotFoundError,
    OverlapError,
    Settings,
    StorageError,
    SystemClock,
    TemporalConstraintError,
    TemporalIntegrityError,
    TemporalLookupError,
    configure_logging,
    get_settings,
)

# Temporal model
from .temporal import (
    INFINITY,
    AsOf,
    Current,
    History,
    Interval,
    Predicate,
    Scheduled,
    Temporality,
    TemporalQueryEngine,
    VersionChain,
    VersionRecord,
    where,
)
from .temporal.mutation import MutationProtocol

# Storage and identities
from .storage import InMemoryVersionStore, LockRegistry, SqlVersionStore, VersionStore
from .identity import IdentityAllocator, InMemorySequenceGenerator, SqlSequenceGenerator

# Repository facade
from .repository import Chronostore, EntityKind, TemporalRepository, Versioned

__version__ = "0.1.0"

__all__ = [
    # Config and clocks
    "Settings",
    "get_settings",
    "configure_logging",
    "Clock",
    "SystemClock",
    "ManualClock",
    # Errors
    "ChronostoreError",
    "TemporalLookupError",
    "NotFoundError",
    "TemporalIntegrityError",
    "InvalidIntervalError",
    "OverlapError",
    "InconsistentChainError",
    "IdentityConflictError",
    "TemporalConstraintError",
    "ConfigurationError",
    "StorageError",
    # Temporal model
    "INFINITY",
    "Interval",
    "Temporality",
    "VersionRecord",
    "VersionChain",
    "TemporalQueryEngine",
    "Predicate",
    "where",
    "Current",
    "AsOf",
    "History",
    "Scheduled",
    "MutationProtocol",
    # Storage
    "VersionStore",
    "InMemoryVersionStore",
    "SqlVersionStore",
    "LockRegistry",
    # Identities
    "IdentityAllocator",
    "InMemorySequenceGenerator",
    "SqlSequenceGenerator",
    # Repositories
    "EntityKind",
    "Versioned",
    "TemporalRepository",
    "Chronostore",
]
