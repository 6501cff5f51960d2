"""Repository facade - typed access to versioned entity kinds."""

from chronostore.repository.models import EntityKind, Versioned
from chronostore.repository.store import Chronostore
from chronostore.repository.temporal_repo import TemporalRepository

__all__ = [
    "EntityKind",
    "Versioned",
    "TemporalRepository",
    "Chronostore",
]
