"""
Error taxonomy for the bitemporal store.

Errors fall into two families so callers can tell recoverable lookups
from broken invariants:

- TemporalLookupError: nothing matched the requested coordinate.
- TemporalIntegrityError: an interval or chain invariant would be (or is) violated.

ConfigurationError and StorageError sit beside them.
"""

from __future__ import annotations

from typing import Any


class ChronostoreError(Exception):
    """Base class for every error raised by chronostore."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context
        for key, value in context.items():
            setattr(self, key, value)


# =============================================================================
# Recoverable
# =============================================================================


class TemporalLookupError(ChronostoreError):
    """No record satisfies a temporal + identity coordinate."""


class NotFoundError(TemporalLookupError):
    """No active record exists at the requested coordinate."""


# =============================================================================
# Integrity violations
# =============================================================================


class TemporalIntegrityError(ChronostoreError):
    """An interval or version chain invariant is violated."""


class InvalidIntervalError(TemporalIntegrityError):
    """Zero-width or inverted interval."""


class OverlapError(TemporalIntegrityError):
    """Appending a record would overlap an existing record in the chain."""


class InconsistentChainError(TemporalIntegrityError):
    """More than one record matched a lookup that must be unique."""


class IdentityConflictError(TemporalIntegrityError):
    """Insert against an identity that already has an active chain."""


class TemporalConstraintError(TemporalIntegrityError):
    """Business-time operation requested on a uni-temporal entity kind."""


# =============================================================================
# Wiring and storage
# =============================================================================


class ConfigurationError(ChronostoreError):
    """Missing or invalid wiring (no identity and no allocator, unknown kind)."""


class StorageError(ChronostoreError):
    """Storage collaborator failure."""
