"""Core package - configuration, error taxonomy, and processing-time clocks."""

from .clock import Clock, ManualClock, SystemClock
from .config import Settings, configure_logging, get_settings
from .exceptions import (
    ChronostoreError,
    ConfigurationError,
    IdentityConflictError,
    InconsistentChainError,
    InvalidIntervalError,
    NotFoundError,
    OverlapError,
    StorageError,
    TemporalConstraintError,
    TemporalIntegrityError,
    TemporalLookupError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "configure_logging",
    # Clocks
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
]
