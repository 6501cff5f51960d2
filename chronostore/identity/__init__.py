"""Identity allocation for entities created without a caller-supplied id."""

from chronostore.identity.sequence import (
    IdentityAllocator,
    InMemorySequenceGenerator,
    SqlSequenceGenerator,
)

__all__ = [
    "IdentityAllocator",
    "InMemorySequenceGenerator",
    "SqlSequenceGenerator",
]
