"""
Repository layer for users, organizations and memberships.

- base: the narrow OrganizationRepository interface and its record types
- sqlalchemy_repository: database-backed implementation
- memory: dictionary-backed implementation (tests, local runs)
- cache: Redis read-through cache for organization lookups
"""

from src.repository.base import (
    MembershipRecord,
    OrganizationRecord,
    OrganizationRepository,
    UserRecord,
)
from src.repository.memory import InMemoryRepository
from src.repository.cache import CachedRepository

__all__ = [
    "MembershipRecord",
    "OrganizationRecord",
    "OrganizationRepository",
    "UserRecord",
    "InMemoryRepository",
    "CachedRepository",
]
