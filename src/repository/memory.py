"""
In-memory organization repository.

Used by the test-suite and for running the Flask app locally without a
database. A single lock guards all three tables so concurrent request
threads see consistent state.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from src.repository.base import (
    MembershipRecord,
    OrganizationRecord,
    OrganizationRepository,
    UserRecord,
)


class InMemoryRepository(OrganizationRepository):
    """
    Dictionary-backed repository.

    Example:
        repo = InMemoryRepository()
        org = repo.add_organization("T0123456789", "Acme")
        user = repo.find_or_create_user("U0123456789")
        repo.add_membership(org.id, user.id, role="ADMIN")
    """

    def __init__(self, default_timezone: str = 'America/New_York'):
        self.default_timezone = default_timezone
        self._lock = threading.Lock()
        self._users: Dict[str, UserRecord] = {}
        self._organizations: Dict[str, OrganizationRecord] = {}
        self._memberships: Dict[Tuple[Any, Any], MembershipRecord] = {}

    def find_or_create_user(
        self,
        slack_user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        timezone: Optional[str] = None
    ) -> Optional[UserRecord]:
        with self._lock:
            user = self._users.get(slack_user_id)
            if user is None:
                user = UserRecord(
                    id=uuid4(),
                    slack_user_id=slack_user_id,
                    name=name,
                    email=email,
                    timezone=timezone or self.default_timezone,
                )
                self._users[slack_user_id] = user
            return user

    def find_organization_by_slack_workspace_id(
        self,
        slack_workspace_id: str
    ) -> Optional[OrganizationRecord]:
        with self._lock:
            return self._organizations.get(slack_workspace_id)

    def find_membership(
        self,
        organization_id: Any,
        user_id: Any
    ) -> Optional[MembershipRecord]:
        with self._lock:
            return self._memberships.get((str(organization_id), str(user_id)))

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_organization(
        self,
        slack_workspace_id: str,
        name: str,
        slack_workspace_name: Optional[str] = None,
        default_timezone: Optional[str] = None,
        is_active: bool = True
    ) -> OrganizationRecord:
        """Register a workspace. Raises ValueError if it already exists."""
        with self._lock:
            if slack_workspace_id in self._organizations:
                raise ValueError(f"Workspace already registered: {slack_workspace_id}")
            organization = OrganizationRecord(
                id=uuid4(),
                name=name,
                slack_workspace_id=slack_workspace_id,
                slack_workspace_name=slack_workspace_name or name,
                default_timezone=default_timezone or self.default_timezone,
                is_active=is_active,
            )
            self._organizations[slack_workspace_id] = organization
            return organization

    def add_membership(
        self,
        organization_id: Any,
        user_id: Any,
        role: str = 'MEMBER',
        is_active: bool = True,
        joined_at: Optional[datetime] = None
    ) -> MembershipRecord:
        """Create or replace the membership for an (organization, user) pair."""
        membership = MembershipRecord(
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            is_active=is_active,
            joined_at=joined_at or datetime.now(timezone.utc),
        )
        with self._lock:
            self._memberships[(str(organization_id), str(user_id))] = membership
        return membership
