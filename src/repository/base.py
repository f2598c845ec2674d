"""
Repository interface for users, organizations and memberships.

The authentication gate only ever talks to this narrow interface, which
keeps it testable against the in-memory implementation and lets the
SQLAlchemy implementation (or a cached wrapper around it) be swapped in at
start-up.

Records returned by a repository are plain, immutable dataclasses that are
safe to hand across threads and outlive the database session that loaded
them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class UserRecord:
    id: Any
    slack_user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    timezone: Optional[str] = None


@dataclass(frozen=True)
class OrganizationRecord:
    id: Any
    name: str
    slack_workspace_id: str
    slack_workspace_name: Optional[str] = None
    default_timezone: Optional[str] = None
    is_active: bool = True

    def to_cache(self) -> Dict[str, Any]:
        """Serialize for the organization cache."""
        return {
            'id': str(self.id),
            'name': self.name,
            'slack_workspace_id': self.slack_workspace_id,
            'slack_workspace_name': self.slack_workspace_name,
            'default_timezone': self.default_timezone,
            'is_active': self.is_active,
        }

    @classmethod
    def from_cache(cls, data: Dict[str, Any]) -> "OrganizationRecord":
        return cls(
            id=data['id'],
            name=data['name'],
            slack_workspace_id=data['slack_workspace_id'],
            slack_workspace_name=data.get('slack_workspace_name'),
            default_timezone=data.get('default_timezone'),
            is_active=data.get('is_active', True),
        )


@dataclass(frozen=True)
class MembershipRecord:
    organization_id: Any
    user_id: Any
    role: str
    is_active: bool
    joined_at: Optional[datetime] = None


class OrganizationRepository(ABC):
    """Abstract lookup/creation interface used by the authentication gate.

    Implementations return None when a record does not exist and raise
    (ideally RepositoryError) when the lookup itself fails.
    """

    @abstractmethod
    def find_or_create_user(
        self,
        slack_user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        timezone: Optional[str] = None
    ) -> Optional[UserRecord]:
        """Return the user for a Slack user ID, creating it if missing.

        name, email and timezone are only used when the user is created.
        Safe to call concurrently for the same Slack user ID.
        """

    @abstractmethod
    def find_organization_by_slack_workspace_id(
        self,
        slack_workspace_id: str
    ) -> Optional[OrganizationRecord]:
        """Return the organization for an exact workspace ID, or None."""

    @abstractmethod
    def find_membership(
        self,
        organization_id: Any,
        user_id: Any
    ) -> Optional[MembershipRecord]:
        """Return the membership for an (organization, user) pair, or None."""
