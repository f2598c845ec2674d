"""
SQLAlchemy implementation of the organization repository.

Every call runs in its own short transactional session (get_db by
default), so one authentication is a sequence of independent point reads
plus, for first-time users, a single insert.
"""

import logging
import os
from typing import Any, Callable, ContextManager, Optional
from uuid import UUID

from dotenv import load_dotenv
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.database import get_db
from src.middleware.exceptions import RepositoryError
from src.models import Organization, OrganizationMember, User
from src.repository.base import (
    MembershipRecord,
    OrganizationRecord,
    OrganizationRepository,
    UserRecord,
)

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = os.getenv('DEFAULT_TIMEZONE', 'America/New_York')


def _as_uuid(value: Any) -> UUID:
    """Ids arrive as strings when the organization came from the cache."""
    return value if isinstance(value, UUID) else UUID(str(value))


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        slack_user_id=user.slack_user_id,
        name=user.name,
        email=user.email,
        timezone=user.timezone,
    )


def _organization_record(organization: Organization) -> OrganizationRecord:
    return OrganizationRecord(
        id=organization.id,
        name=organization.name,
        slack_workspace_id=organization.slack_workspace_id,
        slack_workspace_name=organization.slack_workspace_name,
        default_timezone=organization.default_timezone,
        is_active=organization.is_active,
    )


def _membership_record(member: OrganizationMember) -> MembershipRecord:
    return MembershipRecord(
        organization_id=member.organization_id,
        user_id=member.user_id,
        role=member.role,
        is_active=member.is_active,
        joined_at=member.joined_at,
    )


class SqlAlchemyRepository(OrganizationRepository):
    """
    Repository backed by the users, organizations and organization_members
    tables.

    Usage:
        repository = SqlAlchemyRepository()
        organization = repository.find_organization_by_slack_workspace_id("T0123456789")
    """

    def __init__(
        self,
        session_scope: Callable[[], ContextManager[Session]] = get_db,
        default_timezone: Optional[str] = None
    ):
        """
        Args:
            session_scope: Factory for transactional session context managers
            default_timezone: Timezone for new users created without one
        """
        self.session_scope = session_scope
        self.default_timezone = default_timezone or DEFAULT_TIMEZONE

    def find_or_create_user(
        self,
        slack_user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        timezone: Optional[str] = None
    ) -> Optional[UserRecord]:
        try:
            with self.session_scope() as db:
                user = User.get_by_slack_user_id(db, slack_user_id)
                if user:
                    return _user_record(user)

                user = User(
                    slack_user_id=slack_user_id,
                    name=name,
                    email=email,
                    timezone=timezone or self.default_timezone,
                )
                db.add(user)
                db.flush()

                logger.info(
                    f"User created: {slack_user_id} (id={user.id})",
                    extra={'slack_user_id': slack_user_id, 'user_id': str(user.id)}
                )
                return _user_record(user)

        except IntegrityError:
            # Another request inserted the same Slack user first
            logger.info(f"Concurrent user creation for {slack_user_id}, re-reading")
            return self._reload_user(slack_user_id)

        except SQLAlchemyError as e:
            raise RepositoryError("find_or_create_user", str(e)) from e

    def _reload_user(self, slack_user_id: str) -> Optional[UserRecord]:
        try:
            with self.session_scope() as db:
                user = User.get_by_slack_user_id(db, slack_user_id)
                return _user_record(user) if user else None
        except SQLAlchemyError as e:
            raise RepositoryError("find_or_create_user", str(e)) from e

    def find_organization_by_slack_workspace_id(
        self,
        slack_workspace_id: str
    ) -> Optional[OrganizationRecord]:
        try:
            with self.session_scope() as db:
                organization = Organization.get_by_slack_workspace_id(db, slack_workspace_id)
                return _organization_record(organization) if organization else None
        except SQLAlchemyError as e:
            raise RepositoryError("find_organization_by_slack_workspace_id", str(e)) from e

    def find_membership(
        self,
        organization_id: Any,
        user_id: Any
    ) -> Optional[MembershipRecord]:
        try:
            with self.session_scope() as db:
                member = OrganizationMember.get_membership(
                    db, _as_uuid(organization_id), _as_uuid(user_id)
                )
                return _membership_record(member) if member else None
        except SQLAlchemyError as e:
            raise RepositoryError("find_membership", str(e)) from e
