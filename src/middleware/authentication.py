"""
Authentication gate for Slack commands.

Resolves who is calling (user), which tenant they are calling from
(organization) and whether they may act inside it (membership). The gate
is stateless apart from its repository reference: build one at start-up
and share it across request threads.

Checks run in a fixed order and stop at the first failure:

    1. user id present                 -> MISSING_USER_ID
    2. workspace id present            -> MISSING_WORKSPACE_ID
    3. user found or created           -> USER_CREATION_FAILED
    4. organization for the workspace  -> WORKSPACE_NOT_REGISTERED
    5. membership in that organization -> NOT_ORGANIZATION_MEMBER
    6. membership active               -> MEMBERSHIP_INACTIVE

The organization is resolved only from the workspace the command came
from, and the membership only against that organization, so a user can
never be authenticated into another tenant.
"""

import logging
from typing import Any, Dict, Optional

from src.middleware.auth_result import AuthResult
from src.middleware.exceptions import AuthErrorCode
from src.repository.base import (
    MembershipRecord,
    OrganizationRecord,
    OrganizationRepository,
)

logger = logging.getLogger(__name__)


class AuthenticationGate:
    """
    Authenticates a Slack user against the multi-tenant membership model.

    Usage:
        gate = AuthenticationGate(SqlAlchemyRepository())
        result = gate.authenticate_user("U0123456789", "T0123456789")
        if not result.success:
            print(result.error.message)
    """

    def __init__(self, repository: OrganizationRepository):
        self.repository = repository

    def authenticate_user(
        self,
        slack_user_id: Optional[str],
        slack_workspace_id: Optional[str],
        user_info: Optional[Dict[str, Any]] = None
    ) -> AuthResult:
        """
        Authenticate a Slack user and verify workspace membership.

        Args:
            slack_user_id: Slack user ID from the command
            slack_workspace_id: Slack team ID from the command
            user_info: Optional profile ({'name', 'email', 'timezone'}),
                used only when the user is created

        Returns:
            AuthResult; never raises
        """
        if not slack_user_id:
            return AuthResult.failed(AuthErrorCode.MISSING_USER_ID)

        if not slack_workspace_id:
            return AuthResult.failed(AuthErrorCode.MISSING_WORKSPACE_ID)

        user_info = user_info or {}

        try:
            user = self.repository.find_or_create_user(
                slack_user_id,
                name=user_info.get('name'),
                email=user_info.get('email'),
                timezone=user_info.get('timezone'),
            )
            if not user:
                logger.warning(f"User resolution returned nothing for {slack_user_id}")
                return AuthResult.failed(AuthErrorCode.USER_CREATION_FAILED)

            organization = self.find_organization_by_workspace(slack_workspace_id)
            if not organization:
                logger.warning(
                    f"Workspace not registered: {slack_workspace_id}",
                    extra={'slack_workspace_id': slack_workspace_id, 'slack_user_id': slack_user_id}
                )
                return AuthResult.failed(
                    AuthErrorCode.WORKSPACE_NOT_REGISTERED,
                    {'workspaceId': slack_workspace_id}
                )

            membership = self.verify_organization_membership(user.id, organization.id)
            if not membership:
                logger.warning(
                    f"User {slack_user_id} is not a member of {organization.name}",
                    extra={'slack_workspace_id': slack_workspace_id, 'slack_user_id': slack_user_id}
                )
                return AuthResult.failed(
                    AuthErrorCode.NOT_ORGANIZATION_MEMBER,
                    {'organizationName': organization.name}
                )

            if not membership.is_active:
                logger.info(
                    f"Inactive membership for {slack_user_id} in {organization.name}",
                    extra={'slack_workspace_id': slack_workspace_id, 'slack_user_id': slack_user_id}
                )
                return AuthResult.failed(AuthErrorCode.MEMBERSHIP_INACTIVE)

            logger.debug(
                f"Authenticated {slack_user_id} in {organization.name} as {membership.role}",
                extra={
                    'slack_workspace_id': slack_workspace_id,
                    'slack_user_id': slack_user_id,
                    'organization_id': str(organization.id),
                }
            )
            return AuthResult.succeeded(user, organization, membership)

        except Exception as e:
            # Detail goes to the log only; the user sees the fixed message
            logger.error(
                f"Authentication error for {slack_user_id}@{slack_workspace_id}: {e}",
                exc_info=True
            )
            return AuthResult.failed(AuthErrorCode.SYSTEM_ERROR)

    def find_organization_by_workspace(self, slack_workspace_id: str) -> Optional[OrganizationRecord]:
        """
        Find the organization for an exact Slack workspace ID.

        Returns:
            OrganizationRecord, or None if absent or the lookup failed
        """
        try:
            return self.repository.find_organization_by_slack_workspace_id(slack_workspace_id)
        except Exception as e:
            logger.error(f"Error finding organization by workspace {slack_workspace_id}: {e}", exc_info=True)
            return None

    def verify_organization_membership(self, user_id: Any, organization_id: Any) -> Optional[MembershipRecord]:
        """
        Find the user's membership in an organization.

        Returns:
            MembershipRecord, or None if absent or the lookup failed
        """
        try:
            return self.repository.find_membership(organization_id, user_id)
        except Exception as e:
            logger.error(
                f"Error verifying membership of {user_id} in {organization_id}: {e}",
                exc_info=True
            )
            return None

    def validate_session(self, session_token: Optional[str]) -> AuthResult:
        """Reserved for session tokens; Slack request signing covers this today."""
        return AuthResult.failed(AuthErrorCode.NOT_IMPLEMENTED)
