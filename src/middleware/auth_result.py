"""
AuthResult - the per-request outcome of one authentication attempt.

A successful result carries trimmed projections of the user, the
organization and the membership (nothing beyond what handlers need). A
failed result carries exactly one AuthError and nothing else. Results are
never persisted.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from src.middleware.exceptions import AuthError, AuthErrorCode
from src.repository.base import MembershipRecord, OrganizationRecord, UserRecord


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: Any
    slack_user_id: str
    name: Optional[str]
    email: Optional[str]
    timezone: Optional[str]

    @classmethod
    def from_record(cls, user: UserRecord) -> "AuthenticatedUser":
        return cls(
            id=user.id,
            slack_user_id=user.slack_user_id,
            name=user.name,
            email=user.email,
            timezone=user.timezone,
        )


@dataclass(frozen=True)
class AuthenticatedOrganization:
    id: Any
    name: str
    slack_workspace_id: str
    default_timezone: Optional[str]

    @classmethod
    def from_record(cls, organization: OrganizationRecord) -> "AuthenticatedOrganization":
        return cls(
            id=organization.id,
            name=organization.name,
            slack_workspace_id=organization.slack_workspace_id,
            default_timezone=organization.default_timezone,
        )


@dataclass(frozen=True)
class AuthenticatedMembership:
    role: str
    joined_at: Optional[datetime]

    @classmethod
    def from_record(cls, membership: MembershipRecord) -> "AuthenticatedMembership":
        return cls(role=membership.role, joined_at=membership.joined_at)


class AuthResult:
    """
    Outcome of AuthenticationGate.authenticate_user.

    Build one with AuthResult.succeeded(...) or AuthResult.failed(...);
    check `success` before touching `user`/`organization`/`membership`.
    """

    __slots__ = ("success", "user", "organization", "membership", "error")

    def __init__(
        self,
        success: bool,
        user: Optional[AuthenticatedUser] = None,
        organization: Optional[AuthenticatedOrganization] = None,
        membership: Optional[AuthenticatedMembership] = None,
        error: Optional[AuthError] = None
    ):
        self.success = success
        self.user = user
        self.organization = organization
        self.membership = membership
        self.error = error

    @classmethod
    def succeeded(
        cls,
        user: UserRecord,
        organization: OrganizationRecord,
        membership: MembershipRecord
    ) -> "AuthResult":
        return cls(
            success=True,
            user=AuthenticatedUser.from_record(user),
            organization=AuthenticatedOrganization.from_record(organization),
            membership=AuthenticatedMembership.from_record(membership),
        )

    @classmethod
    def failed(cls, code: AuthErrorCode, details: Optional[Dict[str, Any]] = None) -> "AuthResult":
        return cls(success=False, error=AuthError(code, details))

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape; a success has no `error` key, a failure has only `error`."""
        if not self.success:
            return {"success": False, "error": self.error.to_dict()}

        return {
            "success": True,
            "user": {k: _serialize(v) for k, v in asdict(self.user).items()},
            "organization": {k: _serialize(v) for k, v in asdict(self.organization).items()},
            "membership": {k: _serialize(v) for k, v in asdict(self.membership).items()},
        }

    def __repr__(self) -> str:
        if self.success:
            return (
                f"<AuthResult(success=True, user={self.user.slack_user_id}, "
                f"organization={self.organization.slack_workspace_id})>"
            )
        return f"<AuthResult(success=False, code={self.error.code.value})>"

