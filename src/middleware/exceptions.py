"""
Error taxonomy for the command gate.

Authentication failures are values, not exceptions: the gate always
returns an AuthResult, and a failed result carries an AuthError whose code
is one of the closed AuthErrorCode members. The exception classes below
cover the remaining failure modes around the gate (missing request
context, malformed Slack requests, repository lookups that blew up).
"""

from enum import Enum
from typing import Any, Dict, Optional


ERROR_TYPE = "authentication"


class AuthErrorCode(str, Enum):
    """Closed set of authentication failure codes."""

    MISSING_USER_ID = "MISSING_USER_ID"
    MISSING_WORKSPACE_ID = "MISSING_WORKSPACE_ID"
    USER_CREATION_FAILED = "USER_CREATION_FAILED"
    WORKSPACE_NOT_REGISTERED = "WORKSPACE_NOT_REGISTERED"
    NOT_ORGANIZATION_MEMBER = "NOT_ORGANIZATION_MEMBER"
    MEMBERSHIP_INACTIVE = "MEMBERSHIP_INACTIVE"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"

    @property
    def message(self) -> str:
        """User-facing message for this code."""
        return ERROR_MESSAGES[self]


ERROR_MESSAGES: Dict[AuthErrorCode, str] = {
    AuthErrorCode.MISSING_USER_ID: "User ID is required for authentication",
    AuthErrorCode.MISSING_WORKSPACE_ID: "Workspace ID is required for authentication",
    AuthErrorCode.USER_CREATION_FAILED: "Failed to authenticate user. Please try again.",
    AuthErrorCode.WORKSPACE_NOT_REGISTERED: (
        "This workspace is not registered with Daily Dose. "
        "Please contact your administrator."
    ),
    AuthErrorCode.NOT_ORGANIZATION_MEMBER: (
        "You are not a member of this organization. "
        "Please contact your administrator to be added."
    ),
    AuthErrorCode.MEMBERSHIP_INACTIVE: (
        "Your access has been deactivated. Please contact your administrator."
    ),
    AuthErrorCode.SYSTEM_ERROR: (
        "Authentication failed due to a system error. Please try again."
    ),
    AuthErrorCode.NOT_IMPLEMENTED: "Session validation not implemented",
}


class AuthError:
    """
    A single authentication failure.

    Serializes to the wire shape {type, code, message, details}. The
    message always comes from ERROR_MESSAGES so internal exception text
    can never end up in front of a user.

    Example:
        error = AuthError(AuthErrorCode.WORKSPACE_NOT_REGISTERED,
                          details={'workspaceId': 'T0123456789'})
        error.to_dict()['code']  # 'WORKSPACE_NOT_REGISTERED'
    """

    __slots__ = ("code", "details")

    def __init__(self, code: AuthErrorCode, details: Optional[Dict[str, Any]] = None):
        self.code = AuthErrorCode(code)
        self.details = dict(details or {})

    @property
    def type(self) -> str:
        return ERROR_TYPE

    @property
    def message(self) -> str:
        return self.code.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "code": self.code.value,
            "message": self.message,
            "details": dict(self.details),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthError):
            return NotImplemented
        return self.code == other.code and self.details == other.details

    def __repr__(self) -> str:
        return f"<AuthError(code={self.code.value}, details={self.details})>"


class AuthContextError(Exception):
    """
    Raised when code asks for the current AuthResult outside of a
    request that went through the authentication stage.

    This is a programming error: handlers only run after a successful
    authentication, so the context is always set for them.
    """

    def __init__(self, message: str = "No authentication context is currently set"):
        super().__init__(message)
        self.message = message
        self.http_status = 500


class InvalidSlackRequestError(Exception):
    """
    Raised when a Slack request cannot be parsed.

    Typically a missing or malformed `payload` field on an interaction, or
    an empty JSON body on the events endpoint.
    """

    def __init__(
        self,
        message: str = "Invalid or malformed Slack request",
        details: str = None
    ):
        self.message = message
        self.details = details
        full_message = message
        if details:
            full_message = f"{message}: {details}"
        super().__init__(full_message)
        self.http_status = 400
        self.error_code = "INVALID_SLACK_REQUEST"


class RepositoryError(Exception):
    """
    Raised by a repository when a lookup or write fails for reasons other
    than the record being absent (connection lost, constraint violation
    that could not be resolved, etc.).

    The gate's lookup helpers downgrade this to "not found"; inside
    authenticate_user it surfaces as SYSTEM_ERROR.
    """

    def __init__(self, operation: str, details: str = None):
        self.operation = operation
        self.details = details
        message = f"Repository operation failed: {operation}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)
