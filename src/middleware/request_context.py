"""
Thread-local authentication context.

The command pipeline installs the AuthResult of the current command here
for the duration of the handler call, so code deep inside a handler can
ask "who is calling, from which organization" without threading the
result through every function. Each worker thread has its own slot and the
pipeline always clears it when the handler returns.

Usage:
    with auth_context(result):
        organization = get_current_auth().organization

    @require_auth()
    def list_teams():
        organization_id = get_current_auth().organization.id
"""

import functools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Optional

from src.middleware.auth_result import AuthResult
from src.middleware.exceptions import AuthContextError

logger = logging.getLogger(__name__)

_thread_local = threading.local()


def set_current_auth(auth: AuthResult) -> None:
    """
    Set the authenticated caller for this thread.

    Raises:
        ValueError: If auth is None or not a successful result
    """
    if auth is None:
        raise ValueError("Cannot set None as current authentication")

    if not getattr(auth, 'success', False):
        raise ValueError("Only successful authentication results can be set as context")

    _thread_local.auth = auth

    logger.debug(
        f"Auth context set: {auth.user.slack_user_id}@{auth.organization.slack_workspace_id}",
        extra={
            'slack_user_id': auth.user.slack_user_id,
            'slack_workspace_id': auth.organization.slack_workspace_id
        }
    )


def get_current_auth() -> AuthResult:
    """
    Get the authenticated caller for this thread.

    Raises:
        AuthContextError: If no authentication context is set
    """
    auth = getattr(_thread_local, 'auth', None)

    if auth is None:
        raise AuthContextError(
            "No authentication context is currently set. "
            "This function must be called from a handler run by the command pipeline."
        )

    return auth


def get_current_auth_safe() -> Optional[AuthResult]:
    """Get the authenticated caller, or None if none is set."""
    return getattr(_thread_local, 'auth', None)


def clear_auth_context() -> None:
    """Clear the authentication context for the current thread."""
    if hasattr(_thread_local, 'auth'):
        delattr(_thread_local, 'auth')


@contextmanager
def auth_context(auth: AuthResult):
    """
    Install an AuthResult for the duration of a block.

    The previous context (if any) is restored on exit.
    """
    previous = getattr(_thread_local, 'auth', None)

    try:
        set_current_auth(auth)
        yield auth
    finally:
        if previous is not None:
            _thread_local.auth = previous
        else:
            clear_auth_context()


def require_auth() -> Callable:
    """
    Decorator that refuses to run the function without an auth context.

    Raises:
        AuthContextError: If no authentication context is set
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                get_current_auth()
            except AuthContextError:
                logger.error(
                    f"Function {func.__name__} requires auth context but none is set",
                    extra={'function': func.__name__}
                )
                raise

            return func(*args, **kwargs)

        return wrapper

    return decorator


def get_auth_attribute(path: str, default: Any = None) -> Any:
    """
    Read a dotted attribute of the current auth, e.g. 'organization.id'.

    Returns default when no context is set or the attribute is missing.
    """
    value: Any = get_current_auth_safe()
    if value is None:
        return default

    for part in path.split('.'):
        value = getattr(value, part, None)
        if value is None:
            return default
    return value


class AuthContextFilter(logging.Filter):
    """
    Logging filter that tags records with the current caller.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(AuthContextFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        auth = get_current_auth_safe()

        if auth is not None:
            record.slack_user_id = auth.user.slack_user_id
            record.slack_workspace_id = auth.organization.slack_workspace_id
            record.organization_id = str(auth.organization.id)
        else:
            record.slack_user_id = getattr(record, 'slack_user_id', None)
            record.slack_workspace_id = getattr(record, 'slack_workspace_id', None)
            record.organization_id = getattr(record, 'organization_id', None)

        return True
