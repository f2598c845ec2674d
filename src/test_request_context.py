"""
Tests for the thread-local authentication context.

Usage:
    pytest src/test_request_context.py -v
"""

import logging
import threading
import time
from uuid import uuid4

import pytest

from src.middleware.auth_result import AuthResult
from src.middleware.exceptions import AuthContextError, AuthErrorCode
from src.middleware.request_context import (
    AuthContextFilter,
    auth_context,
    clear_auth_context,
    get_auth_attribute,
    get_current_auth,
    get_current_auth_safe,
    require_auth,
    set_current_auth,
)
from src.repository.base import MembershipRecord, OrganizationRecord, UserRecord


def make_auth(workspace_id="T111", user_id="U111"):
    organization = OrganizationRecord(id=uuid4(), name=f"Org {workspace_id}", slack_workspace_id=workspace_id)
    user = UserRecord(id=uuid4(), slack_user_id=user_id)
    membership = MembershipRecord(organization_id=organization.id, user_id=user.id, role="MEMBER", is_active=True)
    return AuthResult.succeeded(user, organization, membership)


@pytest.fixture(autouse=True)
def clean_context():
    clear_auth_context()
    yield
    clear_auth_context()


# ============================================================================
# Basic access
# ============================================================================

def test_get_without_context_raises():
    with pytest.raises(AuthContextError):
        get_current_auth()
    assert get_current_auth_safe() is None


def test_set_and_get():
    auth = make_auth()
    set_current_auth(auth)
    assert get_current_auth() is auth


def test_only_successful_results_can_be_set():
    with pytest.raises(ValueError):
        set_current_auth(None)
    with pytest.raises(ValueError):
        set_current_auth(AuthResult.failed(AuthErrorCode.SYSTEM_ERROR))


# ============================================================================
# Context manager and decorator
# ============================================================================

def test_context_manager_clears_on_exit():
    auth = make_auth()
    with auth_context(auth) as current:
        assert current is auth
        assert get_current_auth() is auth
    assert get_current_auth_safe() is None


def test_context_manager_clears_on_error():
    with pytest.raises(RuntimeError):
        with auth_context(make_auth()):
            raise RuntimeError("handler failed")
    assert get_current_auth_safe() is None


def test_nested_context_restores_outer():
    outer, inner = make_auth("T1"), make_auth("T2")
    with auth_context(outer):
        with auth_context(inner):
            assert get_current_auth() is inner
        assert get_current_auth() is outer


def test_require_auth():
    @require_auth()
    def workspace():
        return get_current_auth().organization.slack_workspace_id

    with pytest.raises(AuthContextError):
        workspace()

    with auth_context(make_auth("T999")):
        assert workspace() == "T999"


def test_get_auth_attribute():
    assert get_auth_attribute("organization.slack_workspace_id", "none") == "none"
    with auth_context(make_auth("T42", "U42")):
        assert get_auth_attribute("organization.slack_workspace_id") == "T42"
        assert get_auth_attribute("user.slack_user_id") == "U42"
        assert get_auth_attribute("user.email", "n/a") == "n/a"


# ============================================================================
# Thread isolation
# ============================================================================

def test_context_is_isolated_between_threads():
    results = {}
    barrier = threading.Barrier(2)

    def worker(workspace_id):
        with auth_context(make_auth(workspace_id)):
            barrier.wait()
            time.sleep(0.01)
            results[workspace_id] = get_current_auth().organization.slack_workspace_id

    threads = [threading.Thread(target=worker, args=(w,)) for w in ("T_A", "T_B")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == {"T_A": "T_A", "T_B": "T_B"}
    assert get_current_auth_safe() is None


# ============================================================================
# Logging filter
# ============================================================================

def test_filter_tags_records_with_current_caller():
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)
    auth = make_auth("T7", "U7")

    with auth_context(auth):
        assert AuthContextFilter().filter(record) is True

    assert record.slack_workspace_id == "T7"
    assert record.slack_user_id == "U7"
    assert record.organization_id == str(auth.organization.id)


def test_filter_without_context_sets_empty_fields():
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)

    AuthContextFilter().filter(record)

    assert record.slack_workspace_id is None
    assert record.organization_id is None
