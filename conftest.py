"""
Pytest configuration.

Puts the project root on sys.path so tests import `src.*` without relying
on PYTHONPATH tweaks, and makes sure no authentication context leaks from
one test into the next.
"""
import os
import sys

import pytest

REPO_ROOT = os.path.abspath(os.path.dirname(__file__))

if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)


@pytest.fixture(autouse=True)
def _reset_auth_context():
    from src.middleware.request_context import clear_auth_context

    clear_auth_context()
    yield
    clear_auth_context()
