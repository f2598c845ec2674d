"""
Database models package for the Daily Dose command gate.

- User: Slack users, keyed by Slack user ID
- Organization: Slack workspaces (tenants)
- OrganizationMember: a user's role and status within an organization

All models use UUID primary keys, automatic timestamps, and support soft deletes.
"""

from src.models.base import Base, BaseModel
from src.models.user import User
from src.models.organization import Organization
from src.models.organization_member import OrganizationMember

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "Organization",
    "OrganizationMember",
]
