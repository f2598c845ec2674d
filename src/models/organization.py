"""
Organization model - the tenant record for one Slack workspace.

Each Slack workspace maps to exactly one organization. All standup data
hangs off the organization, so a user authenticated against one workspace
must only ever be resolved to that workspace's organization.
"""

from typing import Optional

from sqlalchemy import Boolean, Column, String, Index
from sqlalchemy.orm import relationship, Session

from src.models.base import Base, BaseModel


class Organization(Base, BaseModel):
    """
    Organization model representing a Slack workspace.

    Relationships:
    - members: One-to-many with OrganizationMember
    """

    __tablename__ = "organizations"

    name = Column(
        String(255),
        nullable=False,
        comment="Organization display name"
    )

    slack_workspace_id = Column(
        String(20),
        unique=True,
        nullable=False,
        comment="Slack Team ID (e.g., T0123456789)"
    )

    slack_workspace_name = Column(
        String(255),
        nullable=True,
        comment="Workspace name as reported by Slack"
    )

    default_timezone = Column(
        String(50),
        nullable=False,
        default='America/New_York',
        comment="Timezone used when a user has none"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the organization is active"
    )

    members = relationship(
        "OrganizationMember",
        back_populates="organization",
        cascade="all, delete-orphan",
        lazy="select"
    )

    __table_args__ = (
        Index("idx_organizations_slack_workspace_id", "slack_workspace_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Organization(id={self.id}, slack_workspace_id={self.slack_workspace_id}, "
            f"name={self.name})>"
        )

    @classmethod
    def get_by_slack_workspace_id(
        cls,
        session: Session,
        slack_workspace_id: str,
        include_deleted: bool = False
    ) -> Optional["Organization"]:
        """
        Get organization by exact Slack workspace ID.

        Args:
            session: Database session
            slack_workspace_id: Slack team ID (e.g., T0123456789)
            include_deleted: Include soft-deleted organizations

        Returns:
            Organization instance or None
        """
        query = session.query(cls).filter(cls.slack_workspace_id == slack_workspace_id)

        if not include_deleted:
            query = query.filter(cls.deleted_at.is_(None))

        return query.first()
