"""
User model - a Slack user known to Daily Dose.

Users are keyed globally by their Slack user ID and are created lazily the
first time they run a command. Access to an organization is granted
separately through OrganizationMember.
"""

from typing import Optional

from sqlalchemy import Column, String, Index
from sqlalchemy.orm import relationship, Session

from src.models.base import Base, BaseModel


class User(Base, BaseModel):
    """
    User model representing a Slack user.

    Relationships:
    - memberships: One-to-many with OrganizationMember
    """

    __tablename__ = "users"

    slack_user_id = Column(
        String(20),
        unique=True,
        nullable=False,
        comment="Slack User ID (e.g., U0123456789)"
    )

    name = Column(
        String(255),
        nullable=True,
        comment="Slack real name or display name"
    )

    email = Column(
        String(255),
        nullable=True,
        comment="Slack profile email address"
    )

    timezone = Column(
        String(50),
        nullable=False,
        default='America/New_York',
        comment="IANA timezone used for standup reminders"
    )

    memberships = relationship(
        "OrganizationMember",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select"
    )

    __table_args__ = (
        Index("idx_users_slack_user_id", "slack_user_id"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, slack_user_id={self.slack_user_id}, email={self.email})>"

    @classmethod
    def get_by_slack_user_id(
        cls,
        session: Session,
        slack_user_id: str,
        include_deleted: bool = False
    ) -> Optional["User"]:
        """
        Get user by Slack user ID.

        Args:
            session: Database session
            slack_user_id: Slack user ID (e.g., U0123456789)
            include_deleted: Include soft-deleted users

        Returns:
            User instance or None
        """
        query = session.query(cls).filter(cls.slack_user_id == slack_user_id)

        if not include_deleted:
            query = query.filter(cls.deleted_at.is_(None))

        return query.first()
