"""
OrganizationMember model - grants a user access to one organization.

There is at most one membership per (organization, user) pair.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import (
    Boolean, Column, String, DateTime, ForeignKey,
    CheckConstraint, Index, UniqueConstraint, Uuid
)
from sqlalchemy.orm import relationship, Session

from src.models.base import Base, BaseModel, utcnow


class OrganizationMember(Base, BaseModel):
    """
    Join entity between Organization and User, carrying role and status.

    Relationships:
    - organization: Many-to-one with Organization
    - user: Many-to-one with User
    """

    __tablename__ = "organization_members"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        comment="Reference to organization"
    )

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Reference to user"
    )

    role = Column(
        String(20),
        nullable=False,
        default='MEMBER',
        comment="Member role: OWNER, ADMIN, MEMBER"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Inactive members are refused at authentication"
    )

    joined_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When the user joined the organization"
    )

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "user_id",
            name="uq_organization_member"
        ),
        CheckConstraint(
            "role IN ('OWNER', 'ADMIN', 'MEMBER')",
            name="valid_member_role"
        ),
        Index("idx_organization_members_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationMember(organization_id={self.organization_id}, "
            f"user_id={self.user_id}, role={self.role}, active={self.is_active})>"
        )

    @classmethod
    def get_membership(
        cls,
        session: Session,
        organization_id: UUID,
        user_id: UUID
    ) -> Optional["OrganizationMember"]:
        """Get the membership for one (organization, user) pair, or None."""
        return (
            session.query(cls)
            .filter(cls.organization_id == organization_id)
            .filter(cls.user_id == user_id)
            .filter(cls.deleted_at.is_(None))
            .first()
        )
