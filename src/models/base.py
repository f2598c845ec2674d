"""
Base model mixin with the columns every table shares.

Provides:
- UUID primary keys
- Automatic timestamp management (created_at, updated_at)
- Soft delete support (deleted_at)
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Uuid, event
from sqlalchemy.orm import declarative_mixin

from src.database import Base as SQLAlchemyBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@declarative_mixin
class BaseModel:
    """
    Mixin adding id, created_at, updated_at and deleted_at.

    Usage:
        class Organization(Base, BaseModel):
            __tablename__ = 'organizations'
            name = Column(String(255))
    """

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        nullable=False,
        comment="Unique identifier (UUID)"
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="Timestamp when record was last updated"
    )

    deleted_at = Column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        comment="Timestamp when record was soft-deleted (NULL if active)"
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"

    def soft_delete(self) -> None:
        """Mark deleted. Does not commit."""
        self.deleted_at = utcnow()


@event.listens_for(BaseModel, 'before_insert', propagate=True)
def receive_before_insert(mapper, connection, target):
    """Set created_at and updated_at on insert."""
    now = utcnow()
    target.created_at = now
    target.updated_at = now


@event.listens_for(BaseModel, 'before_update', propagate=True)
def receive_before_update(mapper, connection, target):
    """Update updated_at on update."""
    target.updated_at = utcnow()


Base = SQLAlchemyBase
