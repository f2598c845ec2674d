"""Initial schema: users, organizations and organization memberships

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the tables the authentication gate reads."""

    # -------------------------------------------------------------------------
    # 1. USERS (global identity, one row per Slack user)
    # -------------------------------------------------------------------------
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('slack_user_id', sa.String(20), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='America/New_York'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index('idx_users_slack_user_id', 'users', ['slack_user_id'])

    # -------------------------------------------------------------------------
    # 2. ORGANIZATIONS (tenants, one per Slack workspace)
    # -------------------------------------------------------------------------
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slack_workspace_id', sa.String(20), nullable=False, unique=True),
        sa.Column('slack_workspace_name', sa.String(255), nullable=True),
        sa.Column('default_timezone', sa.String(50), nullable=False, server_default='America/New_York'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index('idx_organizations_slack_workspace_id', 'organizations', ['slack_workspace_id'])

    # -------------------------------------------------------------------------
    # 3. ORGANIZATION_MEMBERS (user <-> organization, with role)
    # -------------------------------------------------------------------------
    op.create_table(
        'organization_members',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('organization_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='MEMBER'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('organization_id', 'user_id', name='uq_organization_member'),
        sa.CheckConstraint("role IN ('OWNER', 'ADMIN', 'MEMBER')", name='valid_member_role'),
    )

    op.create_index('idx_organization_members_user_id', 'organization_members', ['user_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('organization_members')
    op.drop_table('organizations')
    op.drop_table('users')
