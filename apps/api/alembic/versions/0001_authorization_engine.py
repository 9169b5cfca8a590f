"""Baseline migration - accounts, roles, role requests, households, modules, audit

Revision ID: 0001_authorization_engine
Revises:
Create Date: 2026-10-19

Creates every table of the authorization engine. Column types are the
portable SQLAlchemy ones so the same migration runs on PostgreSQL and SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_authorization_engine'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    """Create authorization engine tables."""

    # ==========================================================================
    # Accounts and roles
    # ==========================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('auth_subject', sa.String(255), unique=True, nullable=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('community_id', sa.Uuid(), nullable=True),
        sa.Column('district_id', sa.Uuid(), nullable=True),
        sa.Column('unit', sa.String(50), nullable=True),
        sa.Column('access_expires_at', TS, nullable=True),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )
    op.create_index('idx_accounts_community', 'accounts', ['community_id'])
    op.create_index('idx_accounts_status', 'accounts', ['status'])

    op.create_table(
        'role_assignments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('assigned_by', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', TS, nullable=False),
        sa.Column('deactivated_by', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('deactivated_at', TS, nullable=True),
        sa.UniqueConstraint('account_id', 'role', name='uq_role_assignment_account_role'),
    )
    op.create_index('idx_role_assignments_account_active', 'role_assignments', ['account_id', 'is_active'])

    # ==========================================================================
    # Role change requests
    # ==========================================================================
    op.create_table(
        'role_change_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('requester_account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requested_role', sa.String(50), nullable=False),
        sa.Column('justification', sa.Text(), nullable=False),
        sa.Column('community_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('reviewer_account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('decision_reason', sa.Text(), nullable=True),
        sa.Column('decision_at', TS, nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )
    op.create_index('idx_role_requests_status_created', 'role_change_requests', ['status', 'created_at'])
    op.create_index('idx_role_requests_requester', 'role_change_requests', ['requester_account_id', 'status'])

    # ==========================================================================
    # Household links
    # ==========================================================================
    op.create_table(
        'household_links',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('primary_account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('linked_account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('relationship_type', sa.String(20), nullable=False),
        sa.Column('permissions', JSON_TYPE, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.Column('revoked_by', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('revoked_at', TS, nullable=True),
        sa.UniqueConstraint('primary_account_id', 'linked_account_id', name='uq_household_link_pair'),
    )
    op.create_index(
        'idx_household_primary_active', 'household_links',
        ['primary_account_id', 'is_active', 'created_at'],
    )
    op.create_index('idx_household_linked_active', 'household_links', ['linked_account_id', 'is_active'])

    # ==========================================================================
    # Module flags
    # ==========================================================================
    op.create_table(
        'module_flags',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('community_id', sa.Uuid(), nullable=False),
        sa.Column('module_name', sa.String(50), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.Column('updated_by', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('updated_at', TS, nullable=False),
        sa.UniqueConstraint('community_id', 'module_name', name='uq_module_flag_community_module'),
    )

    # ==========================================================================
    # Audit trail (append-only, no FKs so account changes never touch it)
    # ==========================================================================
    op.create_table(
        'audit_log_entries',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True, autoincrement=True),
        sa.Column('actor_account_id', sa.String(36), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('target_account_id', sa.String(36), nullable=True),
        sa.Column('target_type', sa.String(50), nullable=True),
        sa.Column('target_id', sa.String(64), nullable=True),
        sa.Column('community_id', sa.String(36), nullable=True),
        sa.Column('before_state', JSON_TYPE, nullable=True),
        sa.Column('after_state', JSON_TYPE, nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('prev_hash', sa.String(64), nullable=True),
        sa.Column('entry_hash', sa.String(64), nullable=False),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_index('idx_audit_created', 'audit_log_entries', ['created_at'])
    op.create_index('idx_audit_actor_created', 'audit_log_entries', ['actor_account_id', 'created_at'])
    op.create_index('idx_audit_target_created', 'audit_log_entries', ['target_account_id', 'created_at'])
    op.create_index('idx_audit_action_created', 'audit_log_entries', ['action', 'created_at'])

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('read_at', TS, nullable=True),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_index('idx_notif_account_unread', 'notifications', ['account_id', 'read_at', 'created_at'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('audit_log_entries')
    op.drop_table('module_flags')
    op.drop_table('household_links')
    op.drop_table('role_change_requests')
    op.drop_table('role_assignments')
    op.drop_table('accounts')
