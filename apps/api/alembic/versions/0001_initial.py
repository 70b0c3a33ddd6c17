"""Initial schema - companies, users, messages, meetings and the job outbox

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Companies
    # ==========================================================================
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(50), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=True),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('zoom_user_id', sa.String(100), nullable=True),
        sa.Column('zoom_email', sa.String(255), nullable=True),
        sa.Column('zoom_pmi', sa.BigInteger(), nullable=True),
        sa.Column('zoom_created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('provider_sync_status', sa.String(20), nullable=False, server_default='skipped'),
        sa.Column('provider_sync_error', sa.Text(), nullable=True),
    )
    op.create_index('idx_users_company', 'users', ['company_id'])
    op.create_index('idx_users_manager', 'users', ['manager_id'])

    # ==========================================================================
    # Messages
    # ==========================================================================
    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('sender_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_messages_sender', 'messages', ['sender_id', 'created_at'])
    op.create_index('idx_messages_receiver', 'messages', ['receiver_id', 'created_at'])

    # ==========================================================================
    # Meetings
    # ==========================================================================
    op.create_table(
        'meetings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('organizer_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('zoom_meeting_id', sa.String(100), nullable=True),
        sa.Column('zoom_password', sa.String(100), nullable=True),
        sa.Column('zoom_join_url', sa.Text(), nullable=True),
        sa.Column('provider_sync_status', sa.String(20), nullable=False, server_default='skipped'),
        sa.Column('provider_sync_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('end_time > start_time', name='ck_meetings_time_order'),
    )
    op.create_index('idx_meetings_company_start', 'meetings', ['company_id', 'start_time'])

    op.create_table(
        'meeting_participants',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('meeting_id', sa.Integer(), sa.ForeignKey('meetings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('attended', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('meeting_id', 'user_id', name='uq_meeting_participant'),
    )

    # ==========================================================================
    # Jobs (provider sync outbox)
    # ==========================================================================
    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id', ondelete='CASCADE'), nullable=True),
        sa.Column('job_type', sa.String(50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('run_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('idempotency_key', sa.String(255), nullable=True),
    )
    op.create_index('idx_jobs_pending', 'jobs', ['status', 'run_at'])
    op.create_index('idx_jobs_company', 'jobs', ['company_id', 'created_at'])
    op.create_index('uq_job_idempotency', 'jobs', ['idempotency_key'], unique=True)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('jobs')
    op.drop_table('meeting_participants')
    op.drop_table('meetings')
    op.drop_table('messages')
    op.drop_table('users')
    op.drop_table('companies')
