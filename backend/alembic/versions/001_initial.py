"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

Creates:
- users
- integration_connections, integration_auto_sync
- progress_tracking
- strava_webhook_events (queue)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'integration_connections',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('provider_user_id', sa.String(64), nullable=False),
        sa.Column('access_token_encrypted', sa.Text(), nullable=False),
        sa.Column('refresh_token_encrypted', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('last_error', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'provider', name='uq_integration_connections_user_provider'),
    )
    op.create_index('ix_integration_connections_user_id', 'integration_connections', ['user_id'])
    op.create_index(
        'ix_integration_connections_provider_user_id',
        'integration_connections',
        ['provider_user_id'],
    )

    op.create_table(
        'integration_auto_sync',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'provider', name='uq_integration_auto_sync_user_provider'),
    )
    op.create_index('ix_integration_auto_sync_user_id', 'integration_auto_sync', ['user_id'])

    op.create_table(
        'progress_tracking',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('activity_type', sa.String(100), nullable=False),
        sa.Column('activity_name', sa.String(255), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('activity_data', sa.JSON(), nullable=True),
        sa.Column('calories_burned', sa.Integer(), nullable=True),
        sa.Column('strava_activity_id', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            'user_id', 'strava_activity_id',
            name='uq_progress_tracking_user_strava_activity',
        ),
    )
    op.create_index('ix_progress_tracking_user_id', 'progress_tracking', ['user_id'])
    op.create_index('ix_progress_tracking_date', 'progress_tracking', ['date'])
    op.create_index(
        'ix_progress_tracking_strava_activity_id', 'progress_tracking', ['strava_activity_id']
    )

    op.create_table(
        'strava_webhook_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('object_type', sa.String(20), nullable=False),
        sa.Column('object_id', sa.BigInteger(), nullable=False),
        sa.Column('aspect_type', sa.String(20), nullable=False),
        sa.Column('owner_id', sa.BigInteger(), nullable=False),
        sa.Column('subscription_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('event_time', sa.DateTime(), nullable=False),
        sa.Column('updates', sa.JSON(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_strava_webhook_events_pending',
        'strava_webhook_events',
        ['processed', 'retry_count', 'created_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_strava_webhook_events_pending', table_name='strava_webhook_events')
    op.drop_table('strava_webhook_events')
    op.drop_table('progress_tracking')
    op.drop_table('integration_auto_sync')
    op.drop_table('integration_connections')
    op.drop_table('users')
