"""Initial schema - users, tickets, comments, attachments, audit logs, dedup

Revision ID: 001
Revises:
Create Date: 2026-10-19

WHY: Creates the whole helpdesk schema. Constraint names follow the naming
convention declared on Base.metadata so autogenerate stays quiet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


USER_ROLES = ('USER', 'ADMIN')
TICKET_STATUSES = ('NEW', 'IN_PROGRESS', 'WAITING_ON_USER', 'RESOLVED', 'CLOSED', 'REOPENED')
TICKET_PRIORITIES = ('LOW', 'NORMAL', 'HIGH', 'URGENT')
NOTIFICATION_EVENTS = ('STATUS_CHANGED', 'COMMENT_ADDED', 'REOPENED')


def upgrade() -> None:
    """
    Create all tables.

    WHY: Enum columns store member names, matching SQLAlchemy's default
    for Enum(PythonEnum).
    """
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum(*USER_ROLES, name='userrole'), nullable=False, server_default='USER'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'tickets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=120), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum(*TICKET_STATUSES, name='ticketstatus'), nullable=False, server_default='NEW'),
        sa.Column('priority', sa.Enum(*TICKET_PRIORITIES, name='ticketpriority'), nullable=False, server_default='NORMAL'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], name='fk_tickets_created_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_tickets'),
    )
    op.create_index('ix_tickets_created_by_user_id', 'tickets', ['created_by_user_id'])
    # Auto-close scans status = resolved AND resolved_at <= cutoff
    op.create_index('ix_tickets_status_resolved_at', 'tickets', ['status', 'resolved_at'])
    op.create_index('ix_tickets_created_at', 'tickets', ['created_at'])

    op.create_table(
        'ticket_comments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('author_user_id', sa.Integer(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id'], name='fk_ticket_comments_ticket_id_tickets'),
        sa.ForeignKeyConstraint(['author_user_id'], ['users.id'], name='fk_ticket_comments_author_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_ticket_comments'),
    )
    op.create_index('ix_ticket_comments_ticket_id', 'ticket_comments', ['ticket_id'])
    op.create_index('ix_ticket_comments_author_user_id', 'ticket_comments', ['author_user_id'])

    op.create_table(
        'ticket_attachments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('uploaded_by_user_id', sa.Integer(), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('storage_key', sa.String(length=500), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id'], name='fk_ticket_attachments_ticket_id_tickets'),
        sa.ForeignKeyConstraint(['uploaded_by_user_id'], ['users.id'], name='fk_ticket_attachments_uploaded_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_ticket_attachments'),
        sa.UniqueConstraint('storage_key', name='uq_ticket_attachments_storage_key'),
    )
    op.create_index('ix_ticket_attachments_ticket_id', 'ticket_attachments', ['ticket_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('target_type', sa.String(length=32), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], name='fk_audit_logs_actor_user_id_users', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_target', 'audit_logs', ['target_type', 'target_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])

    # The composite primary key is what makes notification dedup race-safe
    op.create_table(
        'notification_dedup',
        sa.Column('ticket_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.Enum(*NOTIFICATION_EVENTS, name='notificationevent'), nullable=False),
        sa.Column('minute_bucket', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id'], name='fk_notification_dedup_ticket_id_tickets'),
        sa.PrimaryKeyConstraint('ticket_id', 'event_type', 'minute_bucket', name='pk_notification_dedup'),
    )


def downgrade() -> None:
    """
    Drop all tables and enum types.
    """
    op.drop_table('notification_dedup')
    op.drop_index('ix_audit_logs_created_at', table_name='audit_logs')
    op.drop_index('ix_audit_logs_target', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_index('ix_audit_logs_actor_user_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_ticket_attachments_ticket_id', table_name='ticket_attachments')
    op.drop_table('ticket_attachments')
    op.drop_index('ix_ticket_comments_author_user_id', table_name='ticket_comments')
    op.drop_index('ix_ticket_comments_ticket_id', table_name='ticket_comments')
    op.drop_table('ticket_comments')
    op.drop_index('ix_tickets_created_at', table_name='tickets')
    op.drop_index('ix_tickets_status_resolved_at', table_name='tickets')
    op.drop_index('ix_tickets_created_by_user_id', table_name='tickets')
    op.drop_table('tickets')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.execute("DROP TYPE IF EXISTS notificationevent")
    op.execute("DROP TYPE IF EXISTS ticketpriority")
    op.execute("DROP TYPE IF EXISTS ticketstatus")
    op.execute("DROP TYPE IF EXISTS userrole")
