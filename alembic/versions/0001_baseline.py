"""Baseline migration - tenants, clients, services, assignments, history, requests

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates all tables, the one-active-assignment partial index and the
append-only triggers on service_status_history.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SERVICE_STATUSES = (
    'pending', 'assigned', 'in_progress', 'waiting_for_client', 'on_hold',
    'under_review', 'changes_requested', 'completed', 'delivered', 'invoiced',
    'closed', 'cancelled',
)

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')
TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    """Create workflow tables."""

    # ==========================================================================
    # Tenants and identity
    # ==========================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('created_at', TS, nullable=True),
    )
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', TS, nullable=True),
    )
    op.create_table(
        'memberships',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'organization_id', sa.Uuid(),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_memberships_user_org'),
    )
    op.create_index('idx_memberships_org_role', 'memberships', ['organization_id', 'role'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'organization_id', sa.Uuid(),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('created_at', TS, nullable=True),
    )
    op.create_index('idx_clients_org', 'clients', ['organization_id'])

    # ==========================================================================
    # Service requests
    # ==========================================================================
    op.create_table(
        'service_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'organization_id', sa.Uuid(),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('urgency', sa.String(20), nullable=False, server_default='normal'),
        sa.Column('preferred_due_date', sa.Date(), nullable=True),
        sa.Column('financial_year', sa.String(20), nullable=True),
        sa.Column('assessment_year', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('reviewed_by_id', sa.Uuid(), nullable=True),
        sa.Column('reviewed_by_role', sa.String(50), nullable=True),
        sa.Column('reviewed_at', TS, nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('approval_notes', sa.Text(), nullable=True),
        sa.Column('quoted_fee', sa.Numeric(12, 2), nullable=True),
        sa.Column('attachments', JSONType, nullable=True),
        sa.Column('created_at', TS, nullable=True),
        sa.Column('updated_at', TS, nullable=True),
    )
    op.create_index('idx_service_requests_org_status', 'service_requests', ['organization_id', 'status'])
    op.create_index('idx_service_requests_client', 'service_requests', ['organization_id', 'client_id'])

    # ==========================================================================
    # Services
    # ==========================================================================
    status_values = ', '.join(f"'{s}'" for s in SERVICE_STATUSES)
    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'organization_id', sa.Uuid(),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('service_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('started_at', TS, nullable=True),
        sa.Column('completed_at', TS, nullable=True),
        sa.Column('fee_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        sa.Column('financial_year', sa.String(20), nullable=True),
        sa.Column('assessment_year', sa.String(20), nullable=True),
        sa.Column('origin', sa.String(30), nullable=False, server_default='firm_created'),
        sa.Column(
            'service_request_id', sa.Uuid(),
            sa.ForeignKey('service_requests.id', ondelete='RESTRICT'), nullable=True, unique=True,
        ),
        sa.Column('created_by_user_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', TS, nullable=True),
        sa.Column('updated_at', TS, nullable=True),
        sa.CheckConstraint(f'status IN ({status_values})', name='ck_services_status'),
    )
    op.create_index('idx_services_org_status', 'services', ['organization_id', 'status'])
    op.create_index('idx_services_org_client', 'services', ['organization_id', 'client_id'])

    # ==========================================================================
    # Assignment ledger
    # ==========================================================================
    op.create_table(
        'service_assignments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'organization_id', sa.Uuid(),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('service_id', sa.Uuid(), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assignee_id', sa.Uuid(), nullable=False),
        sa.Column('assignee_type', sa.String(30), nullable=False),
        sa.Column('assigned_by_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_by_role', sa.String(50), nullable=False),
        sa.Column('delegation_level', sa.Integer(), nullable=False),
        sa.Column(
            'previous_assignment_id', sa.Uuid(),
            sa.ForeignKey('service_assignments.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('delegation_reason', sa.Text(), nullable=True),
        sa.Column('assignment_type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('assigned_at', TS, nullable=False),
        sa.Column('completed_at', TS, nullable=True),
        sa.Column('revoked_at', TS, nullable=True),
        sa.Column('revoked_by_id', sa.Uuid(), nullable=True),
        sa.Column('revoked_reason', sa.Text(), nullable=True),
        sa.CheckConstraint('delegation_level >= 0', name='ck_service_assignments_level'),
    )
    op.create_index(
        'idx_service_assignments_service', 'service_assignments', ['service_id', 'delegation_level']
    )
    op.create_index(
        'idx_service_assignments_assignee',
        'service_assignments',
        ['organization_id', 'assignee_id', 'status'],
    )
    # At most one ACTIVE assignment per service
    op.create_index(
        'uq_service_assignments_active',
        'service_assignments',
        ['service_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    # ==========================================================================
    # Status history (append-only)
    # ==========================================================================
    op.create_table(
        'service_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('service_id', sa.Uuid(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('from_status', sa.String(30), nullable=True),
        sa.Column('to_status', sa.String(30), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('changed_by_id', sa.Uuid(), nullable=True),
        sa.Column('changed_by_role', sa.String(50), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('metadata', JSONType, nullable=True),
        sa.Column('changed_at', TS, nullable=False),
        sa.UniqueConstraint('service_id', 'sequence', name='uq_service_status_history_sequence'),
    )
    op.create_index(
        'idx_service_status_history_org', 'service_status_history', ['organization_id', 'changed_at']
    )

    dialect = op.get_bind().dialect.name
    if dialect == 'postgresql':
        op.execute('''
            CREATE OR REPLACE FUNCTION forbid_status_history_mutation() RETURNS trigger AS $$
            BEGIN
                RAISE EXCEPTION 'service_status_history is append-only';
            END;
            $$ LANGUAGE plpgsql
        ''')
        op.execute('''
            CREATE TRIGGER service_status_history_append_only
            BEFORE UPDATE OR DELETE ON service_status_history
            FOR EACH ROW EXECUTE FUNCTION forbid_status_history_mutation()
        ''')
    elif dialect == 'sqlite':
        for operation in ('UPDATE', 'DELETE'):
            op.execute(f'''
                CREATE TRIGGER service_status_history_no_{operation.lower()}
                BEFORE {operation} ON service_status_history
                BEGIN SELECT RAISE(ABORT, 'service_status_history is append-only'); END
            ''')


def downgrade() -> None:
    """Drop workflow tables."""
    dialect = op.get_bind().dialect.name
    if dialect == 'postgresql':
        op.execute('DROP TRIGGER IF EXISTS service_status_history_append_only ON service_status_history')
        op.execute('DROP FUNCTION IF EXISTS forbid_status_history_mutation()')

    op.drop_table('service_status_history')
    op.drop_table('service_assignments')
    op.drop_table('services')
    op.drop_table('service_requests')
    op.drop_table('clients')
    op.drop_table('memberships')
    op.drop_table('users')
    op.drop_table('organizations')
