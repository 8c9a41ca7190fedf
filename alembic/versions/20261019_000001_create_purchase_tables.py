"""Create purchase workflow tables

Revision ID: 20261019_000001
Revises: None
Create Date: 2026-10-19

Creates users, properties, leases, purchase_requests and the
append-only purchase_payment_ledger.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PURCHASE_REQUEST_STATUSES = (
    'PENDING',
    'APPROVED',
    'REJECTED',
    'CANCELLED',
    'PAYMENT_PENDING',
    'PAYMENT_COMPLETED',
    'PAYMENT_FAILED',
)

OPEN_REQUEST_FILTER = "status IN ('APPROVED', 'PAYMENT_FAILED', 'PAYMENT_PENDING', 'PENDING')"


def upgrade() -> None:
    """Create the purchase workflow tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('listing_type', sa.String(10), nullable=False, server_default='SALE'),
        sa.Column('sale_price', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sold', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('buyer_id', sa.Integer(), nullable=True),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], name='fk_properties_owner_id'),
        sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], name='fk_properties_buyer_id'),
    )
    op.create_index('ix_properties_owner_id', 'properties', ['owner_id'])

    op.create_table(
        'leases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('exclusive', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], name='fk_leases_property_id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], name='fk_leases_tenant_id'),
    )
    op.create_index('ix_leases_property_id', 'leases', ['property_id'])
    op.create_index('ix_leases_tenant_id', 'leases', ['tenant_id'])

    op.create_table(
        'purchase_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*PURCHASE_REQUEST_STATUSES, name='purchase_request_status', create_constraint=True),
            nullable=False,
            server_default='PENDING'
        ),
        sa.Column('purchase_price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('request_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('response_notes', sa.Text(), nullable=True),
        sa.Column('gateway_order_id', sa.String(100), nullable=True),
        sa.Column('gateway_payment_id', sa.String(100), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failure_reason', sa.String(500), nullable=True),
        sa.Column('payment_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], name='fk_purchase_requests_property_id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], name='fk_purchase_requests_tenant_id'),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id'], name='fk_purchase_requests_landlord_id'),
        sa.UniqueConstraint('gateway_payment_id', name='uq_purchase_requests_gateway_payment_id'),
    )

    # Create indexes for common queries
    op.create_index('ix_purchase_requests_property_id', 'purchase_requests', ['property_id'])
    op.create_index('ix_purchase_requests_tenant_id', 'purchase_requests', ['tenant_id'])
    op.create_index('ix_purchase_requests_landlord_id', 'purchase_requests', ['landlord_id'])
    op.create_index('ix_purchase_requests_status', 'purchase_requests', ['status'])
    op.create_index('ix_purchase_requests_gateway_order_id', 'purchase_requests', ['gateway_order_id'])

    # At most one open request per tenant and property
    op.create_index(
        'uq_purchase_requests_open_per_tenant',
        'purchase_requests',
        ['tenant_id', 'property_id'],
        unique=True,
        sqlite_where=sa.text(OPEN_REQUEST_FILTER),
        mssql_where=sa.text(OPEN_REQUEST_FILTER),
        postgresql_where=sa.text(OPEN_REQUEST_FILTER),
    )

    op.create_table(
        'purchase_payment_ledger',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('purchase_request_id', sa.Integer(), nullable=False),
        sa.Column('gateway_payment_id', sa.String(100), nullable=False),
        sa.Column('transaction_hash', sa.String(64), nullable=False),
        sa.Column('previous_hash', sa.String(64), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['purchase_request_id'],
            ['purchase_requests.id'],
            name='fk_purchase_payment_ledger_request_id',
            ondelete='RESTRICT',
        ),
        sa.UniqueConstraint('purchase_request_id', name='uq_purchase_payment_ledger_request_id'),
        sa.UniqueConstraint('gateway_payment_id', name='uq_purchase_payment_ledger_payment_id'),
        sa.UniqueConstraint('transaction_hash', name='uq_purchase_payment_ledger_transaction_hash'),
    )
    op.create_index('ix_purchase_payment_ledger_request_id', 'purchase_payment_ledger', ['purchase_request_id'])
    op.create_index('ix_purchase_payment_ledger_transaction_hash', 'purchase_payment_ledger', ['transaction_hash'])
    # A parent hash can have only one child, so concurrent appends cannot fork the chain
    op.create_index('ix_purchase_payment_ledger_previous_hash', 'purchase_payment_ledger', ['previous_hash'], unique=True)


def downgrade() -> None:
    """Drop the purchase workflow tables."""
    op.drop_index('ix_purchase_payment_ledger_previous_hash', table_name='purchase_payment_ledger')
    op.drop_index('ix_purchase_payment_ledger_transaction_hash', table_name='purchase_payment_ledger')
    op.drop_index('ix_purchase_payment_ledger_request_id', table_name='purchase_payment_ledger')
    op.drop_table('purchase_payment_ledger')

    op.drop_index('uq_purchase_requests_open_per_tenant', table_name='purchase_requests')
    op.drop_index('ix_purchase_requests_gateway_order_id', table_name='purchase_requests')
    op.drop_index('ix_purchase_requests_status', table_name='purchase_requests')
    op.drop_index('ix_purchase_requests_landlord_id', table_name='purchase_requests')
    op.drop_index('ix_purchase_requests_tenant_id', table_name='purchase_requests')
    op.drop_index('ix_purchase_requests_property_id', table_name='purchase_requests')
    op.drop_table('purchase_requests')

    op.drop_index('ix_leases_tenant_id', table_name='leases')
    op.drop_index('ix_leases_property_id', table_name='leases')
    op.drop_table('leases')

    op.drop_index('ix_properties_owner_id', table_name='properties')
    op.drop_table('properties')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
