"""Create tenants and payments tables.

Revision ID: 001_create_rent_payments
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_create_rent_payments'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create tenancy and payment tables."""
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('property_id', sa.String(128), nullable=False),
        sa.Column('room_id', sa.String(128), nullable=True),
        sa.Column('rent', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('deposit', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column(
            'status',
            sa.Enum('ACTIVE', 'INACTIVE', 'PENDING', 'LEFT', 'SUSPENDED', 'EVICTED', name='tenantstatus'),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tenants_user_id', 'tenants', ['user_id'])
    op.create_index('ix_tenants_property_id', 'tenants', ['property_id'])
    op.create_index('idx_tenant_property_status', 'tenants', ['property_id', 'status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('tenant_id', sa.String(128), nullable=False),
        sa.Column('property_id', sa.String(128), nullable=False),
        sa.Column('room_id', sa.String(128), nullable=True),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            'payment_type',
            sa.Enum('RENT', 'DEPOSIT', 'UTILITY', 'LATE_FEE', 'OTHER', name='paymenttype'),
            nullable=False,
        ),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'OVERDUE', 'PAID', 'FAILED', name='paymentstatus'),
            nullable=False,
        ),
        sa.Column('month', sa.String(7), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('late_fee', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('overdue_days', sa.Integer(), nullable=True),
        sa.Column(
            'payment_method',
            sa.Enum('CASH', 'BANK_TRANSFER', 'UPI', 'CHEQUE', 'ONLINE', name='paymentmethod'),
            nullable=True,
        ),
        sa.Column('transaction_id', sa.String(64), nullable=True),
        sa.Column('gateway_payment_id', sa.String(64), nullable=True),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('amount >= 0', name='ck_payment_amount_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'payment_type', 'month', name='uq_tenant_type_month'),
    )
    op.create_index('ix_payments_tenant_id', 'payments', ['tenant_id'])
    op.create_index('ix_payments_property_id', 'payments', ['property_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_due_date', 'payments', ['due_date'])
    op.create_index('ix_payments_transaction_id', 'payments', ['transaction_id'])
    op.create_index('idx_payment_tenant_status', 'payments', ['tenant_id', 'status'])


def downgrade() -> None:
    """Drop tenancy and payment tables."""
    op.drop_index('idx_payment_tenant_status', table_name='payments')
    op.drop_index('ix_payments_transaction_id', table_name='payments')
    op.drop_index('ix_payments_due_date', table_name='payments')
    op.drop_index('ix_payments_status', table_name='payments')
    op.drop_index('ix_payments_property_id', table_name='payments')
    op.drop_index('ix_payments_tenant_id', table_name='payments')
    op.drop_table('payments')

    op.drop_index('idx_tenant_property_status', table_name='tenants')
    op.drop_index('ix_tenants_property_id', table_name='tenants')
    op.drop_index('ix_tenants_user_id', table_name='tenants')
    op.drop_table('tenants')
