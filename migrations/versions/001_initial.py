"""initial

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18 10:00:00.000000

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
    # Users
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.Integer(), nullable=True),
        sa.Column('is_historical_record', sa.Boolean(), nullable=False),
        sa.Column('worker_info', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)

    # Apartments
    op.create_table('apartments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_number', sa.String(), nullable=False),
        sa.Column('building', sa.String(), nullable=False),
        sa.Column('floor', sa.Integer(), nullable=False),
        sa.Column('apartment_type', sa.String(), nullable=False),
        sa.Column('bedrooms', sa.Integer(), nullable=False),
        sa.Column('bathrooms', sa.Integer(), nullable=False),
        sa.Column('area', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('rent', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('deposit', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('is_occupied', sa.Boolean(), nullable=False),
        sa.Column('current_tenant_id', sa.Integer(), nullable=True),
        sa.Column('occupied_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_vacated_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('amenities', sa.JSON(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['current_tenant_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_apartments_unit_number'), 'apartments', ['unit_number'], unique=True)

    # Tenant Info
    op.create_table('tenant_info',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('apartment_id', sa.Integer(), nullable=True),
        sa.Column('room_number', sa.String(), nullable=True),
        sa.Column('lease_start_date', sa.Date(), nullable=True),
        sa.Column('lease_end_date', sa.Date(), nullable=True),
        sa.Column('lease_status', sa.String(), nullable=False),
        sa.Column('monthly_rent', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('security_deposit', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('emergency_contact', sa.JSON(), nullable=True),
        sa.Column('lease_history', sa.JSON(), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('total_months', sa.Integer(), nullable=False),
        sa.Column('total_years', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['apartment_id'], ['apartments.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id')
    )
    op.create_index(op.f('ix_tenant_info_apartment_id'), 'tenant_info', ['apartment_id'], unique=False)

    # Beverages
    op.create_table('beverages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # Beverage Carts
    op.create_table('beverage_carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('ordered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('billed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('billing_month', sa.Integer(), nullable=True),
        sa.Column('billing_year', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_cart_tenant_status', 'beverage_carts', ['tenant_id', 'status'], unique=False)

    op.create_table('beverage_cart_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('beverage_id', sa.Integer(), nullable=False),
        sa.Column('beverage_name', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['beverage_id'], ['beverages.id'], ),
        sa.ForeignKeyConstraint(['cart_id'], ['beverage_carts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_beverage_cart_items_cart_id'), 'beverage_cart_items', ['cart_id'], unique=False)

    # Rooftop Reservations
    op.create_table('rooftop_reservations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('reservation_date', sa.Date(), nullable=False),
        sa.Column('time_slot', sa.String(), nullable=False),
        sa.Column('time_slot_start', sa.String(length=5), nullable=True),
        sa.Column('time_slot_end', sa.String(length=5), nullable=True),
        sa.Column('number_of_guests', sa.Integer(), nullable=False),
        sa.Column('purpose', sa.String(), nullable=True),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('room_number', sa.String(), nullable=True),
        sa.Column('contact_phone', sa.String(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_rooftop_reservations_tenant_id'), 'rooftop_reservations', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_rooftop_reservations_reservation_date'), 'rooftop_reservations', ['reservation_date'], unique=False)

    # Utility Bills
    op.create_table('utility_bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_number', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('apartment_id', sa.Integer(), nullable=False),
        sa.Column('billing_period_start', sa.Date(), nullable=False),
        sa.Column('billing_period_end', sa.Date(), nullable=False),
        sa.Column('utilities', sa.JSON(), nullable=False),
        sa.Column('additional_charges', sa.JSON(), nullable=False),
        sa.Column('discounts', sa.JSON(), nullable=False),
        sa.Column('beverage_items', sa.JSON(), nullable=False),
        sa.Column('beverage_total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('tax', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('generated_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_sent', sa.Boolean(), nullable=False),
        sa.Column('email_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', sa.String(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['apartment_id'], ['apartments.id'], ),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['generated_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_utility_bills_bill_number'), 'utility_bills', ['bill_number'], unique=True)
    op.create_index('idx_bill_tenant_status', 'utility_bills', ['tenant_id', 'status'], unique=False)
    op.create_index('idx_bill_period', 'utility_bills', ['billing_period_start', 'billing_period_end'], unique=False)

    op.create_table('bill_sequences',
        sa.Column('period', sa.String(length=6), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('period')
    )

    # Beverage Consumption
    op.create_table('beverage_consumption',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('beverage_id', sa.Integer(), nullable=False),
        sa.Column('beverage_name', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('consumption_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('room_number', sa.String(), nullable=True),
        sa.Column('apartment_id', sa.Integer(), nullable=True),
        sa.Column('reservation_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('payment_status', sa.String(), nullable=False),
        sa.Column('payment_method', sa.String(), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('included_in_bill', sa.Boolean(), nullable=False),
        sa.Column('utility_bill_id', sa.Integer(), nullable=True),
        sa.Column('billing_period_start', sa.Date(), nullable=True),
        sa.Column('billing_period_end', sa.Date(), nullable=True),
        sa.Column('billed_in_month', sa.Integer(), nullable=True),
        sa.Column('billed_in_year', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['apartment_id'], ['apartments.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['beverage_id'], ['beverages.id'], ),
        sa.ForeignKeyConstraint(['reservation_id'], ['rooftop_reservations.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['utility_bill_id'], ['utility_bills.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_beverage_consumption_consumption_date'), 'beverage_consumption', ['consumption_date'], unique=False)
    op.create_index(op.f('ix_beverage_consumption_utility_bill_id'), 'beverage_consumption', ['utility_bill_id'], unique=False)
    op.create_index('idx_consumption_tenant_payment', 'beverage_consumption', ['tenant_id', 'payment_status'], unique=False)
    op.create_index('idx_consumption_tenant_included', 'beverage_consumption', ['tenant_id', 'included_in_bill'], unique=False)

    # Maintenance Requests
    op.create_table('maintenance_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('apartment_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('priority', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('assigned_worker_id', sa.Integer(), nullable=True),
        sa.Column('assigned_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_completion_time', sa.String(), nullable=True),
        sa.Column('actual_completion_time', sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column('work_notes', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('feedback_comment', sa.Text(), nullable=True),
        sa.Column('feedback_submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['apartment_id'], ['apartments.id'], ),
        sa.ForeignKeyConstraint(['assigned_worker_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_maintenance_requests_tenant_id'), 'maintenance_requests', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_maintenance_requests_status'), 'maintenance_requests', ['status'], unique=False)
    op.create_index(op.f('ix_maintenance_requests_assigned_worker_id'), 'maintenance_requests', ['assigned_worker_id'], unique=False)

    # Leave Requests
    op.create_table('leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('worker_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', sa.String(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['worker_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leave_requests_worker_id'), 'leave_requests', ['worker_id'], unique=False)
    op.create_index(op.f('ix_leave_requests_status'), 'leave_requests', ['status'], unique=False)


def downgrade() -> None:
    op.drop_table('leave_requests')
    op.drop_table('maintenance_requests')
    op.drop_table('beverage_consumption')
    op.drop_table('bill_sequences')
    op.drop_table('utility_bills')
    op.drop_table('rooftop_reservations')
    op.drop_table('beverage_cart_items')
    op.drop_table('beverage_carts')
    op.drop_table('beverages')
    op.drop_table('tenant_info')
    op.drop_table('apartments')
    op.drop_table('users')
