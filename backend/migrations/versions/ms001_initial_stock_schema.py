"""initial stock, reorder and audit schema

Revision ID: ms001_initial
Revises:
Create Date: 2025-12-01 00:00:00.000000

Creates the complete MineStock schema:
- suppliers, resources: stocked items and their sources
- usage_events: append-only consumption history (analytics source)
- reorders: procurement lifecycle PENDING -> APPROVED -> ORDERED -> DELIVERED / CANCELLED
- holidays: calendar consulted by the write-restriction gate
- audit_log, security_violations: append-only mutation and denial trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'ms001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # suppliers
    # ============================================================================
    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('contact', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_suppliers_name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # resources: stock_level only changes through usage and deliveries
    # ============================================================================
    op.create_table(
        'resources',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('category', sa.String(length=30), nullable=True),
        sa.Column('unit_of_measure', sa.String(length=20), nullable=True),
        sa.Column('stock_level', sa.Numeric(14, 2), nullable=False),
        sa.Column('threshold', sa.Numeric(14, 2), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('unit_price_cents', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_resources_name'),
        sa.CheckConstraint('stock_level >= 0', name='ck_resources_stock_nonnegative'),
        sa.CheckConstraint('threshold > 0', name='ck_resources_threshold_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_resources_category', 'resources', ['category'])
    op.create_index(op.f('ix_resources_supplier_id'), 'resources', ['supplier_id'])

    # ============================================================================
    # usage_events: append-only
    # ============================================================================
    op.create_table(
        'usage_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 2), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('department', sa.String(length=50), nullable=True),
        sa.Column('operator_id', sa.String(length=20), nullable=True),
        sa.Column('equipment_used', sa.String(length=50), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_usage_events_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_usage_events_resource_used', 'usage_events', ['resource_id', 'used_at'])
    op.create_index(op.f('ix_usage_events_resource_id'), 'usage_events', ['resource_id'])
    op.create_index(op.f('ix_usage_events_used_at'), 'usage_events', ['used_at'])

    # ============================================================================
    # reorders
    # ============================================================================
    op.create_table(
        'reorders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('expected_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approval_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_reorders_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_reorders_resource_status', 'reorders', ['resource_id', 'status'])
    op.create_index('ix_reorders_dates', 'reorders', ['order_date', 'expected_delivery'])
    op.create_index(op.f('ix_reorders_resource_id'), 'reorders', ['resource_id'])
    op.create_index(op.f('ix_reorders_status'), 'reorders', ['status'])

    # ============================================================================
    # holidays
    # ============================================================================
    op.create_table(
        'holidays',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('holiday_date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('recurrence_type', sa.String(length=20), nullable=True),
        sa.Column('created_by', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('holiday_date', name='uq_holidays_date'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # audit_log / security_violations: append-only
    # ============================================================================
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entity', sa.String(length=50), nullable=False),
        sa.Column('operation', sa.String(length=32), nullable=False),
        sa.Column('record_id', sa.String(length=100), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='SUCCESS'),
        sa.Column('message', sa.String(length=4000), nullable=True),
        sa.Column('actor', sa.String(length=100), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('ip_address', sa.String(length=50), nullable=True),
        sa.Column('session_id', sa.String(length=50), nullable=True),
        sa.Column('machine_name', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_log_entity_op', 'audit_log', ['entity', 'operation'])
    op.create_index('ix_audit_log_occurred', 'audit_log', ['occurred_at'])
    op.create_index('ix_audit_log_actor', 'audit_log', ['actor'])
    op.create_index(op.f('ix_audit_log_status'), 'audit_log', ['status'])

    op.create_table(
        'security_violations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempted_operation', sa.String(length=50), nullable=False),
        sa.Column('attempted_entity', sa.String(length=50), nullable=False),
        sa.Column('restriction_type', sa.String(length=50), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('actor', sa.String(length=100), nullable=False),
        sa.Column('ip_address', sa.String(length=50), nullable=True),
        sa.Column('session_info', sa.String(length=500), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_security_violations_occurred', 'security_violations', ['occurred_at'])
    op.create_index(op.f('ix_security_violations_restriction_type'), 'security_violations', ['restriction_type'])


def downgrade():
    op.drop_table('security_violations')
    op.drop_table('audit_log')
    op.drop_table('holidays')
    op.drop_table('reorders')
    op.drop_table('usage_events')
    op.drop_table('resources')
    op.drop_table('suppliers')
