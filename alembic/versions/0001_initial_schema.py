"""Initial shipping ledger schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2024-01-15
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


SHIPMENT_STATUS = sa.Enum(
    'BOOKED', 'IN_TRANSIT', 'DELIVERED', 'CANCELLED',
    name='shipment_status', create_constraint=True,
)
TRACKING_EVENT_TYPE = sa.Enum(
    'LOADED', 'DEPARTED', 'ARRIVED', 'CUSTOMS', 'DELIVERED',
    name='tracking_event_type', create_constraint=True,
)
INVOICE_STATUS = sa.Enum(
    'OPEN', 'PARTIAL', 'PAID', 'VOID',
    name='invoice_status', create_constraint=True,
)
PAYMENT_METHOD = sa.Enum(
    'WIRE', 'ACH', 'CARD', 'CHECK', 'CASH',
    name='payment_method', create_constraint=True,
)


def _has_table(table_name):
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    # ── master data ──
    if not _has_table('customers'):
        op.create_table(
            'customers',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('name', sa.String(200), nullable=False, index=True),
            sa.Column('email', sa.String(255), nullable=True),
            sa.Column('phone', sa.String(50), nullable=True),
            sa.Column('billing_address', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if not _has_table('ports'):
        op.create_table(
            'ports',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('code', sa.String(5), nullable=False, unique=True, index=True),
            sa.Column('name', sa.String(200), nullable=False),
            sa.Column('country', sa.String(2), nullable=False),
            sa.Column('timezone', sa.String(64), nullable=False),
        )

    if not _has_table('vessels'):
        op.create_table(
            'vessels',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('name', sa.String(200), nullable=False),
            sa.Column('imo_number', sa.String(7), nullable=False, unique=True, index=True),
            sa.Column('capacity_teu', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('flag', sa.String(2), nullable=True),
            sa.CheckConstraint('capacity_teu >= 0', name='ck_vessels_capacity_non_negative'),
        )

    if not _has_table('routes'):
        op.create_table(
            'routes',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('origin_port_id', sa.Integer(), sa.ForeignKey('ports.id'), nullable=False, index=True),
            sa.Column('dest_port_id', sa.Integer(), sa.ForeignKey('ports.id'), nullable=False, index=True),
            sa.Column('planned_departure_date', sa.Date(), nullable=False),
            sa.Column('planned_arrival_date', sa.Date(), nullable=False, index=True),
            sa.CheckConstraint('origin_port_id <> dest_port_id', name='ck_routes_distinct_ports'),
            sa.CheckConstraint(
                'planned_arrival_date >= planned_departure_date',
                name='ck_routes_arrival_after_departure',
            ),
        )

    if not _has_table('containers'):
        op.create_table(
            'containers',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('container_no', sa.String(11), nullable=False, unique=True, index=True),
            sa.Column('size', sa.Integer(), nullable=False),
            sa.Column('type_code', sa.String(10), nullable=False),
            sa.CheckConstraint('size IN (20, 40, 45)', name='ck_containers_size'),
        )

    # ── shipments ──
    if not _has_table('shipments'):
        op.create_table(
            'shipments',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('booking_no', sa.String(32), nullable=False, unique=True, index=True),
            sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False, index=True),
            sa.Column('route_id', sa.Integer(), sa.ForeignKey('routes.id'), nullable=False, index=True),
            sa.Column('vessel_id', sa.Integer(), sa.ForeignKey('vessels.id'), nullable=True, index=True),
            sa.Column('status', SHIPMENT_STATUS, nullable=False, server_default='BOOKED', index=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column('delivered_at', sa.DateTime(), nullable=True),
        )

    if not _has_table('shipment_containers'):
        op.create_table(
            'shipment_containers',
            sa.Column(
                'shipment_id', sa.Integer(),
                sa.ForeignKey('shipments.id', ondelete='CASCADE'), primary_key=True,
            ),
            sa.Column('container_id', sa.Integer(), sa.ForeignKey('containers.id'), primary_key=True, index=True),
        )

    if not _has_table('tracking_events'):
        op.create_table(
            'tracking_events',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column(
                'shipment_id', sa.Integer(),
                sa.ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False, index=True,
            ),
            sa.Column('event_type', TRACKING_EVENT_TYPE, nullable=False),
            sa.Column('event_time', sa.DateTime(), nullable=False, index=True),
            sa.Column('port_id', sa.Integer(), sa.ForeignKey('ports.id'), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
        )

    # ── billing ──
    if not _has_table('invoices'):
        op.create_table(
            'invoices',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('invoice_no', sa.String(32), nullable=False, unique=True, index=True),
            sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False, index=True),
            sa.Column('shipment_id', sa.Integer(), sa.ForeignKey('shipments.id'), nullable=True, index=True),
            sa.Column('issue_date', sa.Date(), nullable=False),
            sa.Column('due_date', sa.Date(), nullable=False),
            sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
            sa.Column('status', INVOICE_STATUS, nullable=False, server_default='OPEN', index=True),
            sa.CheckConstraint('total_amount >= 0', name='ck_invoices_total_non_negative'),
            sa.CheckConstraint('due_date >= issue_date', name='ck_invoices_due_after_issue'),
        )

    if not _has_table('invoice_lines'):
        op.create_table(
            'invoice_lines',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column(
                'invoice_id', sa.Integer(),
                sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True,
            ),
            sa.Column('description', sa.String(255), nullable=False),
            sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
            sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
            sa.CheckConstraint('quantity > 0', name='ck_invoice_lines_quantity_positive'),
            sa.CheckConstraint('unit_price >= 0', name='ck_invoice_lines_price_non_negative'),
        )

    if not _has_table('payments'):
        op.create_table(
            'payments',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column(
                'invoice_id', sa.Integer(),
                sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True,
            ),
            sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('paid_date', sa.Date(), nullable=False),
            sa.Column('method', PAYMENT_METHOD, nullable=False),
            sa.Column('reference', sa.String(64), nullable=True),
            sa.CheckConstraint('paid_amount > 0', name='ck_payments_amount_positive'),
        )


def downgrade() -> None:
    # children first
    for table in (
        'payments', 'invoice_lines', 'invoices',
        'tracking_events', 'shipment_containers', 'shipments',
        'containers', 'routes', 'vessels', 'ports', 'customers',
    ):
        if _has_table(table):
            op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (PAYMENT_METHOD, INVOICE_STATUS, TRACKING_EVENT_TYPE, SHIPMENT_STATUS):
        enum_type.drop(bind, checkfirst=True)
