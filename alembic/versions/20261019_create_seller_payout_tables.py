"""Create seller payout tables.

Revision ID: create_seller_payout_tables
Revises:
Create Date: 2026-10-19

Tables:
- seller_payout_settings: one row per seller, created lazily
- seller_payouts: payout batches (PAY-OUT-YYYY-NNNN)
- payout_line_items: one row per invoice paid out; invoice_id is unique
  so an invoice can never be paid out twice
- payout_events: append-only lifecycle audit trail
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = 'create_seller_payout_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create payout settings, payouts, line items and events."""

    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing = set(inspector.get_table_names())

    if 'seller_payout_settings' not in existing:
        op.create_table(
            'seller_payout_settings',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column('seller_id', UUID(as_uuid=True), nullable=False),
            sa.Column('payout_frequency', sa.String(20), nullable=False, server_default='weekly'),
            sa.Column('payout_day', sa.Integer, nullable=False, server_default='1'),
            sa.Column('min_payout_amount', sa.Numeric(14, 2), nullable=False, server_default='100'),
            sa.Column('dispute_hold_enabled', sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column('hold_period_days', sa.Integer, nullable=False, server_default='7'),
            sa.Column('auto_payout_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
        op.create_index(
            'ix_seller_payout_settings_seller_id', 'seller_payout_settings', ['seller_id'], unique=True
        )

    if 'seller_payouts' not in existing:
        op.create_table(
            'seller_payouts',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column('payout_number', sa.String(30), nullable=False),
            sa.Column('seller_id', UUID(as_uuid=True), nullable=False),
            sa.Column('period_start', sa.Date, nullable=False),
            sa.Column('period_end', sa.Date, nullable=False),
            sa.Column('gross_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
            sa.Column('platform_fee_total', sa.Numeric(14, 2), nullable=False, server_default='0'),
            sa.Column('net_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
            sa.Column('currency', sa.String(3), nullable=False, server_default='SAR'),
            sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
            sa.Column('bank_name', sa.String(200), nullable=False, server_default=''),
            sa.Column('account_holder', sa.String(200), nullable=False, server_default=''),
            sa.Column('iban_masked', sa.String(34), nullable=False, server_default=''),
            sa.Column('initiated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('initiated_by', UUID(as_uuid=True), nullable=True),
            sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('bank_reference', sa.String(100), nullable=True),
            sa.Column('bank_confirmation_date', sa.DateTime(timezone=True), nullable=True),
            sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('failure_reason', sa.Text, nullable=True),
            sa.Column('hold_reason', sa.Text, nullable=True),
            sa.Column('hold_until', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
        op.create_index('ix_seller_payouts_payout_number', 'seller_payouts', ['payout_number'], unique=True)
        op.create_index('ix_seller_payouts_seller_status', 'seller_payouts', ['seller_id', 'status'])
        op.create_index('ix_seller_payouts_created', 'seller_payouts', ['created_at'])

    if 'payout_line_items' not in existing:
        op.create_table(
            'payout_line_items',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column(
                'payout_id', UUID(as_uuid=True),
                sa.ForeignKey('seller_payouts.id', ondelete='RESTRICT'), nullable=False
            ),
            sa.Column('invoice_id', UUID(as_uuid=True), nullable=False),
            sa.Column('invoice_number', sa.String(50), nullable=False),
            sa.Column('order_id', UUID(as_uuid=True), nullable=False),
            sa.Column('order_number', sa.String(50), nullable=False, server_default=''),
            sa.Column('invoice_total', sa.Numeric(14, 2), nullable=False),
            sa.Column('platform_fee', sa.Numeric(14, 2), nullable=False, server_default='0'),
            sa.Column('net_amount', sa.Numeric(14, 2), nullable=False),
            sa.Column('currency', sa.String(3), nullable=False, server_default='SAR'),
            sa.Column('invoice_status', sa.String(30), nullable=False, server_default='paid'),
            sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint('invoice_id', name='uq_payout_line_items_invoice'),
        )
        op.create_index('ix_payout_line_items_payout_id', 'payout_line_items', ['payout_id'])

    if 'payout_events' not in existing:
        op.create_table(
            'payout_events',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column(
                'payout_id', UUID(as_uuid=True),
                sa.ForeignKey('seller_payouts.id', ondelete='RESTRICT'), nullable=False
            ),
            sa.Column('event_type', sa.String(50), nullable=False),
            sa.Column('actor_id', UUID(as_uuid=True), nullable=True),
            sa.Column('actor_type', sa.String(20), nullable=False, server_default='system'),
            sa.Column('from_status', sa.String(30), nullable=True),
            sa.Column('to_status', sa.String(30), nullable=True),
            sa.Column('metadata', sa.JSON, nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
        op.create_index('ix_payout_events_payout_id', 'payout_events', ['payout_id'])
        op.create_index('ix_payout_events_event_type', 'payout_events', ['event_type'])
        op.create_index('ix_payout_events_created_at', 'payout_events', ['created_at'])


def downgrade() -> None:
    """Drop payout tables (children first)."""
    op.drop_table('payout_events')
    op.drop_table('payout_line_items')
    op.drop_table('seller_payouts')
    op.drop_table('seller_payout_settings')
