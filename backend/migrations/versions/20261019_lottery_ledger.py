"""Lottery ledger: stores, boxes, box metric samples, ticket packs

Revision ID: 20261019_lottery_ledger
Revises:
Create Date: 2026-10-19

This migration adds:
1. Stores (tenant boundary, timezone for day rollover)
2. Boxes with opening/closing counters and display settings
3. Box metric samples (device metric history)
4. Ticket packs with serial range and daily bookkeeping
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_lottery_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. STORES
    # ==========================================================================
    op.create_table('stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stores', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stores_code'), ['code'], unique=True)
        batch_op.create_index(batch_op.f('ix_stores_is_active'), ['is_active'], unique=False)

    # ==========================================================================
    # 2. BOXES
    # ==========================================================================
    op.create_table('boxes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('box_number', sa.String(length=32), nullable=False),
        sa.Column('game_number', sa.String(length=32), nullable=False),
        sa.Column('ticket_serial', sa.String(length=64), nullable=False),
        sa.Column('opening_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('closing_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ticket_cost_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('last_updated', sa.DateTime(), nullable=False),
        sa.Column('last_reset_at', sa.DateTime(), nullable=True),
        sa.Column('show_sequence', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('show_box_number', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('show_game_number', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('show_ticket_serial', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('show_opening_number', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('show_closing_number', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('show_sales', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('temperature', sa.Float(), nullable=True),
        sa.Column('battery_level', sa.Float(), nullable=True),
        sa.Column('last_active', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'box_number', name='uq_boxes_store_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('boxes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_boxes_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_boxes_is_active'), ['is_active'], unique=False)
        batch_op.create_index(batch_op.f('ix_boxes_last_updated'), ['last_updated'], unique=False)

    # ==========================================================================
    # 3. BOX METRIC SAMPLES
    # ==========================================================================
    op.create_table('box_metric_samples',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('box_id', sa.Integer(), nullable=False),
        sa.Column('temperature', sa.Float(), nullable=True),
        sa.Column('battery_level', sa.Float(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['box_id'], ['boxes.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('box_metric_samples', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_box_metric_samples_box_id'), ['box_id'], unique=False)
        batch_op.create_index('ix_box_metric_samples_box_recorded', ['box_id', 'recorded_at'], unique=False)

    # ==========================================================================
    # 4. TICKET PACKS
    # ==========================================================================
    op.create_table('ticket_packs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('game_number', sa.String(length=32), nullable=False),
        sa.Column('game_name', sa.String(length=128), nullable=False),
        sa.Column('game_image', sa.String(length=512), nullable=True),
        sa.Column('start_serial', sa.String(length=32), nullable=False),
        sa.Column('end_serial', sa.String(length=32), nullable=False),
        sa.Column('current_serial', sa.String(length=32), nullable=True),
        sa.Column('ticket_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_tickets', sa.Integer(), nullable=False),
        sa.Column('remaining_tickets', sa.Integer(), nullable=False),
        sa.Column('scanned_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('today_open_number', sa.String(length=32), nullable=True),
        sa.Column('last_closing_number', sa.String(length=32), nullable=True),
        sa.Column('last_reset_date', sa.DateTime(), nullable=True),
        sa.Column('activation_date', sa.DateTime(), nullable=False),
        sa.Column('deactivation_date', sa.DateTime(), nullable=True),
        sa.Column('return_date', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('remaining_tickets >= 0', name='ck_ticket_packs_remaining_nonneg'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ticket_packs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ticket_packs_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ticket_packs_status'), ['status'], unique=False)
        batch_op.create_index('ix_ticket_packs_game_store', ['game_number', 'store_id'], unique=False)
        batch_op.create_index('ix_ticket_packs_status_store', ['status', 'store_id'], unique=False)


def downgrade():
    op.drop_table('ticket_packs')
    op.drop_table('box_metric_samples')
    op.drop_table('boxes')
    op.drop_table('stores')
