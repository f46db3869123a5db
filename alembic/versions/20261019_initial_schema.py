"""initial_schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Creates users, vehicles, single auctions with their bids and entries, and
catalog sessions with their lots and lot bids.

The partial unique indexes carry the exclusivity rules: one open
(draft/active) auction per vehicle, one open (pending/active) lot per
vehicle, and one active lot per catalog.

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(length=150), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('deposit_balance', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('bidding_tier', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.CheckConstraint('deposit_balance >= 0', name='chk_user_deposit_non_negative'),
        sa.CheckConstraint('bidding_tier BETWEEN 0 AND 3', name='chk_user_tier_range'),
    )
    op.create_index('idx_users_status', 'users', ['status'])

    op.create_table(
        'vehicles',
        sa.Column('vehicle_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('make', sa.String(length=80), nullable=False),
        sa.Column('model', sa.String(length=80), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('color', sa.String(length=40), nullable=True),
        sa.Column('mileage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('damage_type', sa.String(length=40), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column(
            'condition_report',
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='approved'),
        *_timestamps(),
        sa.CheckConstraint('mileage >= 0', name='chk_vehicle_mileage_non_negative'),
    )
    op.create_index('idx_vehicles_status', 'vehicles', ['status'])

    op.create_table(
        'auctions',
        sa.Column('auction_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'vehicle_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('vehicles.vehicle_id'),
            nullable=False,
        ),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('starting_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('current_highest_bid', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column(
            'highest_bidder_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.user_id'),
            nullable=True,
        ),
        sa.Column('reserve_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('entry_fee', sa.Numeric(10, 2), nullable=False, server_default='200'),
        sa.Column('lot_number', sa.String(length=40), nullable=True),
        sa.Column('extension_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint('end_time > start_time', name='chk_auction_time'),
        sa.CheckConstraint('starting_price >= 0', name='chk_auction_starting_price'),
        sa.CheckConstraint('current_highest_bid >= 0', name='chk_auction_highest_bid'),
    )
    op.create_index(
        'uq_auctions_vehicle_open',
        'auctions',
        ['vehicle_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('draft', 'active')"),
    )
    op.create_index('idx_auctions_status_start', 'auctions', ['status', 'start_time'])
    op.create_index('idx_auctions_status_end', 'auctions', ['status', 'end_time'])

    op.create_table(
        'bids',
        sa.Column('bid_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'auction_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('auctions.auction_id'),
            nullable=False,
        ),
        sa.Column(
            'bidder_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.user_id'),
            nullable=False,
        ),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='chk_bid_amount_positive'),
    )
    op.create_index('uq_bids_auction_amount', 'bids', ['auction_id', 'amount'], unique=True)
    op.create_index('idx_bids_auction_created', 'bids', ['auction_id', 'created_at'])

    op.create_table(
        'auction_entries',
        sa.Column('entry_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'auction_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('auctions.auction_id'),
            nullable=False,
        ),
        sa.Column(
            'user_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.user_id'),
            nullable=False,
        ),
        sa.Column('fee_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('auction_id', 'user_id', name='uq_auction_entries_auction_user'),
    )

    op.create_table(
        'catalogs',
        sa.Column('catalog_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled'),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('bid_increment', sa.Numeric(10, 2), nullable=False, server_default='500'),
        sa.Column('current_lot_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('bid_increment > 0', name='chk_catalog_bid_increment'),
    )
    op.create_index('idx_catalogs_status', 'catalogs', ['status'])

    op.create_table(
        'catalog_lots',
        sa.Column('lot_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'catalog_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('catalogs.catalog_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'vehicle_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('vehicles.vehicle_id'),
            nullable=False,
        ),
        sa.Column('lot_order', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('starting_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('current_bid', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column(
            'highest_bidder_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.user_id'),
            nullable=True,
        ),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('catalog_id', 'lot_order', name='uq_catalog_lots_order'),
        sa.CheckConstraint('lot_order >= 1', name='chk_catalog_lot_order'),
        sa.CheckConstraint('starting_price >= 0', name='chk_catalog_lot_starting_price'),
    )
    op.create_index(
        'uq_catalog_lots_one_active',
        'catalog_lots',
        ['catalog_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index(
        'uq_catalog_lots_vehicle_open',
        'catalog_lots',
        ['vehicle_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'active')"),
    )

    op.create_table(
        'catalog_bids',
        sa.Column('bid_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'lot_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('catalog_lots.lot_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'bidder_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.user_id'),
            nullable=False,
        ),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='chk_catalog_bid_amount_positive'),
    )
    op.create_index(
        'uq_catalog_bids_lot_amount', 'catalog_bids', ['lot_id', 'amount'], unique=True
    )
    op.create_index('idx_catalog_bids_lot_created', 'catalog_bids', ['lot_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('catalog_bids')
    op.drop_table('catalog_lots')
    op.drop_table('catalogs')
    op.drop_table('auction_entries')
    op.drop_table('bids')
    op.drop_table('auctions')
    op.drop_table('vehicles')
    op.drop_table('users')
