"""Initial schema - products, clients, reservations, reservation items

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('category', sa.String(20), nullable=False, server_default='other'),
        sa.Column('total_quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price_per_day', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('total_quantity >= 1', name='ck_product_total_quantity_positive'),
        sa.CheckConstraint('price_per_day >= 0', name='ck_product_price_non_negative'),
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'reservations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('total_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('start_date <= end_date', name='ck_reservation_date_order'),
    )
    op.create_index('ix_reservations_client_id', 'reservations', ['client_id'])
    op.create_index('ix_reservation_status_range', 'reservations', ['status', 'start_date', 'end_date'])

    op.create_table(
        'reservation_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'reservation_id', sa.String(36),
            sa.ForeignKey('reservations.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.String(36), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_reservation_item_quantity_positive'),
    )
    op.create_index('ix_reservation_items_product_id', 'reservation_items', ['product_id'])


def downgrade() -> None:
    op.drop_index('ix_reservation_items_product_id', table_name='reservation_items')
    op.drop_table('reservation_items')
    op.drop_index('ix_reservation_status_range', table_name='reservations')
    op.drop_index('ix_reservations_client_id', table_name='reservations')
    op.drop_table('reservations')
    op.drop_table('clients')
    op.drop_table('products')
