"""asset health, tickets, report entries and rate limits

Revision ID: 0001_asset_health_core
Revises: 
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_asset_health_core'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('assets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('asset_tag', sa.String(length=64), nullable=False, unique=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('purchase_date', sa.Date(), nullable=True),
        sa.Column('warranty_expiry', sa.Date(), nullable=True),
        sa.Column('amc_expiry', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='available'),
        sa.Column('condition', sa.String(length=32), nullable=False, server_default='good'),
        sa.Column('last_health_check', sa.DateTime(), nullable=True),
        sa.Column('last_reported_at', sa.DateTime(), nullable=True),
        sa.Column('maintenance_reason', sa.String(length=255), nullable=True),
        sa.Column('maintenance_start_date', sa.DateTime(), nullable=True),
        sa.Column('maintenance_completed_date', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_assets_asset_tag', 'assets', ['asset_tag'])
    op.create_index('ix_assets_category', 'assets', ['category'])
    op.create_index('ix_assets_status', 'assets', ['status'])
    op.create_index('ix_assets_condition', 'assets', ['condition'])

    op.create_table('tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='other'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='open'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reporter_name', sa.String(length=128), nullable=True),
        sa.Column('reporter_email', sa.String(length=128), nullable=True),
        sa.Column('reporter_phone', sa.String(length=32), nullable=True),
        sa.Column('merged_from', sa.JSON(), nullable=False),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_tickets_code', 'tickets', ['code'])
    op.create_index('ix_tickets_asset_id', 'tickets', ['asset_id'])
    op.create_index('ix_tickets_status', 'tickets', ['status'])
    op.create_index('ix_tickets_asset_status_category', 'tickets', ['asset_id', 'status', 'category'])
    # one open ticket per (asset, category)
    op.create_index(
        'uq_tickets_open_asset_category', 'tickets', ['asset_id', 'category'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    op.create_table('report_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('reporter_name', sa.String(length=128), nullable=False),
        sa.Column('reporter_email', sa.String(length=128), nullable=False),
        sa.Column('reporter_phone', sa.String(length=32), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('photos', sa.JSON(), nullable=False),
        sa.Column('device_fingerprint', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('ticket_id', 'position', name='uq_report_entry_position'),
    )
    op.create_index('ix_report_entries_ticket_id', 'report_entries', ['ticket_id'])

    op.create_table('rate_limits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('device_fingerprint', sa.String(length=64), nullable=False),
        sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('last_report_at', sa.DateTime(), nullable=False),
        sa.Column('report_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.UniqueConstraint('device_fingerprint', 'asset_id', name='uq_rate_limit_device_asset'),
    )
    op.create_index('ix_rate_limits_last_report_at', 'rate_limits', ['last_report_at'])


def downgrade():
    op.drop_index('ix_rate_limits_last_report_at', table_name='rate_limits')
    op.drop_table('rate_limits')
    op.drop_index('ix_report_entries_ticket_id', table_name='report_entries')
    op.drop_table('report_entries')
    op.drop_index('uq_tickets_open_asset_category', table_name='tickets')
    op.drop_index('ix_tickets_asset_status_category', table_name='tickets')
    op.drop_index('ix_tickets_status', table_name='tickets')
    op.drop_index('ix_tickets_asset_id', table_name='tickets')
    op.drop_index('ix_tickets_code', table_name='tickets')
    op.drop_table('tickets')
    for name in ('ix_assets_condition', 'ix_assets_status', 'ix_assets_category', 'ix_assets_asset_tag'):
        op.drop_index(name, table_name='assets')
    op.drop_table('assets')
