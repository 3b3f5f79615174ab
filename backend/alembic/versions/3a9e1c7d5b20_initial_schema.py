"""initial schema: users, stores, schedule, requests

Revision ID: 3a9e1c7d5b20
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '3a9e1c7d5b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_BINDING = sa.text("status IN ('confirmed', 'completed')")


def _timestamps(*, updated: bool = True) -> list:
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()'))]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')))
    return cols


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('skill_level', sa.String(length=16), nullable=False),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('login_id', sa.String(length=32), nullable=True),
        sa.Column('password_hash', sa.String(length=128), nullable=True),
        sa.Column('is_first_login', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_login_id'), 'users', ['login_id'], unique=True)

    op.create_table(
        'stores',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('required_staff', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'user_stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('is_flexible', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'store_id', name='uq_user_store'),
    )
    op.create_index(op.f('ix_user_stores_user_id'), 'user_stores', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_stores_store_id'), 'user_stores', ['store_id'], unique=False)

    op.create_table(
        'shift_patterns',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('color', sa.String(length=32), nullable=False),
        sa.Column('break_time', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'time_slots',
        sa.Column('id', sa.String(length=96), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_time_slots_store_id'), 'time_slots', ['store_id'], unique=False)

    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('pattern_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['pattern_id'], ['shift_patterns.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_shifts_user_id'), 'shifts', ['user_id'], unique=False)
    op.create_index(op.f('ix_shifts_store_id'), 'shifts', ['store_id'], unique=False)
    op.create_index(op.f('ix_shifts_date'), 'shifts', ['date'], unique=False)
    op.create_index(op.f('ix_shifts_pattern_id'), 'shifts', ['pattern_id'], unique=False)
    op.create_index('ix_shifts_store_date', 'shifts', ['store_id', 'date'], unique=False)
    # one confirmed/completed shift per user and date
    op.create_index(
        'uq_shifts_user_date_binding',
        'shifts',
        ['user_id', 'date'],
        unique=True,
        postgresql_where=_BINDING,
        sqlite_where=_BINDING,
    )

    op.create_table(
        'time_off_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('responded_by', sa.Integer(), nullable=True),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['responded_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'date', name='uq_time_off_user_date'),
    )
    op.create_index(op.f('ix_time_off_requests_user_id'), 'time_off_requests', ['user_id'], unique=False)
    op.create_index(op.f('ix_time_off_requests_date'), 'time_off_requests', ['date'], unique=False)
    op.create_index(op.f('ix_time_off_requests_status'), 'time_off_requests', ['status'], unique=False)

    op.create_table(
        'emergency_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_user_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('shift_pattern_id', sa.String(length=64), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['original_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['shift_pattern_id'], ['shift_patterns.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_emergency_requests_original_user_id'), 'emergency_requests', ['original_user_id'], unique=False)
    op.create_index(op.f('ix_emergency_requests_store_id'), 'emergency_requests', ['store_id'], unique=False)
    op.create_index(op.f('ix_emergency_requests_date'), 'emergency_requests', ['date'], unique=False)
    op.create_index(op.f('ix_emergency_requests_shift_pattern_id'), 'emergency_requests', ['shift_pattern_id'], unique=False)
    op.create_index(op.f('ix_emergency_requests_status'), 'emergency_requests', ['status'], unique=False)

    op.create_table(
        'emergency_volunteers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emergency_request_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['emergency_request_id'], ['emergency_requests.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('emergency_request_id', 'user_id', name='uq_emergency_volunteer'),
    )
    op.create_index(op.f('ix_emergency_volunteers_emergency_request_id'), 'emergency_volunteers', ['emergency_request_id'], unique=False)
    op.create_index(op.f('ix_emergency_volunteers_user_id'), 'emergency_volunteers', ['user_id'], unique=False)

    op.create_table(
        'login_id_sequences',
        sa.Column('scope', sa.String(length=80), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('scope'),
    )

    op.create_table(
        'rate_limit_hits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identifier', sa.String(length=128), nullable=False),
        sa.Column('hit_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_rate_limit_hits_identifier_hit_at', 'rate_limit_hits', ['identifier', 'hit_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_rate_limit_hits_identifier_hit_at', table_name='rate_limit_hits')
    op.drop_table('rate_limit_hits')
    op.drop_table('login_id_sequences')
    op.drop_table('emergency_volunteers')
    op.drop_table('emergency_requests')
    op.drop_table('time_off_requests')
    op.drop_index('uq_shifts_user_date_binding', table_name='shifts')
    op.drop_table('shifts')
    op.drop_table('time_slots')
    op.drop_table('shift_patterns')
    op.drop_table('user_stores')
    op.drop_table('stores')
    op.drop_table('users')
