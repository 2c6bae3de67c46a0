"""initial rental schema

Revision ID: e1f2a3b4c5d6
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e1f2a3b4c5d6'
down_revision = None
branch_labels = None
depends_on = None


def _bargain_columns():
    return [
        sa.Column('bargain_status', sa.String(length=20), nullable=False, server_default='NONE'),
        sa.Column('bargain_user_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('bargain_offered_price', sa.Float(), nullable=True),
        sa.Column('bargain_counter_price', sa.Float(), nullable=True),
        sa.Column('bargain_agreed_price', sa.Float(), nullable=True),
        sa.Column('bargain_last_actor', sa.String(length=10), nullable=True),
        sa.Column('bargain_history_json', sa.Text(), nullable=True),
        sa.Column('bargain_updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=120), nullable=True),
        sa.Column('phone_number', sa.String(length=30), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('user_id', 'role_id')
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('sessions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sessions_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sessions_token_hash'), ['token_hash'], unique=True)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=80), nullable=False),
        sa.Column('entity', sa.String(length=80), nullable=True),
        sa.Column('entity_id', sa.String(length=80), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('car_id', sa.Integer(), nullable=False),
        sa.Column('pickup_date_time', sa.DateTime(), nullable=False),
        sa.Column('drop_date_time', sa.DateTime(), nullable=False),
        sa.Column('grace_period_hours', sa.Float(), nullable=False),
        sa.Column('actual_return_time', sa.DateTime(), nullable=True),
        sa.Column('payment_deadline', sa.DateTime(), nullable=True),
        sa.Column('price_per_day', sa.Float(), nullable=False),
        sa.Column('total_amount', sa.Float(), nullable=False),
        sa.Column('final_amount', sa.Float(), nullable=False),
        sa.Column('advance_required', sa.Float(), nullable=False),
        sa.Column('advance_paid', sa.Float(), nullable=False),
        sa.Column('advance_paid_at', sa.DateTime(), nullable=True),
        sa.Column('hourly_late_rate', sa.Float(), nullable=False),
        sa.Column('late_hours', sa.Float(), nullable=False),
        sa.Column('late_fee', sa.Float(), nullable=False),
        sa.Column('late_fee_discount_percent', sa.Float(), nullable=False),
        sa.Column('remaining_amount', sa.Float(), nullable=True),
        sa.Column('full_payment_amount', sa.Float(), nullable=True),
        sa.Column('full_payment_method', sa.String(length=20), nullable=True),
        sa.Column('full_payment_received_at', sa.DateTime(), nullable=True),
        sa.Column('damage_detected', sa.Boolean(), nullable=False),
        sa.Column('damage_cost', sa.Float(), nullable=False),
        sa.Column('inspected_at', sa.DateTime(), nullable=True),
        sa.Column('refund_amount', sa.Float(), nullable=False),
        sa.Column('refund_status', sa.String(length=20), nullable=True),
        sa.Column('rejection_reason', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancel_reason', sa.String(length=120), nullable=True),
        sa.Column('booking_status', sa.String(length=30), nullable=False),
        sa.Column('trip_status', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('rental_stage', sa.String(length=20), nullable=True),
        *_bargain_columns(),
        sa.Column('offer_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('bookings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_bookings_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_bookings_car_id'), ['car_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_bookings_booking_status'), ['booking_status'], unique=False)
        batch_op.create_index(batch_op.f('ix_bookings_offer_id'), ['offer_id'], unique=False)

    op.create_table(
        'offers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('car_id', sa.Integer(), nullable=False),
        sa.Column('from_date', sa.DateTime(), nullable=False),
        sa.Column('to_date', sa.DateTime(), nullable=False),
        sa.Column('price_per_day', sa.Float(), nullable=False),
        sa.Column('original_price', sa.Float(), nullable=False),
        sa.Column('message', sa.String(length=500), nullable=True),
        sa.Column('admin_message', sa.String(length=500), nullable=True),
        *_bargain_columns(),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('offers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_offers_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_offers_car_id'), ['car_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_offers_bargain_status'), ['bargain_status'], unique=False)

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('method', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_payments_booking_id'), ['booking_id'], unique=False)


def downgrade():
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_payments_booking_id'))
    op.drop_table('payments')

    with op.batch_alter_table('offers', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_offers_bargain_status'))
        batch_op.drop_index(batch_op.f('ix_offers_car_id'))
        batch_op.drop_index(batch_op.f('ix_offers_user_id'))
    op.drop_table('offers')

    with op.batch_alter_table('bookings', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_bookings_offer_id'))
        batch_op.drop_index(batch_op.f('ix_bookings_booking_status'))
        batch_op.drop_index(batch_op.f('ix_bookings_car_id'))
        batch_op.drop_index(batch_op.f('ix_bookings_user_id'))
    op.drop_table('bookings')

    op.drop_table('audit_logs')

    with op.batch_alter_table('sessions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_sessions_token_hash'))
        batch_op.drop_index(batch_op.f('ix_sessions_user_id'))
    op.drop_table('sessions')

    op.drop_table('user_roles')
    op.drop_table('roles')

    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_users_email'))
    op.drop_table('users')
