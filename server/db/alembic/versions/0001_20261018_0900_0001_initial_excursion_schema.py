"""Initial excursion booking schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table('profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=False)
    op.create_index(op.f('ix_profiles_role'), 'profiles', ['role'], unique=False)

    op.create_table('guides',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('commission_rate', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_guides_user_id'), 'guides', ['user_id'], unique=True)

    op.create_table('tour_operators',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('commission_rate', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tour_operators_user_id'), 'tour_operators', ['user_id'], unique=True)

    op.create_table('excursions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('guide_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('duration_hours', sa.Numeric(precision=4, scale=1), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('price_per_person', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('meeting_point', sa.String(length=255), nullable=True),
        sa.Column('difficulty_level', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('max_participants > 0', name='ck_excursion_max_participants_positive'),
        sa.CheckConstraint('price_per_person >= 0', name='ck_excursion_price_non_negative'),
        sa.CheckConstraint('difficulty_level >= 1 AND difficulty_level <= 5', name='ck_excursion_difficulty_range'),
        sa.ForeignKeyConstraint(['guide_id'], ['guides.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_excursions_category'), 'excursions', ['category'], unique=False)
    op.create_index(op.f('ix_excursions_guide_id'), 'excursions', ['guide_id'], unique=False)
    op.create_index(op.f('ix_excursions_is_active'), 'excursions', ['is_active'], unique=False)
    op.create_index(op.f('ix_excursions_title'), 'excursions', ['title'], unique=False)

    op.create_table('availability_slots',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('excursion_id', sa.Uuid(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('price_override', sa.Integer(), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('is_closed', sa.Boolean(), nullable=False),
        sa.Column('available_spots', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('max_participants > 0', name='ck_slot_max_participants_positive'),
        sa.CheckConstraint('available_spots >= 0', name='ck_slot_available_spots_non_negative'),
        sa.CheckConstraint('price_override IS NULL OR price_override >= 0', name='ck_slot_price_override_non_negative'),
        sa.ForeignKeyConstraint(['excursion_id'], ['excursions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_availability_slots_date'), 'availability_slots', ['date'], unique=False)
    op.create_index(op.f('ix_availability_slots_excursion_id'), 'availability_slots', ['excursion_id'], unique=False)
    op.create_index('ix_slot_excursion_date', 'availability_slots', ['excursion_id', 'date'], unique=False)

    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('excursion_id', sa.Uuid(), nullable=False),
        sa.Column('slot_id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=True),
        sa.Column('tour_operator_id', sa.Uuid(), nullable=True),
        sa.Column('client_email', sa.String(length=255), nullable=True),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('participants_count', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('commission_amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('channel', sa.String(length=20), nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('cancellation_date', sa.Date(), nullable=True),
        sa.Column('is_checked_in', sa.Boolean(), nullable=False),
        sa.Column('checkin_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checkin_guide_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('participants_count > 0', name='ck_booking_participants_positive'),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('length(code) > 0', name='ck_booking_code_not_empty'),
        sa.ForeignKeyConstraint(['excursion_id'], ['excursions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['slot_id'], ['availability_slots.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['tour_operator_id'], ['tour_operators.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['checkin_guide_id'], ['guides.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_code'), 'bookings', ['code'], unique=True)
    op.create_index(op.f('ix_bookings_excursion_id'), 'bookings', ['excursion_id'], unique=False)
    op.create_index(op.f('ix_bookings_slot_id'), 'bookings', ['slot_id'], unique=False)
    op.create_index(op.f('ix_bookings_client_id'), 'bookings', ['client_id'], unique=False)
    op.create_index(op.f('ix_bookings_tour_operator_id'), 'bookings', ['tour_operator_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_booking_date'), 'bookings', ['booking_date'], unique=False)

    op.create_table('cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tour_operator_id', sa.Uuid(), nullable=False),
        sa.Column('excursion_id', sa.Uuid(), nullable=False),
        sa.Column('slot_id', sa.Uuid(), nullable=False),
        sa.Column('participants_count', sa.Integer(), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=False),
        sa.Column('client_email', sa.String(length=255), nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('participants_count > 0', name='ck_cart_item_participants_positive'),
        sa.ForeignKeyConstraint(['tour_operator_id'], ['tour_operators.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['excursion_id'], ['excursions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['slot_id'], ['availability_slots.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cart_items_tour_operator_id'), 'cart_items', ['tour_operator_id'], unique=False)

    op.create_table('notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('channel', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index(op.f('ix_notifications_type'), 'notifications', ['type'], unique=False)
    op.create_index(op.f('ix_notifications_is_read'), 'notifications', ['is_read'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('notifications')
    op.drop_table('cart_items')
    op.drop_table('bookings')
    op.drop_table('availability_slots')
    op.drop_table('excursions')
    op.drop_table('tour_operators')
    op.drop_table('guides')
    op.drop_table('profiles')
