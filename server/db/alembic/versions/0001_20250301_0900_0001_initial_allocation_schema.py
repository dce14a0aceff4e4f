"""Initial allocation schema

Revision ID: 0001
Revises:
Create Date: 2025-03-01 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create tours table
    op.create_table('tours',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('current_participants', sa.Integer(), nullable=False),
        sa.Column('price_adult', sa.Integer(), nullable=False),
        sa.Column('price_child', sa.Integer(), nullable=False),
        sa.Column('price_senior', sa.Integer(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('max_participants >= 1', name='ck_tour_max_participants_positive'),
        sa.CheckConstraint('current_participants >= 0', name='ck_tour_current_participants_non_negative'),
        sa.CheckConstraint('current_participants <= max_participants', name='ck_tour_current_participants_lte_max'),
        sa.CheckConstraint('price_adult >= 0', name='ck_tour_price_adult_non_negative'),
        sa.CheckConstraint('price_child >= 0', name='ck_tour_price_child_non_negative'),
        sa.CheckConstraint('price_senior IS NULL OR price_senior >= 0', name='ck_tour_price_senior_non_negative'),
        sa.CheckConstraint('start_date <= end_date', name='ck_tour_dates_ordered'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index(op.f('ix_tours_name'), 'tours', ['name'], unique=False)
    op.create_index(op.f('ix_tours_slug'), 'tours', ['slug'], unique=False)
    op.create_index(op.f('ix_tours_start_date'), 'tours', ['start_date'], unique=False)
    op.create_index(op.f('ix_tours_status'), 'tours', ['status'], unique=False)

    # Create capacity_adjustments table
    op.create_table('capacity_adjustments',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tour_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('max_participants_before', sa.Integer(), nullable=False),
        sa.Column('max_participants_after', sa.Integer(), nullable=False),
        sa.Column('current_participants', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('delta != 0', name='ck_capacity_adjustment_delta_nonzero'),
        sa.CheckConstraint('length(reason) > 0', name='ck_capacity_adjustment_reason_not_empty'),
        sa.CheckConstraint('length(actor) > 0', name='ck_capacity_adjustment_actor_not_empty'),
        sa.CheckConstraint('max_participants_after >= 1', name='ck_capacity_adjustment_after_positive'),
        sa.CheckConstraint('current_participants <= max_participants_after', name='ck_capacity_adjustment_current_lte_after'),
        sa.CheckConstraint('max_participants_after = max_participants_before + delta', name='ck_capacity_adjustment_delta_consistency'),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_capacity_adjustments_created_at'), 'capacity_adjustments', ['created_at'], unique=False)
    op.create_index(op.f('ix_capacity_adjustments_tour_id'), 'capacity_adjustments', ['tour_id'], unique=False)

    # Create accommodations table
    op.create_table('accommodations',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_accommodations_category'), 'accommodations', ['category'], unique=False)
    op.create_index(op.f('ix_accommodations_city'), 'accommodations', ['city'], unique=False)
    op.create_index(op.f('ix_accommodations_name'), 'accommodations', ['name'], unique=False)

    # Create rooms table
    op.create_table('rooms',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('accommodation_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('room_number', sa.String(length=20), nullable=False),
        sa.Column('room_type', sa.String(length=20), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('price_per_night', sa.Integer(), nullable=False),
        sa.Column('is_occupied', sa.Boolean(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('capacity >= 1', name='ck_room_capacity_positive'),
        sa.CheckConstraint('price_per_night >= 0', name='ck_room_price_non_negative'),
        sa.ForeignKeyConstraint(['accommodation_id'], ['accommodations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('accommodation_id', 'room_number', name='uq_room_accommodation_number')
    )
    op.create_index(op.f('ix_rooms_accommodation_id'), 'rooms', ['accommodation_id'], unique=False)

    # Create reservations table
    op.create_table('reservations',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('customer_ref', sa.String(length=128), nullable=False),
        sa.Column('tour_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('total_participants', sa.Integer(), nullable=False),
        sa.Column('capacity_committed', sa.Integer(), nullable=False),
        sa.Column('subtotal', sa.Integer(), nullable=False),
        sa.Column('taxes', sa.Integer(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('total_participants >= 1', name='ck_reservation_participants_positive'),
        sa.CheckConstraint('capacity_committed >= 0', name='ck_reservation_committed_non_negative'),
        sa.CheckConstraint('capacity_committed <= total_participants', name='ck_reservation_committed_lte_participants'),
        sa.CheckConstraint('subtotal >= 0', name='ck_reservation_subtotal_non_negative'),
        sa.CheckConstraint('total = subtotal + taxes', name='ck_reservation_total_consistency'),
        sa.CheckConstraint('length(customer_ref) > 0', name='ck_reservation_customer_ref_not_empty'),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )
    op.create_index(op.f('ix_reservations_code'), 'reservations', ['code'], unique=False)
    op.create_index(op.f('ix_reservations_customer_ref'), 'reservations', ['customer_ref'], unique=False)
    op.create_index(op.f('ix_reservations_status'), 'reservations', ['status'], unique=False)
    op.create_index(op.f('ix_reservations_tour_id'), 'reservations', ['tour_id'], unique=False)

    # Create participants table
    op.create_table('participants',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('reservation_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('age', sa.Integer(), nullable=False),
        sa.Column('relationship_tag', sa.String(length=20), nullable=True),
        sa.Column('participant_type', sa.String(length=20), nullable=False),
        sa.Column('price_category', sa.String(length=20), nullable=False),
        sa.Column('price_amount', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('age >= 0 AND age <= 120', name='ck_participant_age_range'),
        sa.CheckConstraint('price_amount >= 0', name='ck_participant_price_non_negative'),
        sa.CheckConstraint('length(name) > 0', name='ck_participant_name_not_empty'),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_participants_reservation_id'), 'participants', ['reservation_id'], unique=False)

    # Create room_intervals table
    op.create_table('room_intervals',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('room_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reservation_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('check_in', sa.Date(), nullable=False),
        sa.Column('check_out', sa.Date(), nullable=False),
        sa.Column('occupant_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('check_in < check_out', name='ck_room_interval_dates_ordered'),
        sa.CheckConstraint('occupant_count >= 1', name='ck_room_interval_occupants_positive'),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_room_intervals_check_in'), 'room_intervals', ['check_in'], unique=False)
    op.create_index(op.f('ix_room_intervals_check_out'), 'room_intervals', ['check_out'], unique=False)
    op.create_index(op.f('ix_room_intervals_reservation_id'), 'room_intervals', ['reservation_id'], unique=False)
    op.create_index(op.f('ix_room_intervals_room_id'), 'room_intervals', ['room_id'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('room_intervals')
    op.drop_table('participants')
    op.drop_table('reservations')
    op.drop_table('rooms')
    op.drop_table('accommodations')
    op.drop_table('capacity_adjustments')
    op.drop_table('tours')
