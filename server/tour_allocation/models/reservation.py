"""Reservation and Participant model definitions."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .accommodation import RoomInterval
    from .tour import Tour


class ReservationStatus(str, Enum):
    """Reservation status enumeration."""
    INTERESTED = "interested"
    CONFIRMED = "confirmed"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)


# The admin screens of the booking portal used a second vocabulary.
LEGACY_STATUS_ALIASES = {
    "approved": ReservationStatus.CONFIRMED,
    "pending": ReservationStatus.INTERESTED,
    "rejected": ReservationStatus.CANCELLED,
}


def normalize_status(value: "str | ReservationStatus") -> ReservationStatus:
    """
    Map a status string, canonical or legacy, to ``ReservationStatus``.

    Raises:
        ValueError: If the value is in neither vocabulary
    """
    if isinstance(value, ReservationStatus):
        return value
    key = value.strip().lower()
    if key in LEGACY_STATUS_ALIASES:
        return LEGACY_STATUS_ALIASES[key]
    return ReservationStatus(key)


class PriceCategory(str, Enum):
    """Price tier a participant is billed under."""
    ADULT = "adult"
    CHILD = "child"
    SENIOR = "senior"


class ParticipantType(str, Enum):
    """First participant of a reservation is the primary contact."""
    PRIMARY = "primary"
    FAMILY = "family"


class Relationship(str, Enum):
    """Participant relationship to the primary participant."""
    SELF = "self"
    SPOUSE = "spouse"
    CHILD = "child"
    PARENT = "parent"
    SIBLING = "sibling"
    OTHER = "other"


class Reservation(Base):
    """Reservation entity linking a customer, a tour and its participants."""

    __tablename__ = "reservations"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Human-facing reference
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    customer_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Foreign key to tour
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status: Mapped[ReservationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ReservationStatus.INTERESTED,
        index=True
    )

    # Seats; capacity_committed is what this reservation holds on the tour counter
    total_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity_committed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Pricing in minor units
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    taxes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Lifecycle timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("total_participants >= 1", name="ck_reservation_participants_positive"),
        CheckConstraint("capacity_committed >= 0", name="ck_reservation_committed_non_negative"),
        CheckConstraint(
            "capacity_committed <= total_participants",
            name="ck_reservation_committed_lte_participants"
        ),
        CheckConstraint("subtotal >= 0", name="ck_reservation_subtotal_non_negative"),
        CheckConstraint("total = subtotal + taxes", name="ck_reservation_total_consistency"),
        CheckConstraint("length(customer_ref) > 0", name="ck_reservation_customer_ref_not_empty"),
    )

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    # Relationships
    tour: Mapped["Tour"] = relationship("Tour", back_populates="reservations")
    participants: Mapped[list["Participant"]] = relationship(
        "Participant",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="Participant.position"
    )
    room_intervals: Mapped[list["RoomInterval"]] = relationship(
        "RoomInterval",
        viewonly=True,
        order_by="RoomInterval.check_in"
    )

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, code='{self.code}', tour_id={self.tour_id}, "
            f"participants={self.total_participants}, status={self.status})>"
        )


class Participant(Base):
    """A person travelling under a reservation."""

    __tablename__ = "participants"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    reservation_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    relationship_tag: Mapped[Relationship | None] = mapped_column(String(20), nullable=True)
    participant_type: Mapped[ParticipantType] = mapped_column(String(20), nullable=False)

    # Derived at the point of mutation by the pricing engine
    price_category: Mapped[PriceCategory] = mapped_column(String(20), nullable=False)
    price_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("age >= 0 AND age <= 120", name="ck_participant_age_range"),
        CheckConstraint("price_amount >= 0", name="ck_participant_price_non_negative"),
        CheckConstraint("length(name) > 0", name="ck_participant_name_not_empty"),
    )

    reservation: Mapped["Reservation"] = relationship("Reservation", back_populates="participants")

    def __repr__(self) -> str:
        return (
            f"<Participant(name='{self.name}', age={self.age}, "
            f"category={self.price_category}, price={self.price_amount})>"
        )
