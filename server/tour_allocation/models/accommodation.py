"""Accommodation, room and room interval model definitions."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .reservation import Reservation


class AccommodationCategory(str, Enum):
    """Accommodation category enumeration."""
    HOTEL = "hotel"
    COTTAGE = "cottage"
    GUEST_HOUSE = "guest-house"
    MARRIAGE_HALL = "marriage-hall"
    APARTMENT = "apartment"
    LODGE = "lodge"


class RoomType(str, Enum):
    """Room type enumeration."""
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    FAMILY = "family"
    DORMITORY = "dormitory"
    SUITE = "suite"


class Accommodation(Base):
    """Accommodation entity owning a set of rooms."""

    __tablename__ = "accommodations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    category: Mapped[AccommodationCategory] = mapped_column(String(20), nullable=False, index=True)
    city: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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

    # Relationships
    rooms: Mapped[list["Room"]] = relationship(
        "Room",
        back_populates="accommodation",
        cascade="all, delete-orphan",
        order_by="Room.room_number"
    )

    def __repr__(self) -> str:
        return f"<Accommodation(id={self.id}, name='{self.name}', city='{self.city}')>"


class Room(Base):
    """
    Room entity: the allocatable unit of the resource ledger.

    The interval set is owned by the room and only changed through
    ``RoomLedgerService``; every change bumps ``version``.
    """

    __tablename__ = "rooms"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    accommodation_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("accommodations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    room_number: Mapped[str] = mapped_column(String(20), nullable=False)
    room_type: Mapped[RoomType] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_night: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Derived: some interval covers today
    is_occupied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_room_capacity_positive"),
        CheckConstraint("price_per_night >= 0", name="ck_room_price_non_negative"),
        UniqueConstraint("accommodation_id", "room_number", name="uq_room_accommodation_number"),
    )

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    # Relationships
    accommodation: Mapped["Accommodation"] = relationship("Accommodation", back_populates="rooms")
    intervals: Mapped[list["RoomInterval"]] = relationship(
        "RoomInterval",
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="RoomInterval.check_in"
    )

    def __repr__(self) -> str:
        return (
            f"<Room(id={self.id}, number='{self.room_number}', "
            f"capacity={self.capacity}, occupied={self.is_occupied})>"
        )


class RoomInterval(Base):
    """A half-open ``[check_in, check_out)`` occupancy of a room by a reservation."""

    __tablename__ = "room_intervals"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    room_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    reservation_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    check_in: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    occupant_count: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("check_in < check_out", name="ck_room_interval_dates_ordered"),
        CheckConstraint("occupant_count >= 1", name="ck_room_interval_occupants_positive"),
    )

    # Relationships
    room: Mapped["Room"] = relationship("Room", back_populates="intervals")
    reservation: Mapped["Reservation"] = relationship(
        "Reservation",
        viewonly=True
    )

    def __repr__(self) -> str:
        return (
            f"<RoomInterval(room_id={self.room_id}, reservation_id={self.reservation_id}, "
            f"[{self.check_in}, {self.check_out}), occupants={self.occupant_count})>"
        )
