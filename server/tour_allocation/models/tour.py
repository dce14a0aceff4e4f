"""Tour model definition."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .capacity import CapacityAdjustment
    from .reservation import Reservation


class TourStatus(str, Enum):
    """Tour status enumeration."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Tour(Base):
    """Tour entity: a seat-limited trip with tiered prices."""

    __tablename__ = "tours"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tour information
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Capacity; current_participants is only changed by the capacity accountant
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Tier prices in minor units; senior falls back to adult when unset
    price_adult: Mapped[int] = mapped_column(Integer, nullable=False)
    price_child: Mapped[int] = mapped_column(Integer, nullable=False)
    price_senior: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    status: Mapped[TourStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TourStatus.ACTIVE,
        index=True
    )

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
        CheckConstraint("max_participants >= 1", name="ck_tour_max_participants_positive"),
        CheckConstraint("current_participants >= 0", name="ck_tour_current_participants_non_negative"),
        CheckConstraint(
            "current_participants <= max_participants",
            name="ck_tour_current_participants_lte_max"
        ),
        CheckConstraint("price_adult >= 0", name="ck_tour_price_adult_non_negative"),
        CheckConstraint("price_child >= 0", name="ck_tour_price_child_non_negative"),
        CheckConstraint("price_senior IS NULL OR price_senior >= 0", name="ck_tour_price_senior_non_negative"),
        CheckConstraint("start_date <= end_date", name="ck_tour_dates_ordered"),
    )

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    # Relationships
    reservations: Mapped[list["Reservation"]] = relationship(
        "Reservation",
        back_populates="tour",
        cascade="all, delete-orphan"
    )
    capacity_adjustments: Mapped[list["CapacityAdjustment"]] = relationship(
        "CapacityAdjustment",
        back_populates="tour",
        cascade="all, delete-orphan"
    )

    @property
    def available_seats(self) -> int:
        return self.max_participants - self.current_participants

    def __repr__(self) -> str:
        return (
            f"<Tour(id={self.id}, slug='{self.slug}', status={self.status}, "
            f"participants={self.current_participants}/{self.max_participants})>"
        )
