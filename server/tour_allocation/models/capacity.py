"""Capacity adjustment model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .tour import Tour


class CapacityAdjustment(Base):
    """Audit record of a change to a tour's maximum participants."""

    __tablename__ = "capacity_adjustments"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign key to tour
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Adjustment details
    delta: Mapped[int] = mapped_column(Integer, nullable=False)  # Can be positive or negative
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)

    # Previous and new values for audit trail
    max_participants_before: Mapped[int] = mapped_column(Integer, nullable=False)
    max_participants_after: Mapped[int] = mapped_column(Integer, nullable=False)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        index=True
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("delta != 0", name="ck_capacity_adjustment_delta_nonzero"),
        CheckConstraint("length(reason) > 0", name="ck_capacity_adjustment_reason_not_empty"),
        CheckConstraint("length(actor) > 0", name="ck_capacity_adjustment_actor_not_empty"),
        CheckConstraint("max_participants_after >= 1", name="ck_capacity_adjustment_after_positive"),
        CheckConstraint(
            "current_participants <= max_participants_after",
            name="ck_capacity_adjustment_current_lte_after"
        ),
        CheckConstraint(
            "max_participants_after = max_participants_before + delta",
            name="ck_capacity_adjustment_delta_consistency"
        ),
    )

    # Relationships
    tour: Mapped["Tour"] = relationship("Tour", back_populates="capacity_adjustments")

    def __repr__(self) -> str:
        return (
            f"<CapacityAdjustment(id={self.id}, tour_id={self.tour_id}, "
            f"delta={self.delta}, actor='{self.actor}', created_at={self.created_at})>"
        )
