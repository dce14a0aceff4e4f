"""Capacity accountant: the only code that changes a tour's seat counter."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.concurrency import run_with_retry
from ..core.config import settings
from ..core.exceptions import CapacityExceededError, ConflictError, InvariantViolationError
from ..core.locks import LockKey, lock_registry
from ..core.observability import metrics_collector
from ..models.capacity import CapacityAdjustment
from ..models.tour import Tour
from ..schemas.tour import AdjustCapacityRequest
from .tour_service import TourService

logger = logging.getLogger(__name__)


def try_commit(tour: Tour, count: int) -> None:
    """
    Commit ``count`` seats on ``tour``.

    The caller must hold the tour's entity lock; the write is checked
    against the tour version when the session flushes.

    Raises:
        CapacityExceededError: If the seats do not fit; the tour is unchanged
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")

    if tour.current_participants + count > tour.max_participants:
        metrics_collector.record_capacity_rejection()
        logger.warning(
            "Capacity commit rejected - tour full",
            extra={
                "tour_id": str(tour.id),
                "requested_seats": count,
                "current_participants": tour.current_participants,
                "max_participants": tour.max_participants
            }
        )
        raise CapacityExceededError(
            tour_id=str(tour.id),
            requested=count,
            current=tour.current_participants,
            maximum=tour.max_participants
        )

    tour.current_participants += count


def release(tour: Tour, count: int) -> None:
    """
    Give ``count`` seats back to ``tour``.

    Raises:
        InvariantViolationError: If the counter would go negative and
            ``settings.strict_invariants`` is on; otherwise it is clamped
            to zero and the violation is logged
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")

    remaining = tour.current_participants - count
    if remaining < 0:
        context = {
            "tour_id": str(tour.id),
            "current_participants": tour.current_participants,
            "release_count": count
        }
        if settings.strict_invariants:
            raise InvariantViolationError("tour.current_participants >= 0", context)
        logger.error("Capacity release below zero, clamping", extra=context)
        remaining = 0

    tour.current_participants = remaining


class CapacityConflictError(ConflictError):
    """Exception when a capacity change would drop below committed seats."""

    code = "CAPACITY_CONFLICT"

    def __init__(self, tour_id: str, requested_delta: int, current_participants: int, max_participants: int):
        super().__init__(
            detail=f"Cannot change capacity of tour {tour_id} by {requested_delta}: "
                   f"{current_participants} of {max_participants} seats are committed",
            conflicting_resource={
                "tour_id": tour_id,
                "requested_delta": requested_delta,
                "current_participants": current_participants,
                "max_participants": max_participants
            }
        )


class CapacityService:
    """Service for tour capacity adjustments."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)

    async def adjust_capacity(self, request: AdjustCapacityRequest) -> CapacityAdjustment:
        """
        Change a tour's maximum participants and record the change.

        Args:
            request: Capacity adjustment request

        Returns:
            Created capacity adjustment record

        Raises:
            NotFoundError: If tour not found
            CapacityConflictError: If the new maximum is below one or below
                the seats already committed
        """
        async with lock_registry.acquire(LockKey.tour(request.tour_id)):
            return await run_with_retry(
                self.db,
                lambda: self._adjust_capacity(request),
                name="adjust_capacity"
            )

    async def _adjust_capacity(self, request: AdjustCapacityRequest) -> CapacityAdjustment:
        tour = await self.tour_service.get_tour_with_lock(request.tour_id)

        new_max = tour.max_participants + request.delta
        if request.delta == 0 or new_max < max(1, tour.current_participants):
            logger.warning(
                "Capacity adjustment rejected",
                extra={
                    "tour_id": str(request.tour_id),
                    "requested_delta": request.delta,
                    "current_participants": tour.current_participants,
                    "max_participants": tour.max_participants,
                    "actor": request.actor
                }
            )
            raise CapacityConflictError(
                tour_id=str(request.tour_id),
                requested_delta=request.delta,
                current_participants=tour.current_participants,
                max_participants=tour.max_participants
            )

        max_before = tour.max_participants
        tour.max_participants = new_max

        adjustment = CapacityAdjustment(
            tour_id=tour.id,
            delta=request.delta,
            reason=request.reason,
            actor=request.actor,
            max_participants_before=max_before,
            max_participants_after=new_max,
            current_participants=tour.current_participants
        )
        self.db.add(adjustment)

        await self.db.commit()
        await self.db.refresh(adjustment)

        metrics_collector.set_tour_utilization(str(tour.id), tour.current_participants, tour.max_participants)
        logger.info(
            "Capacity adjustment completed successfully",
            extra={
                "adjustment_id": str(adjustment.id),
                "tour_id": str(tour.id),
                "delta": request.delta,
                "reason": request.reason,
                "actor": request.actor,
                "capacity_before": f"{tour.current_participants}/{max_before}",
                "capacity_after": f"{tour.current_participants}/{new_max}"
            }
        )

        return adjustment

    async def get_adjustments_for_tour(self, tour_id: UUID) -> list[CapacityAdjustment]:
        """Get all capacity adjustments for a tour, newest first."""
        stmt = (
            select(CapacityAdjustment)
            .where(CapacityAdjustment.tour_id == tour_id)
            .order_by(CapacityAdjustment.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())
