"""Tour service for business logic operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from ..core.concurrency import run_with_retry
from ..core.config import settings
from ..core.database import advisory_lock
from ..core.exceptions import ConflictError, NotFoundError
from ..core.locks import LockKey, lock_registry
from ..models.tour import Tour, TourStatus
from ..schemas.tour import CreateTourRequest

logger = logging.getLogger(__name__)


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_tour(self, request: CreateTourRequest) -> Tour:
        """
        Create a new tour.

        Args:
            request: Tour creation request

        Returns:
            Created tour entity

        Raises:
            ConflictError: If tour with same slug already exists
        """
        existing_tour = await self.get_tour_by_slug(request.slug)
        if existing_tour:
            logger.warning(
                "Tour creation failed - slug already exists",
                extra={
                    "slug": request.slug,
                    "existing_tour_id": str(existing_tour.id)
                }
            )
            raise self._slug_conflict(existing_tour)

        tour = Tour(
            name=request.name,
            slug=request.slug,
            description=request.description,
            start_date=request.start_date,
            end_date=request.end_date,
            max_participants=request.max_participants,
            current_participants=0,
            price_adult=request.prices.adult,
            price_child=request.prices.child,
            price_senior=request.prices.senior,
            currency=request.currency or settings.default_currency,
            status=TourStatus.ACTIVE,
        )

        try:
            self.db.add(tour)
            await self.db.commit()
            await self.db.refresh(tour)
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Tour creation failed due to integrity constraint",
                extra={
                    "slug": request.slug,
                    "name": request.name,
                    "error": str(e)
                }
            )
            existing_tour = await self.get_tour_by_slug(request.slug)
            if existing_tour:
                raise self._slug_conflict(existing_tour) from e
            raise ConflictError(
                detail="Tour creation failed due to constraint violation"
            ) from e

        logger.info(
            "Tour created successfully",
            extra={
                "tour_id": str(tour.id),
                "slug": tour.slug,
                "name": tour.name,
                "start_date": tour.start_date.isoformat(),
                "max_participants": tour.max_participants
            }
        )

        return tour

    async def set_tour_status(self, tour_id: UUID, status: TourStatus) -> Tour:
        """
        Change whether a tour accepts reservations.

        Existing reservations are not touched.

        Raises:
            NotFoundError: If tour not found
        """
        async def operation() -> Tour:
            tour = await self.get_tour_with_lock(tour_id)
            previous = tour.status
            tour.status = status
            await self.db.commit()

            logger.info(
                "Tour status changed",
                extra={
                    "tour_id": str(tour_id),
                    "from_status": previous,
                    "to_status": status
                }
            )
            return tour

        async with lock_registry.acquire(LockKey.tour(tour_id)):
            return await run_with_retry(self.db, operation, name="set_tour_status")

    async def get_tour_by_id(self, tour_id: UUID) -> Optional[Tour]:
        """
        Get tour by ID.

        Args:
            tour_id: Tour ID to search for

        Returns:
            Tour if found, None otherwise
        """
        stmt = select(Tour).where(Tour.id == tour_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_slug(self, slug: str) -> Optional[Tour]:
        """Get tour by slug, or None."""
        stmt = select(Tour).where(Tour.slug == slug)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_id_or_raise(self, tour_id: UUID) -> Tour:
        """
        Get tour by ID or raise NotFoundError.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.get_tour_by_id(tour_id)
        if not tour:
            logger.warning(
                "Tour not found",
                extra={"tour_id": str(tour_id)}
            )
            raise NotFoundError(
                resource_type="tour",
                resource_id=str(tour_id)
            )
        return tour

    async def get_tour_with_lock(self, tour_id: UUID) -> Tour:
        """
        Get tour by ID for a capacity or status change.

        Takes the tour's advisory lock on PostgreSQL and reloads the row so
        the returned state is current; the caller must already hold the
        tour's entity lock.

        Raises:
            NotFoundError: If tour not found
        """
        await advisory_lock(self.db, str(LockKey.tour(tour_id)))

        stmt = (
            select(Tour)
            .where(Tour.id == tour_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        tour = result.scalar_one_or_none()
        if not tour:
            logger.warning(
                "Tour not found",
                extra={"tour_id": str(tour_id)}
            )
            raise NotFoundError(
                resource_type="tour",
                resource_id=str(tour_id)
            )
        return tour

    @staticmethod
    def _slug_conflict(existing_tour: Tour) -> ConflictError:
        return ConflictError(
            detail=f"Tour with slug '{existing_tour.slug}' already exists",
            conflicting_resource={
                "id": str(existing_tour.id),
                "slug": existing_tour.slug,
                "name": existing_tour.name
            }
        )
