"""Accommodation service for managing accommodations and their rooms."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import ConflictError, NotFoundError
from ..models.accommodation import Accommodation, Room
from ..schemas.accommodation import AddRoomRequest, CreateAccommodationRequest

logger = logging.getLogger(__name__)


class AccommodationService:
    """Service for accommodation-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_accommodation(self, request: CreateAccommodationRequest) -> Accommodation:
        """
        Create a new accommodation with no rooms.

        Args:
            request: Accommodation creation request

        Returns:
            Created accommodation entity
        """
        accommodation = Accommodation(
            name=request.name,
            category=request.category,
            city=request.city,
            is_active=True,
            rooms=[]
        )

        self.db.add(accommodation)
        await self.db.commit()

        logger.info(
            "Accommodation created successfully",
            extra={
                "accommodation_id": str(accommodation.id),
                "name": accommodation.name,
                "city": accommodation.city
            }
        )

        return await self.get_accommodation_or_raise(accommodation.id)

    async def add_room(self, request: AddRoomRequest) -> Room:
        """
        Add a room to an accommodation.

        Args:
            request: Room creation request

        Returns:
            Created room entity

        Raises:
            NotFoundError: If accommodation not found
            ConflictError: If the room number is already used in the accommodation
        """
        await self.get_accommodation_or_raise(request.accommodation_id)

        room = Room(
            accommodation_id=request.accommodation_id,
            room_number=request.room_number,
            room_type=request.room_type,
            capacity=request.capacity,
            price_per_night=request.price_per_night,
            is_occupied=False
        )

        try:
            self.db.add(room)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Room creation failed - duplicate room number",
                extra={
                    "accommodation_id": str(request.accommodation_id),
                    "room_number": request.room_number
                }
            )
            raise ConflictError(
                detail=f"Room '{request.room_number}' already exists in accommodation {request.accommodation_id}",
                conflicting_resource={
                    "accommodation_id": str(request.accommodation_id),
                    "room_number": request.room_number
                }
            ) from e

        logger.info(
            "Room added successfully",
            extra={
                "room_id": str(room.id),
                "accommodation_id": str(request.accommodation_id),
                "room_number": room.room_number,
                "capacity": room.capacity
            }
        )

        return room

    async def get_accommodation_by_id(self, accommodation_id: UUID) -> Optional[Accommodation]:
        """Get an accommodation with its rooms, or None."""
        stmt = (
            select(Accommodation)
            .options(selectinload(Accommodation.rooms))
            .where(Accommodation.id == accommodation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_accommodation_or_raise(self, accommodation_id: UUID) -> Accommodation:
        """
        Get an accommodation or raise NotFoundError.

        Raises:
            NotFoundError: If accommodation not found
        """
        accommodation = await self.get_accommodation_by_id(accommodation_id)
        if not accommodation:
            logger.warning(
                "Accommodation not found",
                extra={"accommodation_id": str(accommodation_id)}
            )
            raise NotFoundError(
                resource_type="accommodation",
                resource_id=str(accommodation_id)
            )
        return accommodation
