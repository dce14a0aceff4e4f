"""Accommodation and room routers."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.dependencies import CurrentClock, DatabaseSession
from ..schemas.accommodation import (
    Accommodation,
    AddRoomRequest,
    AvailabilityResponse,
    CheckAvailabilityRequest,
    CreateAccommodationRequest,
    GetAccommodationRequest,
    ListAvailableRoomsRequest,
    ListAvailableRoomsResponse,
    Room,
)
from ..services.accommodation_service import AccommodationService
from ..services.room_ledger import RoomLedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/accommodation", tags=["accommodation"])
room_router = APIRouter(prefix="/v1/room", tags=["room"])


@router.post("/create", response_model=Accommodation)
async def create_accommodation(
    request: CreateAccommodationRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Create an accommodation with no rooms."""
    accommodation = await AccommodationService(db).create_accommodation(request)
    return JSONResponse(
        status_code=200,
        content=Accommodation.model_validate(accommodation).model_dump(mode="json")
    )


@router.post("/get", response_model=Accommodation)
async def get_accommodation(
    request: GetAccommodationRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get an accommodation with its rooms."""
    accommodation = await AccommodationService(db).get_accommodation_or_raise(request.accommodation_id)
    return JSONResponse(
        status_code=200,
        content=Accommodation.model_validate(accommodation).model_dump(mode="json")
    )


@router.post("/available-rooms", response_model=ListAvailableRoomsResponse)
async def list_available_rooms(
    request: ListAvailableRoomsRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """List rooms of an accommodation that are free over a date range."""
    rooms = await RoomLedgerService(db, clock).list_available_rooms(
        request.accommodation_id,
        request.check_in,
        request.check_out,
        request.min_capacity
    )
    response_data = ListAvailableRoomsResponse(
        accommodation_id=request.accommodation_id,
        check_in=request.check_in,
        check_out=request.check_out,
        rooms=[Room.model_validate(room) for room in rooms]
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@room_router.post("/create", response_model=Room)
async def add_room(
    request: AddRoomRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Add a room to an accommodation."""
    room = await AccommodationService(db).add_room(request)
    return JSONResponse(
        status_code=200,
        content=Room.model_validate(room).model_dump(mode="json")
    )


@room_router.post("/availability", response_model=AvailabilityResponse)
async def check_availability(
    request: CheckAvailabilityRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Check whether a room is free over a date range."""
    ledger = RoomLedgerService(db, clock)
    room = await ledger.get_room_or_raise(request.room_id)
    conflict = ledger.find_conflict(room, request.check_in, request.check_out)

    response_data = AvailabilityResponse(
        room_id=request.room_id,
        check_in=request.check_in,
        check_out=request.check_out,
        available=conflict is None,
        conflicting_reservation_id=conflict.reservation_id if conflict else None
    )

    logger.debug(
        "Room availability checked",
        extra={
            "room_id": str(request.room_id),
            "available": response_data.available
        }
    )

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
