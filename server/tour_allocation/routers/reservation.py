"""Reservation router for reservation lifecycle operations."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.dependencies import CurrentClock, DatabaseSession
from ..schemas.reservation import (
    AddParticipantsRequest,
    AssignRoomRequest,
    CancelReservationRequest,
    CreateReservationRequest,
    DeleteReservationRequest,
    DeleteReservationResponse,
    GetReservationRequest,
    ReleaseRoomRequest,
    Reservation,
    TransitionRequest,
)
from ..services.allocation_service import AllocationService
from ..services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/reservation", tags=["reservation"])


def _reservation_response(reservation_model) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=Reservation.model_validate(reservation_model).model_dump(mode="json")
    )


@router.post("/create", response_model=Reservation)
async def create_reservation(
    request: CreateReservationRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """
    Create a reservation.

    With ``auto_confirm`` the tour seats are committed immediately; rooms in
    ``room_requests`` are reserved in the same transaction.
    """
    reservation = await AllocationService(db, clock).create_reservation(request)
    return _reservation_response(reservation)


@router.post("/get", response_model=Reservation)
async def get_reservation(
    request: GetReservationRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Get a reservation with participants and room assignments."""
    reservation = await ReservationService(db, clock).get_reservation_or_raise(request.reservation_id)
    return _reservation_response(reservation)


@router.post("/add-participants", response_model=Reservation)
async def add_participants(
    request: AddParticipantsRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Append participants, committing their seats if the reservation holds any."""
    reservation = await ReservationService(db, clock).add_participants(
        request.reservation_id,
        request.participants
    )
    return _reservation_response(reservation)


@router.post("/transition", response_model=Reservation)
async def transition_reservation(
    request: TransitionRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Move a reservation to a new status."""
    reservation = await ReservationService(db, clock).transition(
        request.reservation_id,
        request.status,
        request.reason
    )
    return _reservation_response(reservation)


@router.post("/cancel", response_model=Reservation)
async def cancel_reservation(
    request: CancelReservationRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Cancel a reservation, releasing its seats and rooms."""
    reservation = await ReservationService(db, clock).cancel_reservation(
        request.reservation_id,
        request.reason
    )
    return _reservation_response(reservation)


@router.post("/delete", response_model=DeleteReservationResponse)
async def delete_reservation(
    request: DeleteReservationRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Delete a reservation after releasing its seats and rooms."""
    await ReservationService(db, clock).delete_reservation(request.reservation_id)
    response_data = DeleteReservationResponse(reservation_id=request.reservation_id)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/assign-room", response_model=Reservation)
async def assign_room(
    request: AssignRoomRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Reserve a room interval for an existing reservation."""
    reservation = await AllocationService(db, clock).assign_room(request)
    return _reservation_response(reservation)


@router.post("/release-room", response_model=Reservation)
async def release_room(
    request: ReleaseRoomRequest,
    db: AsyncSession = DatabaseSession,
    clock: Clock = CurrentClock
) -> JSONResponse:
    """Release a reservation's intervals on a room."""
    reservation = await AllocationService(db, clock).release_room(request.reservation_id, request.room_id)
    return _reservation_response(reservation)
