"""Reservation-related Pydantic schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..models.reservation import (
    ParticipantType,
    PriceCategory,
    Relationship,
    ReservationStatus,
    normalize_status,
)
from .accommodation import StayDates


class ParticipantIn(BaseModel):
    """A participant as submitted by the customer."""

    name: str = Field(..., min_length=1, max_length=200, description="Full name")
    age: int = Field(..., ge=0, le=120, description="Age in years at travel time")
    relationship: Optional[Relationship] = Field(None, description="Relationship to the primary participant")


class RoomRequest(StayDates):
    """A room to reserve for part or all of the tour."""

    room_id: UUID = Field(..., description="Room to reserve")
    occupant_count: Optional[int] = Field(
        None, ge=1, description="Occupants; defaults to the reservation's participant count"
    )


class CreateReservationRequest(BaseModel):
    """Request schema for creating a reservation."""

    tour_id: UUID = Field(..., description="Tour to reserve")
    customer_ref: str = Field(..., min_length=1, max_length=128, description="Customer reference")
    participants: List[ParticipantIn] = Field(..., min_length=1, max_length=50, description="Travellers")
    room_requests: List[RoomRequest] = Field(default_factory=list, description="Rooms to reserve")
    auto_confirm: bool = Field(False, description="Confirm immediately and commit tour seats")
    special_requests: Optional[str] = Field(None, max_length=2000, description="Free-text requests")


class AddParticipantsRequest(BaseModel):
    """Request schema for adding participants to a reservation."""

    reservation_id: UUID = Field(..., description="Reservation to extend")
    participants: List[ParticipantIn] = Field(..., min_length=1, max_length=50, description="Travellers to add")


class TransitionRequest(BaseModel):
    """Request schema for changing a reservation's status."""

    reservation_id: UUID = Field(..., description="Reservation to update")
    status: ReservationStatus = Field(..., description="Target status; legacy names are accepted")
    reason: Optional[str] = Field(None, max_length=500, description="Reason, recorded on cancellation")

    @field_validator("status", mode="before")
    @classmethod
    def accept_legacy_status(cls, v):
        if isinstance(v, str):
            return normalize_status(v)
        return v


class CancelReservationRequest(BaseModel):
    """Request schema for cancelling a reservation."""

    reservation_id: UUID = Field(..., description="Reservation to cancel")
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class GetReservationRequest(BaseModel):
    """Request schema for getting a reservation."""

    reservation_id: UUID = Field(..., description="Reservation to retrieve")


class DeleteReservationRequest(BaseModel):
    """Request schema for deleting a reservation."""

    reservation_id: UUID = Field(..., description="Reservation to delete")


class AssignRoomRequest(RoomRequest):
    """Request schema for reserving one more room for an existing reservation."""

    reservation_id: UUID = Field(..., description="Reservation the room is for")


class ReleaseRoomRequest(BaseModel):
    """Request schema for releasing a reservation's hold on a room."""

    reservation_id: UUID = Field(..., description="Reservation holding the room")
    room_id: UUID = Field(..., description="Room to release")


class Participant(BaseModel):
    """Participant response schema."""

    position: int
    name: str
    age: int
    relationship: Optional[Relationship] = Field(None, validation_alias="relationship_tag")
    participant_type: ParticipantType
    price_category: PriceCategory
    price_amount: int

    class Config:
        from_attributes = True
        populate_by_name = True


class RoomAssignment(BaseModel):
    """A room interval held by a reservation."""

    room_id: UUID
    check_in: date
    check_out: date
    occupant_count: int

    class Config:
        from_attributes = True


class Reservation(BaseModel):
    """Reservation response schema."""

    id: UUID = Field(..., description="Unique reservation ID")
    code: str = Field(..., description="Reservation reference code")
    tour_id: UUID
    customer_ref: str
    status: ReservationStatus
    total_participants: int = Field(..., ge=1)
    capacity_committed: int = Field(..., ge=0)
    subtotal: int = Field(..., ge=0)
    taxes: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    currency: str
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    participants: List[Participant] = Field(default_factory=list)
    room_assignments: List[RoomAssignment] = Field(default_factory=list, validation_alias="room_intervals")

    class Config:
        from_attributes = True
        populate_by_name = True


class DeleteReservationResponse(BaseModel):
    """Acknowledgement of a deleted reservation."""

    reservation_id: UUID
    deleted: bool = True
