"""Accommodation and room Pydantic schemas."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..models.accommodation import AccommodationCategory, RoomType


class StayDates(BaseModel):
    """Half-open ``[check_in, check_out)`` date range."""

    check_in: date = Field(..., description="First night")
    check_out: date = Field(..., description="Departure day (exclusive)")

    @model_validator(mode="after")
    def check_dates(self):
        if self.check_in >= self.check_out:
            raise ValueError("check_in must be before check_out")
        return self


class CreateAccommodationRequest(BaseModel):
    """Request schema for creating an accommodation."""

    name: str = Field(..., min_length=1, max_length=200, description="Accommodation name")
    category: AccommodationCategory = Field(..., description="Accommodation category")
    city: str = Field(..., min_length=1, max_length=120, description="City")


class AddRoomRequest(BaseModel):
    """Request schema for adding a room to an accommodation."""

    accommodation_id: UUID = Field(..., description="Owning accommodation")
    room_number: str = Field(..., min_length=1, max_length=20, description="Room number")
    room_type: RoomType = Field(..., description="Room type")
    capacity: int = Field(..., ge=1, le=50, description="Maximum occupants")
    price_per_night: int = Field(0, ge=0, description="Nightly price in minor units")


class GetAccommodationRequest(BaseModel):
    """Request schema for getting an accommodation."""

    accommodation_id: UUID = Field(..., description="Accommodation to retrieve")


class CheckAvailabilityRequest(StayDates):
    """Request schema for checking a room over a date range."""

    room_id: UUID = Field(..., description="Room to check")


class ListAvailableRoomsRequest(StayDates):
    """Request schema for listing rooms free over a date range."""

    accommodation_id: UUID = Field(..., description="Accommodation to search")
    min_capacity: int = Field(1, ge=1, description="Occupants the room must hold")


class RoomInterval(BaseModel):
    """Room interval response schema."""

    room_id: UUID
    reservation_id: UUID
    check_in: date
    check_out: date
    occupant_count: int

    class Config:
        from_attributes = True


class Room(BaseModel):
    """Room response schema."""

    id: UUID = Field(..., description="Unique room ID")
    accommodation_id: UUID
    room_number: str
    room_type: RoomType
    capacity: int = Field(..., ge=1)
    price_per_night: int = Field(..., ge=0)
    is_occupied: bool = Field(..., description="Some interval covers today")

    class Config:
        from_attributes = True


class Accommodation(BaseModel):
    """Accommodation response schema."""

    id: UUID = Field(..., description="Unique accommodation ID")
    name: str
    category: AccommodationCategory
    city: str
    is_active: bool
    rooms: List[Room] = Field(default_factory=list)

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    """Result of a room availability check."""

    room_id: UUID
    check_in: date
    check_out: date
    available: bool
    conflicting_reservation_id: Optional[UUID] = None


class ListAvailableRoomsResponse(BaseModel):
    """Rooms of an accommodation free over a date range."""

    accommodation_id: UUID
    check_in: date
    check_out: date
    rooms: List[Room]
