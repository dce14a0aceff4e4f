"""Models module exporting all database models."""

from .accommodation import Accommodation, AccommodationCategory, Room, RoomInterval, RoomType
from .capacity import CapacityAdjustment
from .reservation import (
    Participant,
    ParticipantType,
    PriceCategory,
    Relationship,
    Reservation,
    ReservationStatus,
    normalize_status,
)
from .tour import Tour, TourStatus

__all__ = [
    # Tour entities
    "Tour",
    "TourStatus",
    "CapacityAdjustment",

    # Accommodation entities
    "Accommodation",
    "AccommodationCategory",
    "Room",
    "RoomType",
    "RoomInterval",

    # Reservation entities
    "Reservation",
    "ReservationStatus",
    "Participant",
    "ParticipantType",
    "PriceCategory",
    "Relationship",
    "normalize_status",
]
