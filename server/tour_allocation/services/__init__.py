"""Service layer package."""

from .accommodation_service import AccommodationService
from .allocation_service import AllocationService
from .capacity_service import CapacityService
from .reservation_service import ReservationService
from .room_ledger import RoomLedgerService
from .tour_service import TourService

__all__ = [
    "AccommodationService",
    "AllocationService",
    "CapacityService",
    "ReservationService",
    "RoomLedgerService",
    "TourService",
]
