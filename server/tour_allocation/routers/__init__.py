"""FastAPI routers package."""

from .accommodation import room_router
from .accommodation import router as accommodation_router
from .health import router as health_router
from .metrics import router as metrics_router
from .reservation import router as reservation_router
from .tour import router as tour_router

__all__ = [
    "accommodation_router",
    "health_router",
    "metrics_router",
    "reservation_router",
    "room_router",
    "tour_router",
]
