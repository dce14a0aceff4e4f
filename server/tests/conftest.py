"""Test configuration and fixtures."""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, datetime, timezone  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tour_allocation.core.clock import FixedClock  # noqa: E402
from tour_allocation.core.database import Base  # noqa: E402
from tour_allocation.core.dependencies import get_clock, get_db  # noqa: E402
from tour_allocation.models import *  # noqa: E402, F403 - Import all models
from tour_allocation.models.accommodation import AccommodationCategory, RoomType  # noqa: E402
from tour_allocation.schemas.accommodation import AddRoomRequest, CreateAccommodationRequest  # noqa: E402
from tour_allocation.schemas.reservation import CreateReservationRequest, ParticipantIn  # noqa: E402
from tour_allocation.schemas.tour import CreateTourRequest, TierPrices  # noqa: E402
from tour_allocation.services.accommodation_service import AccommodationService  # noqa: E402
from tour_allocation.services.allocation_service import AllocationService  # noqa: E402
from tour_allocation.services.tour_service import TourService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TODAY = datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)
TOUR_START = date(2025, 2, 1)
TOUR_END = date(2025, 2, 7)

_sequence = count(1)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path):
    """
    Session factory over a file-backed SQLite database.

    Every session gets its own connection, so concurrent tasks see each
    other's commits the way separate requests do.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'allocation.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def clock():
    """Clock pinned two months before the sample tours start."""
    return FixedClock(TODAY)


@pytest.fixture
def make_tour(test_session):
    """Factory creating active tours; pass ``session`` to use another session."""

    async def _make_tour(session=None, **overrides):
        number = next(_sequence)
        data = {
            "name": f"Char Dham Yatra {number}",
            "slug": f"char-dham-yatra-{number}",
            "description": "Pilgrimage circuit through the four shrines",
            "start_date": TOUR_START,
            "end_date": TOUR_END,
            "max_participants": 10,
            "prices": TierPrices(adult=10000, child=6000, senior=8000),
            "currency": "INR",
        }
        data.update(overrides)
        return await TourService(session if session is not None else test_session).create_tour(CreateTourRequest(**data))

    return _make_tour


@pytest.fixture
def make_room(test_session):
    """Factory creating a room in a fresh accommodation."""

    async def _make_room(session=None, capacity=2, room_number="101", accommodation_id=None):
        service = AccommodationService(session if session is not None else test_session)
        if accommodation_id is None:
            accommodation = await service.create_accommodation(
                CreateAccommodationRequest(
                    name=f"Ganga View {next(_sequence)}",
                    category=AccommodationCategory.HOTEL,
                    city="Haridwar"
                )
            )
            accommodation_id = accommodation.id
        return await service.add_room(
            AddRoomRequest(
                accommodation_id=accommodation_id,
                room_number=room_number,
                room_type=RoomType.DOUBLE,
                capacity=capacity,
                price_per_night=250000
            )
        )

    return _make_room


@pytest.fixture
def participants():
    """Factory for participant lists from ages."""

    def _participants(*ages):
        return [ParticipantIn(name=f"Traveller {i}", age=age) for i, age in enumerate(ages)]

    return _participants


@pytest.fixture
def make_reservation(test_session, clock, make_tour, participants):
    """Factory creating reservations, by default two adults on a fresh tour."""

    async def _make_reservation(tour=None, ages=(30, 32), session=None, **overrides):
        db = session if session is not None else test_session
        if tour is None:
            tour = await make_tour(session=db)
        data = {
            "tour_id": tour.id,
            "customer_ref": f"customer-{next(_sequence)}",
            "participants": participants(*ages),
        }
        data.update(overrides)
        return await AllocationService(db, clock).create_reservation(CreateReservationRequest(**data))

    return _make_reservation


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, clock):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError

    from tour_allocation.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        request_validation_handler,
    )
    from tour_allocation.routers import (
        accommodation_router,
        health_router,
        metrics_router,
        reservation_router,
        room_router,
        tour_router,
    )

    # Simplified app without lifespan, workers or tracing
    app = FastAPI(
        title="Tour Allocation API (Test)",
        version="1.0.0-test",
    )

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(tour_router)
    app.include_router(accommodation_router)
    app.include_router(room_router)
    app.include_router(reservation_router)
    app.include_router(metrics_router)

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
