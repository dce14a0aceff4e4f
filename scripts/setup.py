#!/usr/bin/env python3
"""Setup script for the tour allocation API."""

import asyncio
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from sqlalchemy import func, select

from tour_allocation.core.database import async_session_factory, close_db, init_db
from tour_allocation.models import Tour  # Registers every model on the metadata
from tour_allocation.models.accommodation import AccommodationCategory, RoomType
from tour_allocation.schemas.accommodation import AddRoomRequest, CreateAccommodationRequest
from tour_allocation.schemas.tour import CreateTourRequest, TierPrices
from tour_allocation.services.accommodation_service import AccommodationService
from tour_allocation.services.tour_service import TourService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_ROOMS = [
    ("101", RoomType.DOUBLE, 2, 250000),
    ("102", RoomType.TRIPLE, 3, 320000),
    ("201", RoomType.FAMILY, 4, 400000),
    ("D1", RoomType.DORMITORY, 8, 90000),
]


async def setup_database():
    """Create the schema for every registered model."""
    logger.info("Setting up database...")

    try:
        await init_db()
        logger.info("Database setup completed successfully!")
    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        raise


async def create_sample_data():
    """Create a sample tour and an accommodation with rooms."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing_tours = await db.scalar(select(func.count()).select_from(Tour))
        if existing_tours:
            logger.info("Sample data already exists, skipping...")
            return

        start = date.today() + timedelta(days=30)
        tour = await TourService(db).create_tour(
            CreateTourRequest(
                name="Char Dham Yatra",
                slug="char-dham-yatra",
                description="Pilgrimage circuit through Yamunotri, Gangotri, Kedarnath and Badrinath",
                start_date=start,
                end_date=start + timedelta(days=11),
                max_participants=40,
                prices=TierPrices(adult=4500000, child=2700000, senior=3600000)
            )
        )
        logger.info(f"Created tour {tour.slug} ({tour.id})")

        accommodations = AccommodationService(db)
        accommodation = await accommodations.create_accommodation(
            CreateAccommodationRequest(
                name="Ganga View Residency",
                category=AccommodationCategory.HOTEL,
                city="Haridwar"
            )
        )
        for room_number, room_type, capacity, price in SAMPLE_ROOMS:
            await accommodations.add_room(
                AddRoomRequest(
                    accommodation_id=accommodation.id,
                    room_number=room_number,
                    room_type=room_type,
                    capacity=capacity,
                    price_per_night=price
                )
            )
        logger.info(f"Created accommodation {accommodation.name} with {len(SAMPLE_ROOMS)} rooms")

    logger.info("Sample data created successfully!")


async def main():
    """Main setup function."""
    logger.info("Starting tour allocation API setup...")

    try:
        await setup_database()
        await create_sample_data()
    finally:
        await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn tour_allocation.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
