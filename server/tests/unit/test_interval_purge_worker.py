"""Unit tests for the interval purge worker."""

from datetime import date, datetime, timezone

import pytest

from tour_allocation.schemas.reservation import RoomRequest
from tour_allocation.services.room_ledger import RoomLedgerService
from tour_allocation.workers.interval_purge_worker import IntervalPurgeWorker
from tour_allocation.workers.manager import WorkerManager


@pytest.mark.asyncio
async def test_sweep_purges_expired_and_refreshes_occupancy(
    session_factory, clock, make_tour, make_room, make_reservation
):
    async with session_factory() as db:
        tour = await make_tour(session=db)
        room = await make_room(session=db, capacity=2)
        await make_reservation(
            session=db,
            tour=tour,
            room_requests=[
                RoomRequest(room_id=room.id, check_in=date(2024, 11, 30), check_out=date(2024, 12, 3)),
                RoomRequest(room_id=room.id, check_in=date(2025, 1, 10), check_out=date(2025, 1, 12)),
            ]
        )
        room_id = room.id

    async with session_factory() as db:
        loaded = await RoomLedgerService(db, clock).get_room_or_raise(room_id)
        assert loaded.is_occupied is True

    clock.advance_to(datetime(2024, 12, 5, 6, 0, tzinfo=timezone.utc))
    worker = IntervalPurgeWorker(interval_seconds=60, session_factory=session_factory, clock=clock)

    assert await worker.sweep() == 1
    assert await worker.sweep() == 0

    async with session_factory() as db:
        loaded = await RoomLedgerService(db, clock).get_room_or_raise(room_id)
        assert loaded.is_occupied is False
        assert [i.check_in for i in loaded.intervals] == [date(2025, 1, 10)]


@pytest.mark.asyncio
async def test_sweep_without_intervals(session_factory, clock):
    worker = IntervalPurgeWorker(interval_seconds=60, session_factory=session_factory, clock=clock)
    assert await worker.sweep() == 0


@pytest.mark.asyncio
async def test_worker_start_and_stop(session_factory, clock):
    worker = IntervalPurgeWorker(interval_seconds=3600, session_factory=session_factory, clock=clock)

    await worker.start()
    assert worker.is_running

    await worker.stop()
    assert not worker.is_running


def test_manager_registers_purge_worker():
    manager = WorkerManager()

    assert isinstance(manager.get_worker("interval_purge"), IntervalPurgeWorker)
    assert manager.get_worker_status() == {"interval_purge": False}
