"""Unit tests for the room ledger."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from tour_allocation.core.exceptions import (
    NotFoundError,
    RoomCapacityExceededError,
    RoomConflictError,
    ValidationError,
)
from tour_allocation.models.accommodation import RoomInterval
from tour_allocation.services.room_ledger import (
    RoomLedgerService,
    find_conflict,
    intervals_overlap,
    is_occupied_on,
)


def _interval(check_in, check_out):
    return RoomInterval(
        room_id=uuid4(),
        reservation_id=uuid4(),
        check_in=check_in,
        check_out=check_out,
        occupant_count=1
    )


class TestIntervalHelpers:
    """Test the pure interval helpers."""

    def test_adjacent_ranges_do_not_overlap(self):
        assert not intervals_overlap(date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 3), date(2025, 1, 5))

    def test_contained_range_overlaps(self):
        assert intervals_overlap(date(2025, 1, 1), date(2025, 1, 10), date(2025, 1, 3), date(2025, 1, 4))

    def test_find_conflict_scans_sorted_intervals(self):
        intervals = [
            _interval(date(2025, 1, 1), date(2025, 1, 3)),
            _interval(date(2025, 1, 5), date(2025, 1, 8)),
            _interval(date(2025, 1, 10), date(2025, 1, 12)),
        ]

        assert find_conflict(intervals, date(2025, 1, 3), date(2025, 1, 5)) is None
        assert find_conflict(intervals, date(2025, 1, 7), date(2025, 1, 10)) is intervals[1]
        assert find_conflict(intervals, date(2024, 12, 20), date(2025, 1, 2)) is intervals[0]
        assert find_conflict(intervals, date(2025, 1, 12), date(2025, 1, 20)) is None

    def test_find_conflict_skips_expired(self):
        intervals = [_interval(date(2025, 1, 1), date(2025, 1, 3))]

        assert find_conflict(intervals, date(2025, 1, 2), date(2025, 1, 6), today=date(2025, 1, 4)) is None
        assert find_conflict(intervals, date(2025, 1, 2), date(2025, 1, 6), today=date(2025, 1, 3)) is intervals[0]

    def test_is_occupied_on(self):
        intervals = [_interval(date(2025, 1, 1), date(2025, 1, 3))]

        assert is_occupied_on(intervals, date(2025, 1, 1))
        assert is_occupied_on(intervals, date(2025, 1, 2))
        assert not is_occupied_on(intervals, date(2025, 1, 3))


class TestReserve:
    """Test reserving room intervals."""

    @pytest.mark.asyncio
    async def test_adjacent_stay_allowed_overlap_rejected(self, test_session, clock, make_room, make_reservation):
        """Room of two: A holds Jan 1-3, B cannot take Jan 2-4 but can take Jan 3-5."""
        room = await make_room(capacity=2)
        first = await make_reservation()
        second = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), first.id, 2)
        await test_session.commit()

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        with pytest.raises(RoomConflictError) as exc_info:
            ledger.reserve(loaded, date(2025, 1, 2), date(2025, 1, 4), second.id, 2)
        assert exc_info.value.conflicting_reservation_id == str(first.id)

        ledger.reserve(loaded, date(2025, 1, 3), date(2025, 1, 5), second.id, 2)
        await test_session.commit()

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        assert [(i.check_in, i.reservation_id) for i in loaded.intervals] == [
            (date(2025, 1, 1), first.id),
            (date(2025, 1, 3), second.id),
        ]

    @pytest.mark.asyncio
    async def test_capacity_checked_before_overlap(self, test_session, clock, make_room, make_reservation):
        room = await make_room(capacity=2)
        first = await make_reservation()
        second = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), first.id, 2)
        await test_session.commit()

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        with pytest.raises(RoomCapacityExceededError):
            ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), second.id, 3)

    @pytest.mark.asyncio
    async def test_empty_range_rejected(self, test_session, clock, make_room):
        room = await make_room()
        ledger = RoomLedgerService(test_session, clock)
        loaded = await ledger.get_room_or_raise(room.id, for_update=True)

        with pytest.raises(ValidationError):
            ledger.reserve(loaded, date(2025, 1, 3), date(2025, 1, 3), uuid4(), 1)
        with pytest.raises(ValidationError):
            ledger.reserve(loaded, date(2025, 1, 4), date(2025, 1, 3), uuid4(), 1)

    @pytest.mark.asyncio
    async def test_zero_occupants_rejected(self, test_session, clock, make_room):
        room = await make_room()
        ledger = RoomLedgerService(test_session, clock)
        loaded = await ledger.get_room_or_raise(room.id, for_update=True)

        with pytest.raises(ValidationError):
            ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), uuid4(), 0)

    @pytest.mark.asyncio
    async def test_ended_stay_rejected(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        first = await make_reservation()
        second = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)
        loaded = await ledger.get_room_or_raise(room.id, for_update=True)

        # Today is 2024-12-01
        with pytest.raises(ValidationError):
            ledger.reserve(loaded, date(2024, 11, 1), date(2024, 11, 5), first.id, 1)
        with pytest.raises(ValidationError):
            ledger.reserve(loaded, date(2024, 11, 28), date(2024, 12, 1), second.id, 1)
        assert loaded.intervals == []

        with pytest.raises(ValidationError):
            await ledger.check_availability(room.id, date(2024, 11, 2), date(2024, 11, 4))

        interval = ledger.reserve(loaded, date(2024, 11, 30), date(2024, 12, 3), first.id, 1)
        assert loaded.intervals == [interval]
        assert loaded.is_occupied is True

    @pytest.mark.asyncio
    async def test_reserve_bumps_room_version(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        reservation = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        version_before = loaded.version
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), reservation.id, 1)
        await test_session.commit()

        assert loaded.version == version_before + 1

    @pytest.mark.asyncio
    async def test_unknown_room(self, test_session, clock):
        with pytest.raises(NotFoundError):
            await RoomLedgerService(test_session, clock).get_room_or_raise(uuid4())


class TestReleaseAndPurge:
    """Test removing intervals."""

    @pytest.mark.asyncio
    async def test_release_removes_only_owned_intervals(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        first = await make_reservation()
        second = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), first.id, 1)
        ledger.reserve(loaded, date(2025, 1, 5), date(2025, 1, 6), first.id, 1)
        ledger.reserve(loaded, date(2025, 1, 3), date(2025, 1, 5), second.id, 1)
        await test_session.commit()

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        assert ledger.release(loaded, first.id) == 2
        assert ledger.release(loaded, first.id) == 0
        await test_session.commit()

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        assert [i.reservation_id for i in loaded.intervals] == [second.id]

    @pytest.mark.asyncio
    async def test_purge_removes_intervals_past_check_out(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        reservation = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2024, 12, 5), date(2024, 12, 8), reservation.id, 1)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), reservation.id, 1)
        await test_session.commit()

        # Checking out today is not yet expired
        clock.advance_to(datetime(2024, 12, 8, 9, 0, tzinfo=timezone.utc))
        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        assert ledger.purge_expired(loaded) == 0

        clock.advance_to(datetime(2024, 12, 9, 9, 0, tzinfo=timezone.utc))
        assert ledger.purge_expired(loaded) == 1
        await test_session.commit()

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        assert [i.check_in for i in loaded.intervals] == [date(2025, 1, 1)]

    @pytest.mark.asyncio
    async def test_reserve_purges_expired_first(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        first = await make_reservation()
        second = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2024, 12, 5), date(2024, 12, 8), first.id, 1)
        await test_session.commit()

        clock.advance_to(datetime(2024, 12, 20, 9, 0, tzinfo=timezone.utc))
        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), second.id, 1)
        await test_session.commit()

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        assert [i.reservation_id for i in loaded.intervals] == [second.id]


class TestOccupancy:
    """Test the derived occupancy flag."""

    @pytest.mark.asyncio
    async def test_occupied_while_interval_covers_today(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        reservation = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2024, 11, 30), date(2024, 12, 3), reservation.id, 1)
        await test_session.commit()
        assert loaded.is_occupied is True

        ledger.release(loaded, reservation.id)
        await test_session.commit()
        assert loaded.is_occupied is False

    @pytest.mark.asyncio
    async def test_future_interval_does_not_occupy(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        reservation = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), reservation.id, 1)
        await test_session.commit()

        assert loaded.is_occupied is False
        clock.advance_to(datetime(2025, 1, 2, 9, 0, tzinfo=timezone.utc))
        assert ledger.refresh_occupancy(loaded) is True


class TestAvailability:
    """Test availability queries."""

    @pytest.mark.asyncio
    async def test_check_availability(self, test_session, clock, make_room, make_reservation):
        room = await make_room()
        reservation = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), reservation.id, 1)
        await test_session.commit()

        assert await ledger.check_availability(room.id, date(2025, 1, 2), date(2025, 1, 4)) is False
        assert await ledger.check_availability(room.id, date(2025, 1, 3), date(2025, 1, 4)) is True
        assert await ledger.check_availability(room.id, date(2024, 12, 28), date(2025, 1, 1)) is True

    @pytest.mark.asyncio
    async def test_check_availability_ignores_expired_without_purging(
        self, test_session, clock, make_room, make_reservation
    ):
        room = await make_room()
        reservation = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        ledger.reserve(loaded, date(2024, 12, 5), date(2024, 12, 8), reservation.id, 1)
        await test_session.commit()

        clock.advance_to(datetime(2024, 12, 10, 9, 0, tzinfo=timezone.utc))
        assert await ledger.check_availability(room.id, date(2024, 12, 6), date(2024, 12, 12)) is True

        loaded = await ledger.get_room_or_raise(room.id, for_update=True)
        assert len(loaded.intervals) == 1

    @pytest.mark.asyncio
    async def test_check_availability_validates_range(self, test_session, clock, make_room):
        room = await make_room()
        with pytest.raises(ValidationError):
            await RoomLedgerService(test_session, clock).check_availability(
                room.id, date(2025, 1, 3), date(2025, 1, 1)
            )

    @pytest.mark.asyncio
    async def test_list_available_rooms(self, test_session, clock, make_room, make_reservation):
        double = await make_room(capacity=2, room_number="101")
        family = await make_room(capacity=4, room_number="102", accommodation_id=double.accommodation_id)
        reservation = await make_reservation()
        ledger = RoomLedgerService(test_session, clock)

        loaded = await ledger.get_room_or_raise(double.id, for_update=True)
        ledger.reserve(loaded, date(2025, 1, 1), date(2025, 1, 3), reservation.id, 2)
        await test_session.commit()

        busy = await ledger.list_available_rooms(double.accommodation_id, date(2025, 1, 2), date(2025, 1, 4))
        assert [r.id for r in busy] == [family.id]

        free = await ledger.list_available_rooms(double.accommodation_id, date(2025, 1, 3), date(2025, 1, 4))
        assert {r.id for r in free} == {double.id, family.id}

        large = await ledger.list_available_rooms(
            double.accommodation_id, date(2025, 1, 3), date(2025, 1, 4), min_capacity=3
        )
        assert [r.id for r in large] == [family.id]

    @pytest.mark.asyncio
    async def test_list_available_rooms_unknown_accommodation(self, test_session, clock):
        with pytest.raises(NotFoundError):
            await RoomLedgerService(test_session, clock).list_available_rooms(
                uuid4(), date(2025, 1, 1), date(2025, 1, 2)
            )
