"""Resource ledger: per-room interval bookkeeping with no double-booking."""

import bisect
import logging
from datetime import date
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import flag_modified

from ..core.clock import Clock, system_clock
from ..core.database import advisory_lock
from ..core.exceptions import (
    NotFoundError,
    RoomCapacityExceededError,
    RoomConflictError,
    ValidationError,
)
from ..core.locks import LockKey
from ..core.observability import metrics_collector
from ..models.accommodation import Accommodation, Room, RoomInterval

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open ranges ``[a_start, a_end)`` and ``[b_start, b_end)`` overlap."""
    return a_start < b_end and b_start < a_end


def is_expired(interval: RoomInterval, today: date) -> bool:
    return interval.check_out < today


def find_conflict(
    intervals: Sequence[RoomInterval],
    check_in: date,
    check_out: date,
    today: Optional[date] = None,
) -> Optional[RoomInterval]:
    """
    Return an interval overlapping ``[check_in, check_out)``, or None.

    ``intervals`` must be sorted by ``check_in``. Intervals starting at or
    after ``check_out`` cannot overlap, so only the prefix before that point
    is scanned, nearest first. Intervals already expired relative to
    ``today`` are ignored.
    """
    starts = [interval.check_in for interval in intervals]
    end = bisect.bisect_left(starts, check_out)
    for interval in reversed(intervals[:end]):
        if today is not None and is_expired(interval, today):
            continue
        if interval.check_out > check_in:
            return interval
    return None


def is_occupied_on(intervals: Sequence[RoomInterval], day: date) -> bool:
    return any(interval.check_in <= day < interval.check_out for interval in intervals)


def _validate_stay(check_in: date, check_out: date, today: date) -> None:
    if check_in >= check_out:
        raise ValidationError(
            detail="check_in must be before check_out",
            errors={"check_in": check_in.isoformat(), "check_out": check_out.isoformat()}
        )
    # Reserved intervals are never already expired
    if check_out <= today:
        raise ValidationError(
            detail="Stay has already ended",
            errors={"check_out": check_out.isoformat(), "today": today.isoformat()}
        )


class RoomLedgerService:
    """
    Owns the interval set of every room.

    Mutating methods work on a ``Room`` loaded with ``get_room_or_raise(...,
    for_update=True)`` while the caller holds the room's entity lock. They
    change the session only; committing is the caller's job so several
    ledger mutations and a capacity commit land in one transaction.
    """

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock

    async def get_room_or_raise(self, room_id: UUID, for_update: bool = False) -> Room:
        """
        Get a room with its intervals.

        Args:
            room_id: Room ID
            for_update: Take the room's advisory lock and reload current state

        Raises:
            NotFoundError: If room not found
        """
        if for_update:
            await advisory_lock(self.db, str(LockKey.room(room_id)))

        stmt = (
            select(Room)
            .options(selectinload(Room.intervals))
            .where(Room.id == room_id)
        )
        if for_update:
            stmt = stmt.execution_options(populate_existing=True)

        result = await self.db.execute(stmt)
        room = result.scalar_one_or_none()
        if not room:
            logger.warning("Room not found", extra={"room_id": str(room_id)})
            raise NotFoundError(resource_type="room", resource_id=str(room_id))
        return room

    async def check_availability(self, room_id: UUID, check_in: date, check_out: date) -> bool:
        """
        Whether ``[check_in, check_out)`` is free on the room.

        Read-only: expired intervals are ignored, not purged.

        Raises:
            NotFoundError: If room not found
            ValidationError: If check_in is not before check_out or the stay has ended
        """
        _validate_stay(check_in, check_out, self.clock.today())
        room = await self.get_room_or_raise(room_id)
        return self.find_conflict(room, check_in, check_out) is None

    def find_conflict(self, room: Room, check_in: date, check_out: date) -> Optional[RoomInterval]:
        return find_conflict(room.intervals, check_in, check_out, today=self.clock.today())

    def reserve(
        self,
        room: Room,
        check_in: date,
        check_out: date,
        reservation_id: UUID,
        occupant_count: int,
    ) -> RoomInterval:
        """
        Add an interval for ``reservation_id`` to the room.

        Args:
            room: Room loaded for update
            check_in: First night
            check_out: Departure day (exclusive)
            reservation_id: Reservation the interval belongs to
            occupant_count: Guests staying in the room

        Returns:
            The new interval

        Raises:
            ValidationError: If the dates are out of order or already past, or the
                occupant count is invalid
            RoomCapacityExceededError: If the room is too small
            RoomConflictError: If the range overlaps an existing interval
        """
        _validate_stay(check_in, check_out, self.clock.today())
        if occupant_count < 1:
            raise ValidationError(
                detail="occupant_count must be at least 1",
                errors={"occupant_count": occupant_count}
            )

        if occupant_count > room.capacity:
            logger.warning(
                "Room reservation rejected - over capacity",
                extra={
                    "room_id": str(room.id),
                    "reservation_id": str(reservation_id),
                    "occupant_count": occupant_count,
                    "room_capacity": room.capacity
                }
            )
            raise RoomCapacityExceededError(str(room.id), occupant_count, room.capacity)

        self.purge_expired(room)

        conflict = self.find_conflict(room, check_in, check_out)
        if conflict is not None:
            metrics_collector.record_room_conflict()
            logger.warning(
                "Room reservation rejected - overlapping interval",
                extra={
                    "room_id": str(room.id),
                    "reservation_id": str(reservation_id),
                    "check_in": check_in.isoformat(),
                    "check_out": check_out.isoformat(),
                    "conflicting_reservation_id": str(conflict.reservation_id)
                }
            )
            raise RoomConflictError(
                room_id=str(room.id),
                check_in=check_in,
                check_out=check_out,
                conflicting_reservation_id=str(conflict.reservation_id)
            )

        interval = RoomInterval(
            room_id=room.id,
            reservation_id=reservation_id,
            check_in=check_in,
            check_out=check_out,
            occupant_count=occupant_count
        )
        position = bisect.bisect_right([i.check_in for i in room.intervals], check_in)
        room.intervals.insert(position, interval)
        self._touch(room)

        logger.info(
            "Room interval reserved",
            extra={
                "room_id": str(room.id),
                "reservation_id": str(reservation_id),
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "occupant_count": occupant_count
            }
        )
        return interval

    def release(self, room: Room, reservation_id: UUID) -> int:
        """
        Remove every interval ``reservation_id`` holds on the room.

        Returns:
            Number of intervals removed
        """
        owned = [i for i in room.intervals if i.reservation_id == reservation_id]
        for interval in owned:
            room.intervals.remove(interval)

        if owned:
            self._touch(room)
            logger.info(
                "Room intervals released",
                extra={
                    "room_id": str(room.id),
                    "reservation_id": str(reservation_id),
                    "released_count": len(owned)
                }
            )
        return len(owned)

    def purge_expired(self, room: Room) -> int:
        """
        Drop intervals whose check-out day has passed.

        Returns:
            Number of intervals removed
        """
        today = self.clock.today()
        expired = [i for i in room.intervals if is_expired(i, today)]
        for interval in expired:
            room.intervals.remove(interval)

        if expired:
            self._touch(room)
            metrics_collector.record_intervals_purged(len(expired))
            logger.debug(
                "Expired room intervals purged",
                extra={"room_id": str(room.id), "purged_count": len(expired)}
            )
        else:
            self.refresh_occupancy(room)
        return len(expired)

    def refresh_occupancy(self, room: Room) -> bool:
        """Recompute ``is_occupied`` from the interval set; returns the new value."""
        occupied = is_occupied_on(room.intervals, self.clock.today())
        if room.is_occupied != occupied:
            room.is_occupied = occupied
        return occupied

    def _touch(self, room: Room) -> None:
        # Interval changes must bump the room version even when occupancy is unchanged
        self.refresh_occupancy(room)
        flag_modified(room, "is_occupied")

    async def list_available_rooms(
        self,
        accommodation_id: UUID,
        check_in: date,
        check_out: date,
        min_capacity: int = 1,
    ) -> list[Room]:
        """
        Rooms of an accommodation that are free over the range and hold
        at least ``min_capacity`` occupants.

        Raises:
            NotFoundError: If accommodation not found
            ValidationError: If check_in is not before check_out or the stay has ended
        """
        _validate_stay(check_in, check_out, self.clock.today())

        stmt = (
            select(Accommodation)
            .options(selectinload(Accommodation.rooms).selectinload(Room.intervals))
            .where(Accommodation.id == accommodation_id)
        )
        result = await self.db.execute(stmt)
        accommodation = result.scalar_one_or_none()
        if not accommodation:
            raise NotFoundError(resource_type="accommodation", resource_id=str(accommodation_id))

        rooms = [
            room for room in accommodation.rooms
            if room.capacity >= min_capacity and self.find_conflict(room, check_in, check_out) is None
        ]

        logger.info(
            "Available rooms listed",
            extra={
                "accommodation_id": str(accommodation_id),
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "min_capacity": min_capacity,
                "available_count": len(rooms),
                "total_rooms": len(accommodation.rooms)
            }
        )
        return rooms
