"""Background worker for purging expired room intervals."""

import functools
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.clock import Clock, system_clock
from ..core.concurrency import run_with_retry
from ..core.database import async_session_factory
from ..core.locks import LockKey, lock_registry
from ..core.observability import get_logger
from ..models.accommodation import Room, RoomInterval
from ..services.room_ledger import RoomLedgerService
from .base import BaseWorker


class IntervalPurgeWorker(BaseWorker):
    """
    Background worker that removes room intervals whose check-out day
    has passed and refreshes room occupancy.

    Each room is swept in its own transaction under its entity lock, so the
    worker never races a reservation touching the same room.
    """

    def __init__(
        self,
        interval_seconds: int = 3600,
        session_factory: async_sessionmaker = async_session_factory,
        clock: Clock = system_clock,
    ):
        """
        Initialize the interval purge worker.

        Args:
            interval_seconds: How often to sweep (default: hourly)
            session_factory: Factory for the sessions the worker uses
            clock: Clock deciding which intervals have expired
        """
        super().__init__(name="IntervalPurge", interval_seconds=interval_seconds)
        self.session_factory = session_factory
        self.clock = clock
        self.log = get_logger(__name__).with_context(worker=self.name)

    async def process(self) -> None:
        """Purge expired intervals."""
        purged = await self.sweep()
        if purged > 0:
            self.log.info(
                "Purged expired room intervals",
                purged_count=purged,
                today=self.clock.today().isoformat()
            )

    async def sweep(self) -> int:
        """
        Sweep every room that has expired intervals or may have changed
        occupancy today.

        Returns:
            Number of intervals removed
        """
        purged = 0
        async with self.session_factory() as db:
            ledger = RoomLedgerService(db, self.clock)
            for room_id in await self._rooms_to_sweep(db):
                async with lock_registry.acquire(LockKey.room(room_id)):
                    purged += await run_with_retry(
                        db,
                        functools.partial(self._sweep_room, db, ledger, room_id),
                        name="purge_room_intervals"
                    )
        return purged

    async def _rooms_to_sweep(self, db: AsyncSession) -> list[UUID]:
        today = self.clock.today()

        expired = await db.execute(
            select(RoomInterval.room_id).where(RoomInterval.check_out < today).distinct()
        )
        covering_today = await db.execute(
            select(RoomInterval.room_id)
            .where(RoomInterval.check_in <= today, RoomInterval.check_out > today)
            .distinct()
        )
        flagged = await db.execute(select(Room.id).where(Room.is_occupied.is_(True)))

        room_ids = set(expired.scalars()) | set(covering_today.scalars()) | set(flagged.scalars())
        await db.rollback()
        return sorted(room_ids, key=str)

    async def _sweep_room(self, db: AsyncSession, ledger: RoomLedgerService, room_id: UUID) -> int:
        room = await ledger.get_room_or_raise(room_id, for_update=True)
        removed = ledger.purge_expired(room)
        await db.commit()
        return removed
