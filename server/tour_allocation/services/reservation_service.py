"""Reservation state machine and participant management."""

import logging
import secrets
import string
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.clock import Clock, system_clock
from ..core.concurrency import run_with_retry
from ..core.config import settings
from ..core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ReservationClosedError,
    ServiceBusyError,
    ValidationError,
)
from ..core.locks import LockKey, lock_registry
from ..core.observability import metrics_collector
from ..models.accommodation import RoomInterval
from ..models.reservation import (
    Participant,
    ParticipantType,
    Reservation,
    ReservationStatus,
    normalize_status,
)
from ..models.tour import Tour
from ..schemas.reservation import ParticipantIn
from . import capacity_service
from .pricing import TierPrices, classify, compute_total, participant_price
from .room_ledger import RoomLedgerService
from .tour_service import TourService

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.INTERESTED: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.PAID, ReservationStatus.CANCELLED}),
    ReservationStatus.PAID: frozenset({ReservationStatus.COMPLETED}),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}


def validate_transition(reservation_id: UUID, current: ReservationStatus, requested: ReservationStatus) -> None:
    """
    Raises:
        InvalidTransitionError: If ``current -> requested`` is not allowed,
            including same-state transitions
    """
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            reservation_id=str(reservation_id),
            current_status=current.value,
            requested_status=requested.value
        )


def generate_reservation_code(length: int = 8) -> str:
    """Generate a random reservation reference code."""
    alphabet = string.ascii_uppercase + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def make_participants(
    participants: Iterable[ParticipantIn],
    prices: TierPrices,
    start_position: int = 0,
) -> list[Participant]:
    """
    Build participant rows with their derived price category and amount.

    The participant at position 0 is the reservation's primary contact.
    """
    rows = []
    for offset, person in enumerate(participants):
        position = start_position + offset
        rows.append(Participant(
            position=position,
            name=person.name,
            age=person.age,
            relationship_tag=person.relationship,
            participant_type=ParticipantType.PRIMARY if position == 0 else ParticipantType.FAMILY,
            price_category=classify(person.age),
            price_amount=participant_price(person.age, prices)
        ))
    return rows


class ReservationService:
    """Service for reservation lifecycle operations."""

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.tour_service = TourService(db)
        self.ledger = RoomLedgerService(db, clock)

    async def get_reservation_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Get a reservation with participants and room intervals, or None."""
        stmt = (
            select(Reservation)
            .options(
                selectinload(Reservation.participants),
                selectinload(Reservation.room_intervals)
            )
            .where(Reservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_reservation_or_raise(self, reservation_id: UUID) -> Reservation:
        """
        Get a reservation or raise NotFoundError.

        Raises:
            NotFoundError: If reservation not found
        """
        reservation = await self.get_reservation_by_id(reservation_id)
        if not reservation:
            logger.warning(
                "Reservation not found",
                extra={"reservation_id": str(reservation_id)}
            )
            raise NotFoundError(
                resource_type="reservation",
                resource_id=str(reservation_id)
            )
        return reservation

    async def _lock_targets(self, reservation_id: UUID) -> tuple[UUID, frozenset[UUID]]:
        tour_id = (await self.db.execute(
            select(Reservation.tour_id).where(Reservation.id == reservation_id)
        )).scalar_one_or_none()
        if tour_id is None:
            raise NotFoundError(resource_type="reservation", resource_id=str(reservation_id))

        room_ids = (await self.db.execute(
            select(RoomInterval.room_id).where(RoomInterval.reservation_id == reservation_id)
        )).scalars()
        return tour_id, frozenset(room_ids)

    @asynccontextmanager
    async def locked(self, reservation_id: UUID, *extra_rooms: UUID) -> AsyncIterator[None]:
        """
        Hold the entity locks of a reservation: its tour, then its rooms.

        The room set is read before locking; if it changed by the time the
        locks are held, they are released and taken again.

        Raises:
            NotFoundError: If reservation not found
            LockTimeoutError: If the locks are not acquired in time
        """
        for _ in range(settings.max_conflict_retries):
            tour_id, room_ids = await self._lock_targets(reservation_id)
            keys = [LockKey.tour(tour_id), *(LockKey.room(r) for r in room_ids | set(extra_rooms))]
            async with lock_registry.acquire(*keys):
                _, current_rooms = await self._lock_targets(reservation_id)
                if current_rooms <= room_ids:
                    yield
                    return
        raise ServiceBusyError("lock reservation", settings.max_conflict_retries)

    async def transition(
        self,
        reservation_id: UUID,
        new_status: "ReservationStatus | str",
        reason: Optional[str] = None,
    ) -> Reservation:
        """
        Move a reservation to ``new_status`` and apply its side effects.

        Confirming commits the reservation's seats on the tour; cancelling
        releases committed seats and every room interval. Legacy status
        names are accepted.

        Args:
            reservation_id: Reservation to update
            new_status: Target status
            reason: Recorded when cancelling

        Returns:
            Updated reservation

        Raises:
            NotFoundError: If reservation not found
            ValidationError: If the status name is unknown
            InvalidTransitionError: If the transition is not allowed
            CapacityExceededError: If confirming and the tour is full
        """
        try:
            target = normalize_status(new_status)
        except ValueError as e:
            raise ValidationError(
                detail=f"Unknown reservation status '{new_status}'",
                errors={"status": str(new_status)}
            ) from e

        async with self.locked(reservation_id):
            await run_with_retry(
                self.db,
                lambda: self._transition(reservation_id, target, reason),
                name="transition_reservation"
            )
        return await self.get_reservation_or_raise(reservation_id)

    async def cancel_reservation(self, reservation_id: UUID, reason: Optional[str] = None) -> Reservation:
        """Cancel a reservation, recording ``reason``."""
        return await self.transition(reservation_id, ReservationStatus.CANCELLED, reason)

    async def _transition(self, reservation_id: UUID, target: ReservationStatus, reason: Optional[str]) -> None:
        reservation = await self.get_reservation_or_raise(reservation_id)
        current = ReservationStatus(reservation.status)

        try:
            validate_transition(reservation_id, current, target)
        except InvalidTransitionError:
            logger.warning(
                "Reservation transition rejected",
                extra={
                    "reservation_id": str(reservation_id),
                    "from_status": current.value,
                    "to_status": target.value
                }
            )
            raise

        tour = await self.tour_service.get_tour_with_lock(reservation.tour_id)
        now = self.clock.now()

        if target == ReservationStatus.CONFIRMED:
            if reservation.capacity_committed == 0:
                capacity_service.try_commit(tour, reservation.total_participants)
                reservation.capacity_committed = reservation.total_participants
            reservation.confirmed_at = now
        elif target == ReservationStatus.CANCELLED:
            await self._compensate(reservation, tour)
            reservation.cancelled_at = now
            reservation.cancellation_reason = reason

        reservation.status = target
        reservation.status_updated_at = now

        await self.db.commit()

        metrics_collector.record_transition(current.value, target.value)
        metrics_collector.set_tour_utilization(str(tour.id), tour.current_participants, tour.max_participants)
        logger.info(
            "Reservation status changed",
            extra={
                "reservation_id": str(reservation_id),
                "tour_id": str(tour.id),
                "from_status": current.value,
                "to_status": target.value,
                "capacity_committed": reservation.capacity_committed,
                "tour_participants": f"{tour.current_participants}/{tour.max_participants}"
            }
        )

    async def _compensate(self, reservation: Reservation, tour: Tour) -> None:
        """Give back the reservation's committed seats and room intervals."""
        if reservation.capacity_committed:
            capacity_service.release(tour, reservation.capacity_committed)
            reservation.capacity_committed = 0

        for room_id in sorted({i.room_id for i in reservation.room_intervals}, key=str):
            room = await self.ledger.get_room_or_raise(room_id, for_update=True)
            self.ledger.release(room, reservation.id)

    async def add_participants(self, reservation_id: UUID, participants: Sequence[ParticipantIn]) -> Reservation:
        """
        Append participants to a reservation.

        If the reservation holds committed seats, only the new participants
        are committed. Their price is added to the stored totals. On any
        failure the reservation is unchanged.

        Returns:
            Updated reservation

        Raises:
            NotFoundError: If reservation not found
            ValidationError: If no participants are given
            ReservationClosedError: If the reservation is completed or cancelled
            CapacityExceededError: If committing the new seats overflows the tour
        """
        if not participants:
            raise ValidationError(detail="At least one participant is required")

        async with self.locked(reservation_id):
            await run_with_retry(
                self.db,
                lambda: self._add_participants(reservation_id, participants),
                name="add_participants"
            )
        return await self.get_reservation_or_raise(reservation_id)

    async def _add_participants(self, reservation_id: UUID, participants: Sequence[ParticipantIn]) -> None:
        reservation = await self.get_reservation_or_raise(reservation_id)
        status = ReservationStatus(reservation.status)
        if status.is_terminal:
            raise ReservationClosedError(str(reservation_id), status.value, "add participants")

        tour = await self.tour_service.get_tour_with_lock(reservation.tour_id)
        prices = TierPrices.from_tour(tour)
        added = len(participants)

        if reservation.capacity_committed:
            capacity_service.try_commit(tour, added)
            reservation.capacity_committed += added

        breakdown = compute_total((p.age for p in participants), prices)
        reservation.participants.extend(
            make_participants(participants, prices, start_position=len(reservation.participants))
        )
        reservation.total_participants += added
        reservation.subtotal += breakdown.subtotal
        reservation.taxes += breakdown.taxes
        reservation.total += breakdown.total

        await self.db.commit()

        logger.info(
            "Participants added to reservation",
            extra={
                "reservation_id": str(reservation_id),
                "added": added,
                "total_participants": reservation.total_participants,
                "added_total": breakdown.total,
                "reservation_total": reservation.total
            }
        )

    async def delete_reservation(self, reservation_id: UUID) -> None:
        """
        Delete a reservation after giving back its seats and room intervals.

        Raises:
            NotFoundError: If reservation not found
        """
        async def operation() -> None:
            reservation = await self.get_reservation_or_raise(reservation_id)
            tour = await self.tour_service.get_tour_with_lock(reservation.tour_id)
            released = reservation.capacity_committed
            await self._compensate(reservation, tour)
            # Released intervals go before the row they reference
            await self.db.flush()
            await self.db.delete(reservation)
            await self.db.commit()

            metrics_collector.set_tour_utilization(str(tour.id), tour.current_participants, tour.max_participants)
            logger.info(
                "Reservation deleted",
                extra={
                    "reservation_id": str(reservation_id),
                    "tour_id": str(tour.id),
                    "released_seats": released
                }
            )

        async with self.locked(reservation_id):
            await run_with_retry(self.db, operation, name="delete_reservation")
