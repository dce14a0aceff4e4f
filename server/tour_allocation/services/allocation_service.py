"""Allocation coordinator: creates reservations across tour seats and rooms."""

import logging
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, system_clock
from ..core.concurrency import run_with_retry
from ..core.config import settings
from ..core.exceptions import NotFoundError, ReservationClosedError, TourUnavailableError
from ..core.locks import LockKey, lock_registry
from ..core.observability import metrics_collector
from ..models.reservation import Reservation, ReservationStatus
from ..models.tour import Tour, TourStatus
from ..schemas.reservation import AssignRoomRequest, CreateReservationRequest
from . import capacity_service
from .pricing import TierPrices, compute_total
from .reservation_service import ReservationService, generate_reservation_code, make_participants
from .room_ledger import RoomLedgerService
from .tour_service import TourService

logger = logging.getLogger(__name__)


class AllocationService:
    """
    Coordinates a reservation's pricing, seat commit and room intervals.

    Every operation runs in one database transaction under the entity locks
    of the tour and rooms involved; any failure rolls the whole call back.
    """

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.tour_service = TourService(db)
        self.ledger = RoomLedgerService(db, clock)
        self.reservation_service = ReservationService(db, clock)

    def _check_bookable(self, tour: Tour) -> None:
        if tour.status != TourStatus.ACTIVE:
            raise TourUnavailableError(str(tour.id), f"tour is {TourStatus(tour.status).value}")
        if settings.enforce_start_date_gating and tour.start_date <= self.clock.today():
            raise TourUnavailableError(str(tour.id), "tour has already started")

    async def create_reservation(self, request: CreateReservationRequest) -> Reservation:
        """
        Create a reservation, optionally confirming it and reserving rooms.

        Args:
            request: Reservation creation request

        Returns:
            Created reservation with participants and room assignments

        Raises:
            NotFoundError: If the tour or a room is not found
            TourUnavailableError: If the tour is not active or has started
            CapacityExceededError: If auto-confirming and the tour is full
            RoomCapacityExceededError: If a room is too small
            RoomConflictError: If a room is taken over the requested dates
            LockTimeoutError: If the locks are not acquired in time
        """
        room_ids = {room_request.room_id for room_request in request.room_requests}
        keys = [LockKey.tour(request.tour_id), *(LockKey.room(r) for r in room_ids)]

        async with lock_registry.acquire(*keys):
            reservation_id = await run_with_retry(
                self.db,
                lambda: self._create_reservation(request),
                name="create_reservation"
            )

        return await self.reservation_service.get_reservation_or_raise(reservation_id)

    async def _create_reservation(self, request: CreateReservationRequest) -> UUID:
        tour = await self.tour_service.get_tour_with_lock(request.tour_id)
        try:
            self._check_bookable(tour)
        except TourUnavailableError:
            logger.warning(
                "Reservation rejected - tour unavailable",
                extra={
                    "tour_id": str(tour.id),
                    "tour_status": tour.status,
                    "start_date": tour.start_date.isoformat(),
                    "customer_ref": request.customer_ref
                }
            )
            raise

        # Rooms are locked in ascending id order after the tour
        rooms = {}
        for room_id in sorted({r.room_id for r in request.room_requests}, key=str):
            rooms[room_id] = await self.ledger.get_room_or_raise(room_id, for_update=True)

        prices = TierPrices.from_tour(tour)
        breakdown = compute_total((p.age for p in request.participants), prices)
        count = len(request.participants)

        reservation = Reservation(
            id=uuid4(),
            code=generate_reservation_code(),
            customer_ref=request.customer_ref,
            tour_id=tour.id,
            status=ReservationStatus.INTERESTED,
            total_participants=count,
            capacity_committed=0,
            subtotal=breakdown.subtotal,
            taxes=breakdown.taxes,
            total=breakdown.total,
            currency=tour.currency,
            special_requests=request.special_requests,
            participants=make_participants(request.participants, prices)
        )

        if request.auto_confirm:
            capacity_service.try_commit(tour, count)
            reservation.status = ReservationStatus.CONFIRMED
            reservation.capacity_committed = count
            reservation.confirmed_at = self.clock.now()
            reservation.status_updated_at = reservation.confirmed_at

        self.db.add(reservation)
        await self.db.flush()

        for room_request in request.room_requests:
            self.ledger.reserve(
                rooms[room_request.room_id],
                room_request.check_in,
                room_request.check_out,
                reservation.id,
                room_request.occupant_count or count
            )

        await self.db.commit()

        metrics_collector.record_reservation_created(ReservationStatus(reservation.status).value)
        metrics_collector.set_tour_utilization(str(tour.id), tour.current_participants, tour.max_participants)
        logger.info(
            "Reservation created successfully",
            extra={
                "reservation_id": str(reservation.id),
                "code": reservation.code,
                "tour_id": str(tour.id),
                "customer_ref": request.customer_ref,
                "status": ReservationStatus(reservation.status).value,
                "participants": count,
                "rooms": len(request.room_requests),
                "total": reservation.total,
                "tour_participants": f"{tour.current_participants}/{tour.max_participants}"
            }
        )
        return reservation.id

    async def assign_room(self, request: AssignRoomRequest) -> Reservation:
        """
        Reserve one more room interval for an existing reservation.

        Raises:
            NotFoundError: If the reservation or room is not found
            ReservationClosedError: If the reservation is completed or cancelled
            RoomCapacityExceededError: If the room is too small
            RoomConflictError: If the room is taken over the requested dates
        """
        async def operation() -> None:
            reservation = await self.reservation_service.get_reservation_or_raise(request.reservation_id)
            status = ReservationStatus(reservation.status)
            if status.is_terminal:
                raise ReservationClosedError(str(reservation.id), status.value, "assign a room")

            room = await self.ledger.get_room_or_raise(request.room_id, for_update=True)
            self.ledger.reserve(
                room,
                request.check_in,
                request.check_out,
                reservation.id,
                request.occupant_count or reservation.total_participants
            )
            await self.db.commit()

        async with self.reservation_service.locked(request.reservation_id, request.room_id):
            await run_with_retry(self.db, operation, name="assign_room")
        return await self.reservation_service.get_reservation_or_raise(request.reservation_id)

    async def release_room(self, reservation_id: UUID, room_id: UUID) -> Reservation:
        """
        Release every interval a reservation holds on a room.

        Raises:
            NotFoundError: If the reservation, the room, or an assignment of
                the room to the reservation is not found
        """
        async def operation() -> None:
            await self.reservation_service.get_reservation_or_raise(reservation_id)
            room = await self.ledger.get_room_or_raise(room_id, for_update=True)
            if not self.ledger.release(room, reservation_id):
                raise NotFoundError(
                    resource_type="room assignment",
                    detail=f"Reservation {reservation_id} holds no interval on room {room_id}"
                )
            await self.db.commit()

        async with self.reservation_service.locked(reservation_id, room_id):
            await run_with_retry(self.db, operation, name="release_room")
        return await self.reservation_service.get_reservation_or_raise(reservation_id)
