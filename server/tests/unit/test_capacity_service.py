"""Unit tests for the capacity accountant."""

from uuid import uuid4

import pytest

from tour_allocation.core.config import settings
from tour_allocation.core.exceptions import (
    CapacityExceededError,
    InvariantViolationError,
    NotFoundError,
)
from tour_allocation.models.tour import Tour
from tour_allocation.schemas.tour import AdjustCapacityRequest
from tour_allocation.services import capacity_service
from tour_allocation.services.capacity_service import CapacityConflictError, CapacityService


def _tour(current=0, maximum=10):
    return Tour(id=uuid4(), current_participants=current, max_participants=maximum)


class TestTryCommit:
    """Test committing seats."""

    def test_commit_within_capacity(self):
        tour = _tour(current=3, maximum=10)
        capacity_service.try_commit(tour, 7)
        assert tour.current_participants == 10

    def test_commit_over_capacity_leaves_tour_unchanged(self):
        tour = _tour(current=8, maximum=10)

        with pytest.raises(CapacityExceededError) as exc_info:
            capacity_service.try_commit(tour, 3)

        assert tour.current_participants == 8
        assert exc_info.value.available == 2
        assert exc_info.value.problem_details["code"] == "CAPACITY_EXCEEDED"

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError):
            capacity_service.try_commit(_tour(), -1)


class TestRelease:
    """Test releasing seats."""

    def test_release(self):
        tour = _tour(current=5)
        capacity_service.release(tour, 3)
        assert tour.current_participants == 2

    def test_release_below_zero_raises_when_strict(self, monkeypatch):
        monkeypatch.setattr(settings, "strict_invariants", True)
        tour = _tour(current=1)

        with pytest.raises(InvariantViolationError):
            capacity_service.release(tour, 2)
        assert tour.current_participants == 1

    def test_release_below_zero_clamps_when_lenient(self, monkeypatch):
        monkeypatch.setattr(settings, "strict_invariants", False)
        tour = _tour(current=1)

        capacity_service.release(tour, 2)
        assert tour.current_participants == 0


class TestAdjustCapacity:
    """Test capacity adjustments with audit records."""

    @pytest.mark.asyncio
    async def test_increase_capacity(self, test_session, make_tour):
        tour = await make_tour(max_participants=10)

        adjustment = await CapacityService(test_session).adjust_capacity(
            AdjustCapacityRequest(tour_id=tour.id, delta=5, reason="Extra coach", actor="ops@example.com")
        )

        assert adjustment.max_participants_before == 10
        assert adjustment.max_participants_after == 15
        await test_session.refresh(tour)
        assert tour.max_participants == 15

    @pytest.mark.asyncio
    async def test_cannot_drop_below_committed_seats(self, test_session, make_tour, make_reservation):
        tour = await make_tour(max_participants=10)
        await make_reservation(tour=tour, ages=(30, 31, 32, 33), auto_confirm=True)

        with pytest.raises(CapacityConflictError):
            await CapacityService(test_session).adjust_capacity(
                AdjustCapacityRequest(tour_id=tour.id, delta=-7, reason="Smaller coach", actor="ops@example.com")
            )

        await test_session.refresh(tour)
        assert tour.max_participants == 10
        assert tour.current_participants == 4

    @pytest.mark.asyncio
    async def test_can_drop_to_committed_seats(self, test_session, make_tour, make_reservation):
        tour = await make_tour(max_participants=10)
        await make_reservation(tour=tour, ages=(30, 31, 32, 33), auto_confirm=True)

        adjustment = await CapacityService(test_session).adjust_capacity(
            AdjustCapacityRequest(tour_id=tour.id, delta=-6, reason="Smaller coach", actor="ops@example.com")
        )

        assert adjustment.max_participants_after == 4
        assert adjustment.current_participants == 4

    @pytest.mark.asyncio
    async def test_zero_delta_rejected(self, test_session, make_tour):
        tour = await make_tour()

        with pytest.raises(CapacityConflictError):
            await CapacityService(test_session).adjust_capacity(
                AdjustCapacityRequest(tour_id=tour.id, delta=0, reason="No-op", actor="ops@example.com")
            )

    @pytest.mark.asyncio
    async def test_unknown_tour(self, test_session):
        with pytest.raises(NotFoundError):
            await CapacityService(test_session).adjust_capacity(
                AdjustCapacityRequest(tour_id=uuid4(), delta=1, reason="Extra coach", actor="ops@example.com")
            )

    @pytest.mark.asyncio
    async def test_adjustments_listed(self, test_session, make_tour):
        tour = await make_tour(max_participants=10)
        service = CapacityService(test_session)

        await service.adjust_capacity(
            AdjustCapacityRequest(tour_id=tour.id, delta=2, reason="First", actor="ops@example.com")
        )
        await service.adjust_capacity(
            AdjustCapacityRequest(tour_id=tour.id, delta=3, reason="Second", actor="ops@example.com")
        )

        adjustments = await service.get_adjustments_for_tour(tour.id)
        assert sorted(a.delta for a in adjustments) == [2, 3]
