"""Unit tests for entity locks and optimistic retries."""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from tour_allocation.core.concurrency import run_with_retry
from tour_allocation.core.exceptions import LockTimeoutError, PersistenceError, ServiceBusyError
from tour_allocation.core.locks import EntityLockRegistry, LockKey


class FakeSession:
    """Records rollbacks."""

    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


class TestLockKey:
    """Test lock ordering."""

    def test_tours_sort_before_rooms(self):
        keys = [LockKey.room("a"), LockKey.tour("z"), LockKey.room("0"), LockKey.tour("b")]
        ordered = sorted(keys, key=lambda k: k.sort_key)
        assert [str(k) for k in ordered] == ["tour:b", "tour:z", "room:0", "room:a"]


class TestEntityLockRegistry:
    """Test acquiring entity locks."""

    @pytest.mark.asyncio
    async def test_locks_held_inside_block_and_released_after(self):
        registry = EntityLockRegistry()
        tour, room = LockKey.tour("t1"), LockKey.room("r1")

        async with registry.acquire(room, tour):
            assert registry.is_locked(tour)
            assert registry.is_locked(room)

        assert not registry.is_locked(tour)
        assert not registry.is_locked(room)

    @pytest.mark.asyncio
    async def test_timeout_releases_partial_locks(self):
        registry = EntityLockRegistry()
        tour, room = LockKey.tour("t1"), LockKey.room("r1")
        holder_ready = asyncio.Event()
        release_holder = asyncio.Event()

        async def holder():
            async with registry.acquire(room):
                holder_ready.set()
                await release_holder.wait()

        task = asyncio.create_task(holder())
        await holder_ready.wait()

        with pytest.raises(LockTimeoutError) as exc_info:
            async with registry.acquire(tour, room, timeout=0.05):
                pass

        assert exc_info.value.problem_details["code"] == "TIMEOUT"
        assert exc_info.value.problem_details["retryable"] is True
        # The tour lock taken before the timeout is given back
        assert not registry.is_locked(tour)

        release_holder.set()
        await task

    @pytest.mark.asyncio
    async def test_waiters_are_serialised(self):
        registry = EntityLockRegistry()
        key = LockKey.tour("t1")
        inside = 0
        peak = 0

        async def worker():
            nonlocal inside, peak
            async with registry.acquire(key):
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert peak == 1


class TestRunWithRetry:
    """Test the optimistic retry loop."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        db = FakeSession()

        async def operation():
            return 42

        assert await run_with_retry(db, operation, name="answer") == 42
        assert db.rollbacks == 0

    @pytest.mark.asyncio
    async def test_retries_stale_data_then_succeeds(self):
        db = FakeSession()
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("version mismatch")
            return "done"

        assert await run_with_retry(db, operation, name="flaky", attempts=3) == "done"
        assert len(calls) == 3
        assert db.rollbacks == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_busy(self):
        db = FakeSession()

        async def operation():
            raise StaleDataError("version mismatch")

        with pytest.raises(ServiceBusyError) as exc_info:
            await run_with_retry(db, operation, name="hot_tour", attempts=2)

        assert db.rollbacks == 2
        assert exc_info.value.status_code == 503
        assert exc_info.value.problem_details["code"] == "BUSY"

    @pytest.mark.asyncio
    async def test_database_failure_becomes_persistence_error(self):
        db = FakeSession()

        async def operation():
            raise OperationalError("UPDATE tours", {}, Exception("disk I/O error"))

        with pytest.raises(PersistenceError):
            await run_with_retry(db, operation, name="write")
        assert db.rollbacks == 1

    @pytest.mark.asyncio
    async def test_integrity_error_propagates(self):
        db = FakeSession()

        async def operation():
            raise IntegrityError("INSERT INTO rooms", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            await run_with_retry(db, operation, name="insert")
        assert db.rollbacks == 1

    @pytest.mark.asyncio
    async def test_business_errors_are_not_retried(self):
        db = FakeSession()
        calls = []

        async def operation():
            calls.append(1)
            raise ValueError("rejected")

        with pytest.raises(ValueError):
            await run_with_retry(db, operation, name="reject")
        assert len(calls) == 1
        assert db.rollbacks == 1
