"""FastAPI dependencies for database sessions and the clock."""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .clock import Clock, system_clock
from .database import get_async_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async for session in get_async_session():
        yield session


def get_clock() -> Clock:
    """Clock used for gating and interval expiry; tests override it."""
    return system_clock


# Common dependency combinations
DatabaseSession = Depends(get_db)
CurrentClock = Depends(get_clock)
