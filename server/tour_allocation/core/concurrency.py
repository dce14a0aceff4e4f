"""Optimistic concurrency retry and persistence failure handling."""

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from .config import settings
from .exceptions import PersistenceError, ServiceBusyError
from .observability import metrics_collector

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_retry(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    attempts: int | None = None,
) -> T:
    """
    Run ``operation`` and re-run it on optimistic version conflicts.

    ``operation`` must load everything it needs from ``db`` itself, so each
    attempt is evaluated against fresh state: the rollback after a conflict
    expires every instance in the session. Business rejections raised by the
    operation propagate untouched after the session is rolled back.

    Args:
        db: Session the operation works in
        operation: Zero-argument coroutine function performing one attempt
        name: Operation name used in logs and errors
        attempts: Maximum attempts (defaults to ``settings.max_conflict_retries``)

    Raises:
        ServiceBusyError: If every attempt hit a version conflict
        PersistenceError: If the database itself failed
    """
    if attempts is None:
        attempts = settings.max_conflict_retries

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except StaleDataError as e:
            await db.rollback()
            metrics_collector.record_concurrency_retry(name)
            logger.warning(
                "Concurrent modification detected, retrying",
                extra={
                    "operation": name,
                    "attempt": attempt,
                    "max_attempts": attempts,
                    "error": str(e),
                }
            )
        except IntegrityError:
            await db.rollback()
            raise
        except DBAPIError as e:
            await db.rollback()
            logger.error(
                "Persistence failure",
                extra={"operation": name, "error": str(e)},
                exc_info=True,
            )
            raise PersistenceError(name) from e
        except Exception:
            await db.rollback()
            raise

    logger.error(
        "Concurrent modification retries exhausted",
        extra={"operation": name, "attempts": attempts}
    )
    raise ServiceBusyError(name, attempts)
