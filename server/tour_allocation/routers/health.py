"""Health check router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.clock import Clock
from ..core.config import settings
from ..core.dependencies import CurrentClock
from ..core.observability import SERVICE_NAME
from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])


@router.post("/ping", response_model=HealthResponse)
async def health_ping(clock: Clock = CurrentClock) -> JSONResponse:
    """
    Health check endpoint.

    Reports the service clock, whose date decides tour start gating and
    which room intervals have expired.
    """
    now = clock.now()
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        service=SERVICE_NAME,
        environment=settings.environment,
        timestamp=now,
        business_date=now.date()
    )

    logger.debug(
        "Health check requested",
        extra={
            "status": response_data.status,
            "business_date": response_data.business_date.isoformat()
        }
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
