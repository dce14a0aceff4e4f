"""Metrics endpoint for Prometheus scraping."""

from fastapi import APIRouter, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession
from ..core.observability import get_prometheus_metrics, metrics_collector
from ..models.tour import Tour, TourStatus

router = APIRouter()


@router.get(
    "/metrics",
    summary="Prometheus Metrics",
    description="Endpoint for Prometheus to scrape metrics",
    response_class=Response,
    tags=["Observability"]
)
async def metrics(db: AsyncSession = DatabaseSession):
    """
    Return Prometheus metrics.

    Seat utilisation of every active tour is refreshed from the database
    before the registry is rendered.
    """
    result = await db.execute(
        select(Tour.id, Tour.current_participants, Tour.max_participants)
        .where(Tour.status == TourStatus.ACTIVE)
    )
    for tour_id, current, maximum in result:
        metrics_collector.set_tour_utilization(str(tour_id), current, maximum)

    return Response(
        content=get_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )
