"""Tour router for tour management operations."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession
from ..schemas.tour import (
    AdjustCapacityRequest,
    CapacityAdjustment,
    CreateTourRequest,
    GetTourRequest,
    SetTourStatusRequest,
    Tour,
)
from ..services.capacity_service import CapacityService
from ..services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tour", tags=["tour"])


def _tour_response(tour_model) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=Tour.model_validate(tour_model).model_dump(mode="json")
    )


@router.post("/create", response_model=Tour)
async def create_tour(
    request: CreateTourRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """
    Create a new tour.

    Repeating a request with the same slug, name and description returns
    the existing tour.
    """
    tour_service = TourService(db)

    existing_tour = await tour_service.get_tour_by_slug(request.slug)
    if existing_tour and existing_tour.name == request.name and existing_tour.description == request.description:
        logger.info(
            "Tour creation - returning existing tour (idempotent)",
            extra={
                "tour_id": str(existing_tour.id),
                "slug": request.slug
            }
        )
        return _tour_response(existing_tour)

    tour = await tour_service.create_tour(request)
    return _tour_response(tour)


@router.post("/get", response_model=Tour)
async def get_tour(
    request: GetTourRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get a tour with its current seat counter."""
    tour = await TourService(db).get_tour_by_id_or_raise(request.tour_id)
    return _tour_response(tour)


@router.post("/set-status", response_model=Tour)
async def set_tour_status(
    request: SetTourStatusRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Open or close a tour for new reservations."""
    tour = await TourService(db).set_tour_status(request.tour_id, request.status)
    return _tour_response(tour)


@router.post("/adjust-capacity", response_model=CapacityAdjustment)
async def adjust_capacity(
    request: AdjustCapacityRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Change a tour's maximum participants."""
    adjustment = await CapacityService(db).adjust_capacity(request)
    return JSONResponse(
        status_code=200,
        content=CapacityAdjustment.model_validate(adjustment).model_dump(mode="json")
    )


@router.post("/adjustments", response_model=list[CapacityAdjustment])
async def list_capacity_adjustments(
    request: GetTourRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """List a tour's capacity adjustments, newest first."""
    await TourService(db).get_tour_by_id_or_raise(request.tour_id)
    adjustments = await CapacityService(db).get_adjustments_for_tour(request.tour_id)
    return JSONResponse(
        status_code=200,
        content=[CapacityAdjustment.model_validate(a).model_dump(mode="json") for a in adjustments]
    )
