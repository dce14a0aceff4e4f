"""Tour-related Pydantic schemas."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..models.tour import TourStatus


class TierPrices(BaseModel):
    """Per-person prices in minor units; senior falls back to adult when absent."""

    adult: int = Field(..., ge=0, description="Adult price (18-59)")
    child: int = Field(..., ge=0, description="Child price (5-17)")
    senior: Optional[int] = Field(None, ge=0, description="Senior price (60+)")


class CreateTourRequest(BaseModel):
    """Request schema for creating a tour."""

    name: str = Field(..., min_length=1, max_length=255, description="Tour name")
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$", description="URL-friendly slug")
    description: Optional[str] = Field(None, max_length=2000, description="Tour description")
    start_date: date = Field(..., description="First day of the tour")
    end_date: date = Field(..., description="Last day of the tour")
    max_participants: int = Field(..., ge=1, le=10000, description="Seat capacity")
    prices: TierPrices = Field(..., description="Tier prices")
    currency: Optional[str] = Field(None, pattern=r"^[A-Z]{3}$", description="ISO 4217 currency code")

    @model_validator(mode="after")
    def check_dates(self) -> "CreateTourRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class GetTourRequest(BaseModel):
    """Request schema for getting a tour."""

    tour_id: UUID = Field(..., description="Tour to retrieve")


class SetTourStatusRequest(BaseModel):
    """Request schema for changing a tour's status."""

    tour_id: UUID = Field(..., description="Tour to update")
    status: TourStatus = Field(..., description="New tour status")


class AdjustCapacityRequest(BaseModel):
    """Request schema for changing a tour's maximum participants."""

    tour_id: UUID = Field(..., description="Tour to adjust")
    delta: int = Field(..., description="Capacity change (positive or negative)")
    reason: str = Field(..., min_length=1, max_length=500, description="Reason for adjustment")
    actor: str = Field(..., min_length=1, max_length=255, description="Who is making the adjustment")


class Tour(BaseModel):
    """Tour response schema."""

    id: UUID = Field(..., description="Unique tour ID")
    name: str = Field(..., description="Tour name")
    slug: str = Field(..., description="URL-friendly slug")
    description: Optional[str] = Field(None, description="Tour description")
    start_date: date
    end_date: date
    max_participants: int = Field(..., ge=1)
    current_participants: int = Field(..., ge=0)
    price_adult: int
    price_child: int
    price_senior: Optional[int] = None
    currency: str
    status: TourStatus

    class Config:
        from_attributes = True


class CapacityAdjustment(BaseModel):
    """Capacity adjustment response schema."""

    id: UUID
    tour_id: UUID
    delta: int
    reason: str
    actor: str
    max_participants_before: int
    max_participants_after: int
    current_participants: int
    created_at: datetime

    class Config:
        from_attributes = True
