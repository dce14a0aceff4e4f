"""Health-related Pydantic schemas."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: HealthStatus = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    environment: str = Field(..., description="Deployment environment")
    timestamp: datetime = Field(..., description="Service clock time (ISO 8601)")
    business_date: date = Field(..., description="Day used for start-date gating and interval expiry")
    version: str = Field("1.0.0", description="API version")
