"""Common Pydantic schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field


class PriceBreakdown(BaseModel):
    """Subtotal, taxes and total in minor currency units."""

    subtotal: int = Field(..., ge=0, description="Sum of participant tier prices")
    taxes: int = Field(..., ge=0, description="Taxes on the subtotal")
    total: int = Field(..., ge=0, description="Subtotal plus taxes")

    def __add__(self, other: "PriceBreakdown") -> "PriceBreakdown":
        return PriceBreakdown(
            subtotal=self.subtotal + other.subtotal,
            taxes=self.taxes + other.taxes,
            total=self.total + other.total,
        )


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")
