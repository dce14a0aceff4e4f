"""Pricing engine: age-tiered participant prices with taxes.

All amounts are integers in minor currency units. Every function here is
pure; the tax rate defaults to ``settings.tax_rate`` but can be passed
explicitly.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ..core.config import settings
from ..models.reservation import PriceCategory
from ..schemas.common import PriceBreakdown

# Under this age a participant is recorded as a child but travels free.
FREE_UNDER_AGE = 5
ADULT_FROM_AGE = 18
SENIOR_FROM_AGE = 60


@dataclass(frozen=True)
class TierPrices:
    """Per-person prices for one tour."""

    adult: int
    child: int
    senior: Optional[int] = None

    @classmethod
    def from_tour(cls, tour) -> "TierPrices":
        return cls(adult=tour.price_adult, child=tour.price_child, senior=tour.price_senior)

    def for_category(self, category: PriceCategory) -> int:
        if category == PriceCategory.CHILD:
            return self.child
        if category == PriceCategory.SENIOR:
            return self.adult if self.senior is None else self.senior
        return self.adult


def classify(age: int) -> PriceCategory:
    """
    Map an age to its price tier.

    Raises:
        ValueError: If age is negative
    """
    if age < 0:
        raise ValueError(f"age must be non-negative, got {age}")
    if age < ADULT_FROM_AGE:
        return PriceCategory.CHILD
    if age < SENIOR_FROM_AGE:
        return PriceCategory.ADULT
    return PriceCategory.SENIOR


def participant_price(age: int, prices: TierPrices) -> int:
    """Amount one participant contributes to the subtotal."""
    if age < FREE_UNDER_AGE:
        return 0
    return prices.for_category(classify(age))


def compute_taxes(subtotal: int, tax_rate: Optional[Decimal] = None) -> int:
    """Taxes on ``subtotal``, rounded half-up to a whole minor unit."""
    if tax_rate is None:
        tax_rate = settings.tax_rate
    taxes = (Decimal(subtotal) * Decimal(tax_rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(taxes)


def compute_total(
    ages: Iterable[int],
    prices: TierPrices,
    tax_rate: Optional[Decimal] = None,
) -> PriceBreakdown:
    """
    Price a group of participants.

    Args:
        ages: Participant ages
        prices: Tier prices of the tour
        tax_rate: Tax rate (defaults to ``settings.tax_rate``)

    Returns:
        Subtotal, taxes and total
    """
    subtotal = sum(participant_price(age, prices) for age in ages)
    taxes = compute_taxes(subtotal, tax_rate)
    return PriceBreakdown(subtotal=subtotal, taxes=taxes, total=subtotal + taxes)
