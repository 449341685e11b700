"""
Estimate types.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from atelier._types import Money

# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class EstimateType(str, Enum):
    """
    Estimate stages, least to most precise.

    Note: the most precise active one governs milestone billing.
    """

    ROUGH = "rough"
    INITIAL = "initial"
    FINAL = "final"


class EstimateStatus(str, Enum):
    ACTIVE = "active"
    SUPERSEDED = "superseded"


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PricingInputs:
    """
    What gets priced. iterations/options default to what the rate card
    includes; gst_pct defaults to the configured flat rate.
    """

    areas: tuple[str, ...]
    iterations: int | None = None
    options: int | None = None
    extra_charges: Money = 0
    discount_pct: Decimal = Decimal(0)
    gst_pct: Decimal | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class RateCard:
    """
    Prices for one estimate type.

    base_amount covers the first area with the included iterations and
    options; everything beyond is charged per unit.
    """

    base_amount: Money
    per_area_amount: Money
    per_iteration_amount: Money
    per_option_amount: Money
    included_iterations: int
    included_options: int


# ═══════════════════════════════════════════════════════════════════════════════
# Estimate
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineItem:
    code: str
    description: str
    quantity: int
    unit_amount: Money

    @property
    def total(self) -> Money:
        return self.quantity * self.unit_amount


@dataclass(frozen=True, slots=True)
class Estimate:
    id: str
    project_id: str
    number: str
    type: EstimateType
    line_items: tuple[LineItem, ...]
    subtotal: Money
    discount_pct: Decimal
    discount_amt: Money
    gst_pct: Decimal
    gst_amt: Money
    total_amount: Money
    status: EstimateStatus
    areas: tuple[str, ...]
    iterations: int
    options: int
    created_at: datetime
    extra_charges: Money = 0
    notes: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status is EstimateStatus.ACTIVE

    def superseded(self) -> Estimate:
        return dataclasses.replace(self, status=EstimateStatus.SUPERSEDED)


@dataclass(frozen=True, slots=True)
class MilestoneAmounts:
    """How an estimate total splits into payments."""

    advance: Money
    balance: Money

    @property
    def full(self) -> Money:
        return self.advance + self.balance


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "EstimateType",
    "EstimateStatus",
    "PricingInputs",
    "RateCard",
    "LineItem",
    "Estimate",
    "MilestoneAmounts",
)
