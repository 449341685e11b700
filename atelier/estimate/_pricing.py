"""
Pricing — pure functions from inputs to amounts.

    subtotal     = Σ line_items
    discount_amt = subtotal × discount_pct
    gst_amt      = (subtotal − discount_amt) × gst_pct
    total        = subtotal − discount_amt + gst_amt
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from kungfu import Result, Ok, Error

from atelier._types import Money, percent_of
from atelier.errors import CommerceError, Errors
from atelier.estimate._types import (
    EstimateType,
    LineItem,
    MilestoneAmounts,
    PricingInputs,
    RateCard,
)

DEFAULT_GST_PERCENT = Decimal("18")
DEFAULT_ADVANCE_PERCENT = Decimal("30")

DEFAULT_RATE_CARDS: dict[EstimateType, RateCard] = {
    EstimateType.ROUGH: RateCard(
        base_amount=25_000_00,
        per_area_amount=8_000_00,
        per_iteration_amount=3_000_00,
        per_option_amount=1_000_00,
        included_iterations=2,
        included_options=5,
    ),
    EstimateType.INITIAL: RateCard(
        base_amount=35_000_00,
        per_area_amount=12_000_00,
        per_iteration_amount=4_000_00,
        per_option_amount=1_500_00,
        included_iterations=3,
        included_options=8,
    ),
    EstimateType.FINAL: RateCard(
        base_amount=45_000_00,
        per_area_amount=15_000_00,
        per_iteration_amount=5_000_00,
        per_option_amount=2_000_00,
        included_iterations=3,
        included_options=10,
    ),
}


@dataclass(frozen=True, slots=True)
class Priced:
    line_items: tuple[LineItem, ...]
    areas: tuple[str, ...]
    iterations: int
    options: int
    subtotal: Money
    discount_pct: Decimal
    discount_amt: Money
    gst_pct: Decimal
    gst_amt: Money
    total_amount: Money


def price(
    project_id: str,
    estimate_type: EstimateType,
    inputs: PricingInputs,
    card: RateCard,
    default_gst_pct: Decimal = DEFAULT_GST_PERCENT,
) -> Result[Priced, CommerceError]:
    areas = tuple(a.strip() for a in inputs.areas if a and a.strip())
    if not areas:
        return Error(Errors.no_pricing_input(project_id))

    iterations = card.included_iterations if inputs.iterations is None else inputs.iterations
    options = card.included_options if inputs.options is None else inputs.options
    gst_pct = default_gst_pct if inputs.gst_pct is None else inputs.gst_pct

    if iterations < 0 or options < 0:
        return Error(Errors.invalid_amount("Iterations and options cannot be negative"))
    if inputs.extra_charges < 0:
        return Error(Errors.invalid_amount("Extra charges cannot be negative"))
    if not Decimal(0) <= inputs.discount_pct <= Decimal(100):
        return Error(Errors.invalid_amount("Discount must be between 0 and 100 percent"))
    if gst_pct < 0:
        return Error(Errors.invalid_amount("GST cannot be negative"))

    label = estimate_type.value.capitalize()
    items = [
        LineItem(
            "base",
            f"{label} design fee (1 area, {card.included_iterations} iterations, "
            f"{card.included_options} options)",
            1,
            card.base_amount,
        )
    ]
    if len(areas) > 1:
        items.append(LineItem("areas", "Additional areas", len(areas) - 1, card.per_area_amount))
    if iterations > card.included_iterations:
        items.append(
            LineItem(
                "iterations",
                "Additional iterations",
                iterations - card.included_iterations,
                card.per_iteration_amount,
            )
        )
    if options > card.included_options:
        items.append(
            LineItem(
                "options",
                "Additional design options",
                options - card.included_options,
                card.per_option_amount,
            )
        )
    if inputs.extra_charges:
        items.append(LineItem("extra", "Extra charges", 1, inputs.extra_charges))

    subtotal = sum(item.total for item in items)
    discount_amt = percent_of(subtotal, inputs.discount_pct)
    gst_amt = percent_of(subtotal - discount_amt, gst_pct)

    return Ok(
        Priced(
            line_items=tuple(items),
            areas=areas,
            iterations=iterations,
            options=options,
            subtotal=subtotal,
            discount_pct=inputs.discount_pct,
            discount_amt=discount_amt,
            gst_pct=gst_pct,
            gst_amt=gst_amt,
            total_amount=subtotal - discount_amt + gst_amt,
        )
    )


def split_milestones(
    total: Money, advance_pct: Decimal = DEFAULT_ADVANCE_PERCENT
) -> MilestoneAmounts:
    """advance = round(total × 30%), balance takes the remainder."""
    advance = percent_of(total, advance_pct)
    return MilestoneAmounts(advance=advance, balance=total - advance)


__all__ = (
    "DEFAULT_GST_PERCENT",
    "DEFAULT_ADVANCE_PERCENT",
    "DEFAULT_RATE_CARDS",
    "Priced",
    "price",
    "split_milestones",
)
