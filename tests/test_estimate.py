from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from kungfu import Ok, Error

from atelier import percent_of
from atelier.errors import ErrorKind
from atelier.estimate import (
    DEFAULT_RATE_CARDS,
    EstimateService,
    EstimateStatus,
    EstimateType,
    MemoryEstimateRepository,
    PricingInputs,
    StaticProjectRegistry,
    price,
    split_milestones,
)


def ticking_clock() -> Callable[[], datetime]:
    now = [datetime(2026, 3, 1, 10, 0)]

    def clock() -> datetime:
        now[0] += timedelta(seconds=1)
        return now[0]

    return clock


@pytest.fixture
def service(registry: StaticProjectRegistry) -> EstimateService:
    return EstimateService(MemoryEstimateRepository(), registry, clock=ticking_clock())


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing
# ═══════════════════════════════════════════════════════════════════════════════


def test_percent_of_rounds_half_up() -> None:
    assert percent_of(2_500_000, Decimal("18")) == 450_000
    assert percent_of(5, Decimal("50")) == 3
    assert percent_of(101, Decimal("30")) == 30


def test_rough_single_area_totals() -> None:
    card = DEFAULT_RATE_CARDS[EstimateType.ROUGH]

    priced = price("p", EstimateType.ROUGH, PricingInputs(("Living Room",)), card).unwrap()

    assert priced.subtotal == 25_000_00
    assert priced.gst_amt == 4_500_00
    assert priced.total_amount == 29_500_00
    assert [item.code for item in priced.line_items] == ["base"]


def test_extra_areas_iterations_and_discount() -> None:
    card = DEFAULT_RATE_CARDS[EstimateType.ROUGH]
    inputs = PricingInputs(
        ("Living", "Bed", "Kitchen"),
        iterations=4,
        discount_pct=Decimal("10"),
        extra_charges=1_000_00,
    )

    priced = price("p", EstimateType.ROUGH, inputs, card).unwrap()

    expected_subtotal = 25_000_00 + 2 * 8_000_00 + 2 * 3_000_00 + 1_000_00
    assert priced.subtotal == expected_subtotal
    assert priced.discount_amt == expected_subtotal // 10
    taxable = expected_subtotal - priced.discount_amt
    assert priced.gst_amt == percent_of(taxable, Decimal("18"))
    assert priced.total_amount == taxable + priced.gst_amt
    assert sum(item.total for item in priced.line_items) == priced.subtotal


def test_no_areas_is_rejected() -> None:
    card = DEFAULT_RATE_CARDS[EstimateType.ROUGH]

    result = price("p", EstimateType.ROUGH, PricingInputs(("", "  ")), card)

    match result:
        case Error(e):
            assert e.kind is ErrorKind.NO_PRICING_INPUT
        case Ok(_):
            raise AssertionError("expected an error")


def test_negative_inputs_are_rejected() -> None:
    card = DEFAULT_RATE_CARDS[EstimateType.FINAL]

    result = price("p", EstimateType.FINAL, PricingInputs(("Room",), extra_charges=-1), card)

    assert isinstance(result, Error)


def test_split_milestones_balance_takes_remainder() -> None:
    amounts = split_milestones(29_500_01)

    assert amounts.advance == percent_of(29_500_01, Decimal("30"))
    assert amounts.advance + amounts.balance == 29_500_01
    assert amounts.full == 29_500_01


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


async def test_generate_supersedes_previous_active(service: EstimateService) -> None:
    first = (
        await service.generate("proj1", EstimateType.ROUGH, PricingInputs(("Living Room",)))
    ).unwrap()
    second = (
        await service.generate(
            "proj1", EstimateType.ROUGH, PricingInputs(("Living Room", "Study"))
        )
    ).unwrap()

    assert await service.get_active("proj1", EstimateType.ROUGH) == second
    stored_first = (await service.get(first.id)).unwrap()
    assert stored_first.status is EstimateStatus.SUPERSEDED
    assert [e.id for e in await service.list("proj1")] == [second.id, first.id]


async def test_types_have_independent_active_estimates(service: EstimateService) -> None:
    rough = (await service.get_or_generate("proj1", EstimateType.ROUGH)).unwrap()
    initial = (await service.get_or_generate("proj1", EstimateType.INITIAL)).unwrap()

    assert rough.is_active and initial.is_active
    assert rough.total_amount < initial.total_amount


async def test_get_or_generate_reuses_active(service: EstimateService) -> None:
    first = (await service.get_or_generate("proj2", EstimateType.ROUGH)).unwrap()
    again = (await service.get_or_generate("proj2", EstimateType.ROUGH)).unwrap()

    assert first.id == again.id
    assert first.areas == ("Living Room", "Bedroom", "Kitchen")
    assert first.number.startswith("EST-20260301-")


async def test_get_or_generate_without_areas(service: EstimateService) -> None:
    result = await service.get_or_generate("empty", EstimateType.ROUGH)

    match result:
        case Error(e):
            assert e.kind is ErrorKind.NO_PRICING_INPUT
        case Ok(_):
            raise AssertionError("expected an error")


async def test_governing_prefers_most_precise(service: EstimateService) -> None:
    await service.get_or_generate("proj1", EstimateType.ROUGH)
    initial = (await service.get_or_generate("proj1", EstimateType.INITIAL)).unwrap()

    assert (await service.governing("proj1")).unwrap().id == initial.id

    final = (await service.get_or_generate("proj1", EstimateType.FINAL)).unwrap()
    assert (await service.governing("proj1")).unwrap().id == final.id


async def test_governing_generates_rough_when_none(service: EstimateService) -> None:
    governing = (await service.governing("proj1")).unwrap()

    assert governing.type is EstimateType.ROUGH


async def test_get_unknown_estimate(service: EstimateService) -> None:
    result = await service.get("est_missing")

    match result:
        case Error(e):
            assert e.kind is ErrorKind.UNKNOWN_ESTIMATE
        case Ok(_):
            raise AssertionError("expected an error")
