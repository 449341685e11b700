import asyncio

from kungfu import Ok, Error

from atelier.errors import ErrorKind
from atelier.estimate import EstimateType
from atelier.payments import PaymentType, SandboxGateway
from atelier.services import Commerce

ROUGH_TOTAL = 29_500_00  # 25,000 + 18% GST
ADVANCE = 8_85_000
BALANCE = ROUGH_TOTAL - ADVANCE


async def pay(commerce: Commerce, gateway: SandboxGateway, project_id: str, kind: PaymentType):
    intent = (await commerce.milestones.open(project_id, kind)).unwrap()
    receipt = (await commerce.payments.verify(gateway.complete(intent.gateway_order_id))).unwrap()
    return intent, receipt


async def test_split_for_governing_estimate(commerce: Commerce) -> None:
    estimate = (await commerce.estimates.governing("proj1")).unwrap()

    amounts = commerce.milestones.split(estimate)

    assert estimate.total_amount == ROUGH_TOTAL
    assert (amounts.advance, amounts.balance) == (ADVANCE, BALANCE)


async def test_advance_then_balance_unlocks_in_order(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    intent, _ = await pay(commerce, gateway, "proj1", PaymentType.ADVANCE)
    after_advance = await commerce.unlocks.read("proj1")

    _, receipt = await pay(commerce, gateway, "proj1", PaymentType.BALANCE)
    after_balance = await commerce.unlocks.read("proj1")

    assert intent.amount == ADVANCE
    assert receipt.payment.amount == BALANCE
    assert after_advance.renders_unlocked and not after_advance.final_files_unlocked
    assert after_balance.renders_unlocked and after_balance.final_files_unlocked


async def test_full_payment_unlocks_everything(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    intent, _ = await pay(commerce, gateway, "proj1", PaymentType.FULL)

    state = await commerce.unlocks.read("proj1")

    assert intent.amount == ROUGH_TOTAL
    assert state.renders_unlocked and state.final_files_unlocked


async def test_paid_milestone_cannot_be_opened_again(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    await pay(commerce, gateway, "proj1", PaymentType.ADVANCE)

    again = await commerce.milestones.open("proj1", PaymentType.ADVANCE)

    match again:
        case Error(e):
            assert e.kind is ErrorKind.MILESTONE_ALREADY_PAID
        case Ok(_):
            raise AssertionError("expected an error")


async def test_full_after_advance_would_exceed_total(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    await pay(commerce, gateway, "proj1", PaymentType.ADVANCE)

    result = await commerce.milestones.open("proj1", PaymentType.FULL)

    match result:
        case Error(e):
            assert e.kind is ErrorKind.MILESTONE_EXCEEDS_TOTAL
        case Ok(_):
            raise AssertionError("expected an error")


async def test_second_advance_intent_is_refused_at_verify(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    first = (await commerce.milestones.open("proj1", PaymentType.ADVANCE)).unwrap()
    second = (await commerce.milestones.open("proj1", PaymentType.ADVANCE)).unwrap()

    await commerce.payments.verify(gateway.complete(first.gateway_order_id))
    result = await commerce.payments.verify(gateway.complete(second.gateway_order_id))

    match result:
        case Error(e):
            assert e.kind is ErrorKind.MILESTONE_ALREADY_PAID
        case Ok(_):
            raise AssertionError("expected an error")
    assert (await commerce.payments.get(second.payment_id)).unwrap().is_pending


async def test_estimate_of_another_project_is_rejected(commerce: Commerce) -> None:
    other = (await commerce.estimates.get_or_generate("proj2", EstimateType.ROUGH)).unwrap()

    result = await commerce.milestones.open("proj1", PaymentType.ADVANCE, estimate_id=other.id)

    match result:
        case Error(e):
            assert e.kind is ErrorKind.UNKNOWN_ESTIMATE
        case Ok(_):
            raise AssertionError("expected an error")


async def test_project_without_areas_cannot_bill(commerce: Commerce) -> None:
    result = await commerce.milestones.open("empty", PaymentType.ADVANCE)

    match result:
        case Error(e):
            assert e.kind is ErrorKind.NO_PRICING_INPUT
        case Ok(_):
            raise AssertionError("expected an error")


async def test_intent_carries_estimate_number(commerce: Commerce) -> None:
    estimate = (await commerce.estimates.governing("proj1")).unwrap()

    intent = (await commerce.milestones.open("proj1", PaymentType.ADVANCE, user_id="u1")).unwrap()

    payment = (await commerce.payments.get(intent.payment_id)).unwrap()
    assert payment.estimate_id == estimate.id
    assert payment.project_id == "proj1"
    assert payment.notes["estimate_number"] == estimate.number


async def test_concurrent_advance_and_full_settle_one(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    advance = (await commerce.milestones.open("proj1", PaymentType.ADVANCE)).unwrap()
    full = (await commerce.milestones.open("proj1", PaymentType.FULL)).unwrap()

    results = await asyncio.gather(
        commerce.payments.verify(gateway.complete(full.gateway_order_id)),
        commerce.payments.verify(gateway.complete(advance.gateway_order_id)),
    )

    assert sum(1 for r in results if isinstance(r, Ok) and r.unwrap().newly_paid) == 1
    view = (await commerce.billing("proj1")).unwrap()
    assert view.milestones.paid_total <= ROUGH_TOTAL
