import asyncio
from datetime import date, datetime, timedelta

from kungfu import Ok, Error

from atelier._types import utcnow
from atelier.cart import Carts, LineKey, ProductSnapshot, SQLAlchemyCartBackend
from atelier.db import SessionFactory
from atelier.errors import ErrorKind
from atelier.estimate import EstimateStatus, EstimateType, PricingInputs, StaticProjectRegistry
from atelier.orders import DeliveryStatus, DeliveryUpdate, OrderStatus, SQLAlchemyOrderRepository
from atelier.payments import PaymentStatus, PaymentType, SandboxGateway, SQLAlchemyPaymentRepository
from atelier.services import build_sqlalchemy

from tests.conftest import LAMP, SOFA, snapshot_of


def commerce_on(session_factory: SessionFactory, gateway: SandboxGateway):
    return build_sqlalchemy(
        session_factory,
        gateway,
        key_secret=gateway.key_secret,
        registry=StaticProjectRegistry({"proj1": ["Living Room"]}),
    )


async def test_cart_backend_keys_and_positions(session_factory: SessionFactory) -> None:
    cart = Carts(SQLAlchemyCartBackend(session_factory)).for_owner("u1")

    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA), project_id="proj1", area="Living Room")
    await cart.add("sofa", 1, snapshot=snapshot_of(SOFA))
    await cart.add("sofa", 2, snapshot=snapshot_of(SOFA), project_id="proj1", area="Living Room")
    await cart.add("lamp", 1, snapshot=snapshot_of(LAMP))

    lines = await cart.list()
    assert [(l.product_id, l.area, l.quantity) for l in lines] == [
        ("sofa", "Living Room", 3),
        ("sofa", None, 1),
        ("lamp", None, 1),
    ]
    assert await cart.quantity_of(LineKey("sofa")) == 1

    left = await cart.remove_up_to(LineKey("sofa", "proj1", "Living Room"), 1)
    assert left is not None and left.quantity == 2
    assert await cart.clear() == 3
    assert await cart.list() == []


async def test_cart_snapshot_round_trips(session_factory: SessionFactory) -> None:
    cart = Carts(SQLAlchemyCartBackend(session_factory)).for_owner("u1")
    snap = ProductSnapshot(12_345, "Teak Table", "https://cdn.example/t.jpg")

    await cart.add("table", 1, snapshot=snap)

    [line] = await cart.list()
    assert line.snapshot == snap


async def test_estimates_supersede_in_database(
    session_factory: SessionFactory, gateway: SandboxGateway
) -> None:
    commerce = commerce_on(session_factory, gateway)

    first = (await commerce.estimates.get_or_generate("proj1", EstimateType.ROUGH)).unwrap()
    second = (
        await commerce.estimates.generate(
            "proj1", EstimateType.ROUGH, PricingInputs(first.areas, iterations=first.iterations + 1)
        )
    ).unwrap()

    stored_first = (await commerce.estimates.get(first.id)).unwrap()
    assert stored_first.status is EstimateStatus.SUPERSEDED
    assert stored_first.line_items == first.line_items
    assert stored_first.gst_pct == first.gst_pct
    assert (await commerce.estimates.get_active("proj1", EstimateType.ROUGH)) == second


async def test_payment_compare_and_set(session_factory: SessionFactory, gateway: SandboxGateway) -> None:
    commerce = commerce_on(session_factory, gateway)
    repo = SQLAlchemyPaymentRepository(session_factory)
    intent = (await commerce.milestones.open("proj1", PaymentType.ADVANCE)).unwrap()
    callback = gateway.complete(intent.gateway_order_id)

    first = await commerce.payments.verify(callback)
    second = await commerce.payments.verify(callback)

    assert first.unwrap().newly_paid and not second.unwrap().newly_paid
    stored = await repo.by_gateway_order(intent.gateway_order_id)
    assert stored is not None and stored.status is PaymentStatus.PAID
    assert await repo.mark_paid(stored.id, "pay_other", "sig", datetime(2026, 1, 1)) is None
    assert await repo.mark_failed(stored.id, "late failure") is None
    assert (await commerce.unlocks.read("proj1")).renders_unlocked


async def test_stale_pending_and_stamp(session_factory: SessionFactory, gateway: SandboxGateway) -> None:
    commerce = commerce_on(session_factory, gateway)
    repo = SQLAlchemyPaymentRepository(session_factory)
    intent = (await commerce.milestones.open("proj1", PaymentType.ADVANCE)).unwrap()

    later = utcnow() + timedelta(hours=2)
    stale = await repo.stale_pending(later)
    stamped = await repo.stamp_abandoned([p.id for p in stale], later)

    assert [p.id for p in stale] == [intent.payment_id]
    assert stamped == 1
    assert await repo.stale_pending(later) == []


async def test_order_flow_in_database(session_factory: SessionFactory, gateway: SandboxGateway) -> None:
    commerce = commerce_on(session_factory, gateway)
    orders = SQLAlchemyOrderRepository(session_factory)
    cart = commerce.carts.for_owner("u1")
    line = (await cart.add("lamp", 2, snapshot=snapshot_of(LAMP))).unwrap()

    receipt = (await commerce.orders.checkout("u1", [line.id])).unwrap()
    await commerce.payments.verify(gateway.complete(receipt.intent.gateway_order_id))
    await commerce.delivery.advance(receipt.order.id, DeliveryStatus.PROCESSING)
    await commerce.delivery.advance(
        receipt.order.id,
        DeliveryStatus.SHIPPED,
        DeliveryUpdate(tracking_id="TRK9", estimated_delivery=date(2026, 12, 1)),
    )

    stored = await orders.get(receipt.order.id)
    assert stored is not None
    assert stored.status is OrderStatus.PAID
    assert stored.amount == 2 * LAMP.price
    assert stored.items == receipt.order.items
    assert stored.delivery_status is DeliveryStatus.SHIPPED
    assert stored.tracking_id == "TRK9"
    assert stored.estimated_delivery == date(2026, 12, 1)
    assert await cart.list() == []
    assert [o.id for o in await orders.for_user("u1")] == [receipt.order.id]


async def test_concurrent_milestones_never_exceed_estimate(
    session_factory: SessionFactory, gateway: SandboxGateway
) -> None:
    commerce = commerce_on(session_factory, gateway)
    repo = SQLAlchemyPaymentRepository(session_factory)
    advance = (await commerce.milestones.open("proj1", PaymentType.ADVANCE)).unwrap()
    full = (await commerce.milestones.open("proj1", PaymentType.FULL)).unwrap()
    estimate = (await commerce.estimates.governing("proj1")).unwrap()

    results = await asyncio.gather(
        commerce.payments.verify(gateway.complete(advance.gateway_order_id)),
        commerce.payments.verify(gateway.complete(full.gateway_order_id)),
    )

    settled = [r for r in results if isinstance(r, Ok) and r.unwrap().newly_paid]
    assert len(settled) == 1
    [refused] = [r for r in results if isinstance(r, Error)]
    match refused:
        case Error(e):
            assert e.kind is ErrorKind.MILESTONE_EXCEEDS_TOTAL
    paid = [p for p in await repo.for_estimate(estimate.id) if p.status is PaymentStatus.PAID]
    assert len(paid) == 1
    assert sum(p.amount for p in paid) <= estimate.total_amount
