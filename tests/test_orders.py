from kungfu import Ok, Error

from atelier.cart import LineKey
from atelier.errors import ErrorKind
from atelier.orders import OrderStatus
from atelier.payments import PaymentStatus, PaymentType, SandboxGateway
from atelier.services import Commerce

from tests.conftest import LAMP, SOFA, snapshot_of

SOFA_KEY = LineKey("sofa", "proj1", "Living Room")


async def fill_cart(commerce: Commerce, user_id: str = "u1"):
    cart = commerce.carts.for_owner(user_id)
    sofa = (
        await cart.add("sofa", 2, snapshot=snapshot_of(SOFA), project_id="proj1", area="Living Room")
    ).unwrap()
    lamp = (await cart.add("lamp", 1, snapshot=snapshot_of(LAMP))).unwrap()
    return cart, sofa, lamp


async def test_checkout_freezes_selection_and_opens_intent(commerce: Commerce) -> None:
    cart, sofa, lamp = await fill_cart(commerce)

    receipt = (await commerce.orders.checkout("u1", [sofa.id, lamp.id])).unwrap()

    order = receipt.order
    assert order.amount == 2 * SOFA.price + LAMP.price
    assert receipt.intent.amount == order.amount
    assert order.status is OrderStatus.PENDING
    assert order.gateway_order_id == receipt.intent.gateway_order_id
    assert [(i.product_id, i.quantity) for i in order.items] == [("sofa", 2), ("lamp", 1)]
    # Cart stays as it was until the payment verifies
    assert await cart.total_quantity() == 3

    payment = (await commerce.payments.get(receipt.intent.payment_id)).unwrap()
    assert payment.type is PaymentType.FULL
    assert payment.order_id == order.id
    assert payment.project_id == "proj1"


async def test_verify_marks_order_paid_and_clears_paid_lines(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    cart, sofa, lamp = await fill_cart(commerce)
    receipt = (await commerce.orders.checkout("u1", [sofa.id])).unwrap()

    await commerce.payments.verify(gateway.complete(receipt.intent.gateway_order_id))

    order = (await commerce.orders.get(receipt.order.id)).unwrap()
    assert order.status is OrderStatus.PAID
    assert order.gateway_payment_id is not None
    assert order.paid_at is not None
    assert not await cart.contains(SOFA_KEY)
    assert await cart.contains(LineKey("lamp"))


async def test_units_added_after_checkout_survive_payment(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    cart, sofa, _ = await fill_cart(commerce)
    receipt = (await commerce.orders.checkout("u1", [sofa.id])).unwrap()
    await cart.add("sofa", 3, snapshot=snapshot_of(SOFA), project_id="proj1", area="Living Room")

    await commerce.payments.verify(gateway.complete(receipt.intent.gateway_order_id))

    assert await cart.quantity_of(SOFA_KEY) == 3
    # The order keeps what was checked out
    paid = (await commerce.orders.get(receipt.order.id)).unwrap()
    assert paid.items[0].quantity == 2


async def test_replayed_verify_does_not_touch_cart_again(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    cart, _, lamp = await fill_cart(commerce)
    receipt = (await commerce.orders.checkout("u1", [lamp.id])).unwrap()
    callback = gateway.complete(receipt.intent.gateway_order_id)

    await commerce.payments.verify(callback)
    await cart.add("lamp", 1, snapshot=snapshot_of(LAMP))
    replay = await commerce.payments.verify(callback)

    assert not replay.unwrap().newly_paid
    assert await cart.quantity_of(LineKey("lamp")) == 1


async def test_empty_selection(commerce: Commerce) -> None:
    result = await commerce.orders.checkout("u1", [])

    match result:
        case Error(e):
            assert e.kind is ErrorKind.EMPTY_SELECTION
        case Ok(_):
            raise AssertionError("expected an error")


async def test_selection_must_belong_to_cart(commerce: Commerce) -> None:
    await fill_cart(commerce, "u1")
    _, foreign, _ = await fill_cart(commerce, "u2")

    result = await commerce.orders.checkout("u1", [foreign.id])

    match result:
        case Error(e):
            assert e.kind is ErrorKind.UNKNOWN_LINE
        case Ok(_):
            raise AssertionError("expected an error")
    assert await commerce.orders.for_user("u1") == []


async def test_duplicate_ids_count_once(commerce: Commerce) -> None:
    _, _, lamp = await fill_cart(commerce)

    receipt = (await commerce.orders.checkout("u1", [lamp.id, lamp.id])).unwrap()

    assert receipt.order.amount == LAMP.price


async def test_gateway_outage_fails_order_and_keeps_cart(
    commerce: Commerce, gateway: SandboxGateway
) -> None:
    cart, sofa, lamp = await fill_cart(commerce)
    gateway.available = False

    result = await commerce.orders.checkout("u1", [sofa.id, lamp.id])

    match result:
        case Error(e):
            assert e.kind is ErrorKind.GATEWAY_UNAVAILABLE
            assert e.retryable
        case Ok(_):
            raise AssertionError("expected an error")
    [order] = await commerce.orders.for_user("u1")
    assert order.status is OrderStatus.FAILED
    assert await cart.total_quantity() == 3


async def test_orders_listed_newest_first(commerce: Commerce) -> None:
    _, sofa, lamp = await fill_cart(commerce)
    first = (await commerce.orders.checkout("u1", [sofa.id])).unwrap().order
    second = (await commerce.orders.checkout("u1", [lamp.id])).unwrap().order

    orders = await commerce.orders.for_user("u1")

    assert {o.id for o in orders} == {first.id, second.id}
    assert orders[0].created_at >= orders[1].created_at


async def test_refund_does_not_reopen_order(commerce: Commerce, gateway: SandboxGateway) -> None:
    _, _, lamp = await fill_cart(commerce)
    receipt = (await commerce.orders.checkout("u1", [lamp.id])).unwrap()
    await commerce.payments.verify(gateway.complete(receipt.intent.gateway_order_id))

    refunded = (await commerce.payments.refund(receipt.intent.payment_id)).unwrap()

    assert refunded.status is PaymentStatus.REFUNDED
    assert (await commerce.orders.get(receipt.order.id)).unwrap().status is OrderStatus.PAID


async def test_get_unknown_order(commerce: Commerce) -> None:
    result = await commerce.orders.get("ord_missing")

    match result:
        case Error(e):
            assert e.kind is ErrorKind.UNKNOWN_ORDER
        case Ok(_):
            raise AssertionError("expected an error")
