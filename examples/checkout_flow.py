"""
Checkout — cart selection → order + intent → verified payment → delivery.

Level 5: atelier.orders (checkout saga)
Level 4: atelier.payments (verification graph)
Level 2: kungfu.Result
"""

from datetime import date

from kungfu import Ok, Error

from atelier.orders import DeliveryStatus, DeliveryUpdate
from examples._infra import LAMP, SOFA, banner, rupees, run, sandbox, snapshot_of


async def main() -> None:
    commerce, gateway, sink = sandbox()
    cart = commerce.carts.for_owner("user-7")

    banner("Cart")
    sofa = (
        await cart.add("sofa", 1, snapshot=snapshot_of(SOFA), project_id="villa-42", area="Living Room")
    ).unwrap()
    await cart.add("lamp", 2, snapshot=snapshot_of(LAMP))
    for shown in await commerce.resolver.resolve_all(await cart.list()):
        print(f"  {shown.title:<20} × {shown.line.quantity}  {rupees(shown.line.line_total)}")

    banner("Checkout (sofa only)")
    match await commerce.orders.checkout("user-7", [sofa.id]):
        case Ok(receipt):
            print(f"  order   {receipt.order.id}  {rupees(receipt.order.amount)}")
            print(f"  gateway {receipt.intent.gateway_order_id}")
        case Error(e):
            print(f"  ✗ {e.public_message}")
            return

    banner("Verify")
    callback = gateway.complete(receipt.intent.gateway_order_id)
    first = await commerce.payments.verify(callback)
    replay = await commerce.payments.verify(callback)
    print(f"  first  newly_paid={first.unwrap().newly_paid}")
    print(f"  replay newly_paid={replay.unwrap().newly_paid}")
    print(f"  cart left: {[(l.product_id, l.quantity) for l in await cart.list()]}")

    banner("Delivery")
    order_id = receipt.order.id
    await commerce.delivery.advance(order_id, DeliveryStatus.PROCESSING)
    await commerce.delivery.advance(
        order_id,
        DeliveryStatus.SHIPPED,
        DeliveryUpdate(tracking_id="DTDC-88121", estimated_delivery=date(2026, 11, 4)),
    )
    match await commerce.delivery.advance(order_id, DeliveryStatus.ORDER_PLACED):
        case Error(e):
            print(f"  backwards refused: {e.kind.name}")
        case Ok(_):
            print("  ✗ went backwards")
    order = (await commerce.orders.get(order_id)).unwrap()
    print(f"  {order.status.value} / {order.delivery_status.value} / {order.tracking_id}")

    banner("Notifications")
    for topic in sink.topics():
        print(f"  {topic}")


if __name__ == "__main__":
    run(main)
