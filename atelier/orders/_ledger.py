"""
Order ledger — checkout and what happens once an order is paid.

Checkout is a two-step saga:

    freeze_order  — store the selected lines as a pending order
                    (compensation: mark the order failed)
    open_intent   — gateway order for exactly the order amount

The cart is not touched at checkout. Once the payment verifies, the ledger
marks the order paid and takes the frozen quantities off the cart by line
key, so anything the user added in the meantime stays.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from kungfu import Result, Ok, Error, LazyCoroResult

from atelier._types import Clock, utcnow
from atelier.cart import Carts
from atelier.errors import CommerceError, Errors
from atelier.orders._saga import run, step
from atelier.orders._store import OrderRepository
from atelier.orders._types import Order
from atelier.payments import IntentRequest, Payment, PaymentIntent, PaymentOrchestrator, PaymentType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckoutReceipt:
    order: Order
    intent: PaymentIntent


class OrderLedger:
    def __init__(
        self,
        carts: Carts,
        orders: OrderRepository,
        payments: PaymentOrchestrator,
        clock: Clock = utcnow,
    ) -> None:
        self._carts = carts
        self.orders = orders
        self._payments = payments
        self._clock = clock
        payments.on_paid(self.on_payment_verified)

    # ═══════════════════════════════════════════════════════════════════════════
    # Checkout
    # ═══════════════════════════════════════════════════════════════════════════

    async def checkout(
        self, user_id: str, line_ids: Sequence[str]
    ) -> Result[CheckoutReceipt, CommerceError]:
        """Freeze the selected lines into an order and open its payment."""
        selection = list(dict.fromkeys(line_ids))
        if not selection:
            return Error(Errors.empty_selection())

        cart = self._carts.for_owner(user_id)
        match await cart.selected(selection):
            case Error(e):
                return Error(e)
            case Ok(lines):
                pass

        order = Order.place(user_id, lines, self._payments.currency, self._clock())

        saga = step("freeze_order", self._freeze(order), compensate=self._discard).then(
            lambda placed: step("open_intent", self._open_intent(placed))
        )

        match await run(saga):
            case Ok(done):
                logger.info(
                    "order %s placed: %d items, amount %s",
                    order.id,
                    len(order.items),
                    order.amount,
                )
                return Ok(done.value)
            case Error(failure):
                logger.warning(
                    "checkout for %s failed at %s: %s (rollback complete: %s)",
                    user_id,
                    failure.step_failed,
                    failure.error,
                    failure.rollback_complete,
                )
                return Error(failure.error)

    def _freeze(self, order: Order) -> LazyCoroResult[Order, CommerceError]:
        async def impl() -> Result[Order, CommerceError]:
            await self.orders.insert(order)
            return Ok(order)

        return LazyCoroResult(impl)

    async def _discard(self, order: Order) -> None:
        await self.orders.mark_failed(order.id, self._clock())

    def _open_intent(self, order: Order) -> LazyCoroResult[CheckoutReceipt, CommerceError]:
        async def impl() -> Result[CheckoutReceipt, CommerceError]:
            projects = order.project_ids
            request = IntentRequest(
                amount=order.amount,
                type=PaymentType.FULL,
                currency=order.currency,
                project_id=next(iter(projects)) if len(projects) == 1 else None,
                order_id=order.id,
                user_id=order.user_id,
            )
            match await self._payments.create_intent(request):
                case Error(e):
                    return Error(e)
                case Ok(intent):
                    await self.orders.attach_gateway_order(order.id, intent.gateway_order_id)
                    return Ok(
                        CheckoutReceipt(order.with_gateway_order(intent.gateway_order_id), intent)
                    )

        return LazyCoroResult(impl)

    # ═══════════════════════════════════════════════════════════════════════════
    # After payment
    # ═══════════════════════════════════════════════════════════════════════════

    async def on_payment_verified(self, payment: Payment) -> None:
        """Mark the order paid and clear exactly the paid lines from the cart."""
        if payment.order_id is None:
            return

        order = await self.orders.mark_paid(
            payment.order_id, payment.gateway_payment_id, payment.paid_at or self._clock()
        )
        if order is None:
            logger.warning(
                "payment %s settled but order %s was not pending", payment.id, payment.order_id
            )
            return

        cart = self._carts.for_owner(order.user_id)
        for item in order.items:
            await cart.remove_up_to(item.key, item.quantity)
        logger.info("order %s paid, %d cart lines cleared", order.id, len(order.items))

    # ═══════════════════════════════════════════════════════════════════════════
    # Reads
    # ═══════════════════════════════════════════════════════════════════════════

    async def get(self, order_id: str) -> Result[Order, CommerceError]:
        order = await self.orders.get(order_id)
        if order is None:
            return Error(Errors.unknown_order(order_id))
        return Ok(order)

    async def for_user(self, user_id: str) -> list[Order]:
        return await self.orders.for_user(user_id)


__all__ = ("CheckoutReceipt", "OrderLedger")
