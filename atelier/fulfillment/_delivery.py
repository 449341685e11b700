"""
Delivery state machine.

    ORDER_PLACED → PROCESSING → SHIPPED → DELIVERED

One step at a time, never backwards. Each transition may carry a tracking id
and an estimated delivery date, shown on the order read path. The
notification sink hears about every transition; if it fails, the transition
still stands.
"""

from __future__ import annotations

import logging

from kungfu import Result, Ok, Error

from atelier._locks import KeyedLocks
from atelier._types import Clock, utcnow
from atelier.errors import CommerceError, Errors
from atelier.notify import DELIVERY_ADVANCED, LoggingSink, Notification, NotificationSink, notify
from atelier.orders import DeliveryStatus, DeliveryUpdate, Order, OrderRepository

logger = logging.getLogger(__name__)


class DeliveryStateMachine:
    def __init__(
        self,
        orders: OrderRepository,
        sink: NotificationSink | None = None,
        notify_timeout: float = 2.0,
        clock: Clock = utcnow,
    ) -> None:
        self._orders = orders
        self._sink = sink if sink is not None else LoggingSink()
        self._notify_timeout = notify_timeout
        self._clock = clock
        self._locks = KeyedLocks()

    async def advance(
        self,
        order_id: str,
        to_state: DeliveryStatus,
        update: DeliveryUpdate | None = None,
    ) -> Result[Order, CommerceError]:
        """Move the order one step forward. Operator action."""
        update = update or DeliveryUpdate()

        async with self._locks.hold(order_id):
            order = await self._orders.get(order_id)
            if order is None:
                return Error(Errors.unknown_order(order_id))

            current = order.delivery_status
            if current.next is not to_state:
                logger.warning(
                    "rejected delivery transition %s → %s for order %s",
                    current.value,
                    to_state.value,
                    order_id,
                )
                return Error(Errors.invalid_transition(current.value, to_state.value))

            advanced = await self._orders.advance_delivery(
                order_id, current, to_state, update, self._clock()
            )
            if advanced is None:
                return Error(Errors.invalid_transition(current.value, to_state.value))

        logger.info("order %s delivery %s → %s", order_id, current.value, to_state.value)
        await notify(
            self._sink,
            Notification(
                DELIVERY_ADVANCED,
                order_id,
                {
                    "user_id": advanced.user_id,
                    "from": current.value,
                    "to": to_state.value,
                    "tracking_id": advanced.tracking_id,
                    "estimated_delivery": (
                        advanced.estimated_delivery.isoformat()
                        if advanced.estimated_delivery
                        else None
                    ),
                },
            ),
            self._notify_timeout,
        )
        return Ok(advanced)


__all__ = ("DeliveryStateMachine",)
