"""
Order repository protocol and in-memory implementation.

Status and delivery changes are compare-and-set on the current value.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Protocol

from atelier.orders._types import DeliveryStatus, DeliveryUpdate, Order, OrderStatus


class OrderRepository(Protocol):
    async def insert(self, order: Order) -> None:
        ...

    async def get(self, order_id: str) -> Order | None:
        ...

    async def for_user(self, user_id: str) -> list[Order]:
        """Newest first."""
        ...

    async def attach_gateway_order(self, order_id: str, gateway_order_id: str) -> None:
        ...

    async def mark_paid(
        self, order_id: str, gateway_payment_id: str | None, at: datetime
    ) -> Order | None:
        """PENDING → PAID. None if the order was not pending."""
        ...

    async def mark_failed(self, order_id: str, at: datetime) -> Order | None:
        """PENDING → FAILED. None if the order was not pending."""
        ...

    async def advance_delivery(
        self,
        order_id: str,
        expected: DeliveryStatus,
        to: DeliveryStatus,
        update: DeliveryUpdate,
        at: datetime,
    ) -> Order | None:
        """
        expected → to, storing any metadata given. None if the order moved
        meanwhile. Metadata left as None keeps the stored value.
        """
        ...


class MemoryOrderRepository:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}

    async def insert(self, order: Order) -> None:
        self._orders[order.id] = order

    async def get(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    async def for_user(self, user_id: str) -> list[Order]:
        found = [o for o in self._orders.values() if o.user_id == user_id]
        return sorted(found, key=lambda o: o.created_at, reverse=True)

    async def attach_gateway_order(self, order_id: str, gateway_order_id: str) -> None:
        order = self._orders.get(order_id)
        if order is not None:
            self._orders[order_id] = order.with_gateway_order(gateway_order_id)

    async def mark_paid(
        self, order_id: str, gateway_payment_id: str | None, at: datetime
    ) -> Order | None:
        order = self._orders.get(order_id)
        if order is None or order.status is not OrderStatus.PENDING:
            return None
        updated = dataclasses.replace(
            order,
            status=OrderStatus.PAID,
            gateway_payment_id=gateway_payment_id,
            paid_at=at,
            updated_at=at,
        )
        self._orders[order_id] = updated
        return updated

    async def mark_failed(self, order_id: str, at: datetime) -> Order | None:
        order = self._orders.get(order_id)
        if order is None or order.status is not OrderStatus.PENDING:
            return None
        updated = dataclasses.replace(order, status=OrderStatus.FAILED, updated_at=at)
        self._orders[order_id] = updated
        return updated

    async def advance_delivery(
        self,
        order_id: str,
        expected: DeliveryStatus,
        to: DeliveryStatus,
        update: DeliveryUpdate,
        at: datetime,
    ) -> Order | None:
        order = self._orders.get(order_id)
        if order is None or order.delivery_status is not expected:
            return None
        updated = dataclasses.replace(
            order,
            delivery_status=to,
            tracking_id=update.tracking_id or order.tracking_id,
            estimated_delivery=update.estimated_delivery or order.estimated_delivery,
            updated_at=at,
        )
        self._orders[order_id] = updated
        return updated


__all__ = ("OrderRepository", "MemoryOrderRepository")
