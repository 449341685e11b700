"""
Order types — frozen items, order status, delivery status.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from atelier._types import Money, new_id
from atelier.cart import CartLine, LineKey

# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class DeliveryStatus(str, Enum):
    """
    Forward only:
        ORDER_PLACED → PROCESSING → SHIPPED → DELIVERED
    """

    ORDER_PLACED = "order_placed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"

    @property
    def next(self) -> DeliveryStatus | None:
        flow = list(DeliveryStatus)
        index = flow.index(self)
        return flow[index + 1] if index + 1 < len(flow) else None


# ═══════════════════════════════════════════════════════════════════════════════
# Items & Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderItem:
    """A cart line as it was at checkout."""

    product_id: str
    title: str
    quantity: int
    unit_price: Money
    project_id: str | None = None
    area: str | None = None
    image_url: str | None = None

    @property
    def key(self) -> LineKey:
        return LineKey(self.product_id, self.project_id, self.area)

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    @classmethod
    def freeze(cls, line: CartLine) -> OrderItem:
        return cls(
            product_id=line.product_id,
            title=line.snapshot.title,
            quantity=line.quantity,
            unit_price=line.snapshot.unit_price,
            project_id=line.project_id,
            area=line.area,
            image_url=line.snapshot.image_url,
        )


@dataclass(frozen=True, slots=True)
class DeliveryUpdate:
    """Metadata carried by a delivery transition."""

    tracking_id: str | None = None
    estimated_delivery: date | None = None


@dataclass(frozen=True, slots=True)
class Order:
    """
    Immutable item set with a fixed amount.

    Note: amount == Σ unit_price × quantity, computed once in `place()`.
    Only status, delivery fields and payment linkage change afterwards.
    """

    id: str
    user_id: str
    items: tuple[OrderItem, ...]
    amount: Money
    currency: str
    status: OrderStatus
    delivery_status: DeliveryStatus
    created_at: datetime
    updated_at: datetime
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    tracking_id: str | None = None
    estimated_delivery: date | None = None
    paid_at: datetime | None = None

    @classmethod
    def place(
        cls,
        user_id: str,
        lines: Sequence[CartLine],
        currency: str,
        at: datetime,
    ) -> Order:
        items = tuple(OrderItem.freeze(line) for line in lines)
        return cls(
            id=new_id("ord"),
            user_id=user_id,
            items=items,
            amount=sum(item.line_total for item in items),
            currency=currency,
            status=OrderStatus.PENDING,
            delivery_status=DeliveryStatus.ORDER_PLACED,
            created_at=at,
            updated_at=at,
        )

    @property
    def project_ids(self) -> set[str]:
        return {item.project_id for item in self.items if item.project_id is not None}

    def with_gateway_order(self, gateway_order_id: str) -> Order:
        return dataclasses.replace(self, gateway_order_id=gateway_order_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "OrderStatus",
    "DeliveryStatus",
    "OrderItem",
    "DeliveryUpdate",
    "Order",
)
