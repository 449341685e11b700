"""
Documents — bills for design milestones, invoices for furniture checkouts.

    documents = Documents(payments, orders)
    bill = await documents.bill(payment_id)       # BILL-XXXXXXXX, one per paid milestone
    invoice = await documents.invoice(order_id)   # INV-XXXXXXXX, one per checkout

Both are read models over settled rows; nothing here writes. Rendering is
left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from kungfu import Result, Ok, Error

from atelier._types import Money
from atelier.errors import CommerceError, Errors
from atelier.orders import Order, OrderItem, OrderRepository, OrderStatus
from atelier.payments import Payment, PaymentRepository, PaymentStatus, PaymentType


# ═══════════════════════════════════════════════════════════════════════════════
# Bill
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Bill:
    number: str
    payment_id: str
    project_id: str | None
    user_id: str | None
    estimate_id: str
    estimate_number: str | None
    type: PaymentType
    amount: Money
    currency: str
    issued_at: datetime
    gateway_payment_id: str | None

    @classmethod
    def of(cls, payment: Payment) -> Result[Bill, CommerceError]:
        if payment.estimate_id is None:
            return Error(Errors.not_billable(payment.id, "order payments are invoiced"))
        if payment.status is not PaymentStatus.PAID:
            return Error(Errors.not_billable(payment.id, f"payment is {payment.status.value}"))
        return Ok(
            cls(
                number=payment.bill_number,
                payment_id=payment.id,
                project_id=payment.project_id,
                user_id=payment.user_id,
                estimate_id=payment.estimate_id,
                estimate_number=payment.notes.get("estimate_number"),
                type=payment.type,
                amount=payment.amount,
                currency=payment.currency,
                issued_at=payment.paid_at or payment.created_at,
                gateway_payment_id=payment.gateway_payment_id,
            )
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Invoice
# ═══════════════════════════════════════════════════════════════════════════════


def invoice_number(order: Order) -> str:
    return f"INV-{order.id.removeprefix('ord_')[:8].upper()}"


@dataclass(frozen=True, slots=True)
class Invoice:
    """
    All paid orders of one checkout under one number.

    Note: the number comes from the earliest order, so every order in the
    group resolves to the same invoice.
    """

    number: str
    user_id: str
    order_ids: tuple[str, ...]
    items: tuple[OrderItem, ...]
    subtotal: Money
    total: Money
    currency: str
    issued_at: datetime
    gateway_payment_id: str | None

    @classmethod
    def of(cls, orders: list[Order]) -> Invoice:
        group = sorted(orders, key=lambda o: o.created_at)
        first = group[0]
        return cls(
            number=invoice_number(first),
            user_id=first.user_id,
            order_ids=tuple(o.id for o in group),
            items=tuple(item for o in group for item in o.items),
            subtotal=sum(item.line_total for o in group for item in o.items),
            total=sum(o.amount for o in group),
            currency=first.currency,
            issued_at=first.paid_at or first.created_at,
            gateway_payment_id=first.gateway_payment_id,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Reader
# ═══════════════════════════════════════════════════════════════════════════════


class Documents:
    def __init__(self, payments: PaymentRepository, orders: OrderRepository) -> None:
        self._payments = payments
        self._orders = orders

    async def bill(self, payment_id: str) -> Result[Bill, CommerceError]:
        payment = await self._payments.get(payment_id)
        if payment is None:
            return Error(Errors.unknown_payment(payment_id))
        return Bill.of(payment)

    async def invoice(self, order_id: str) -> Result[Invoice, CommerceError]:
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.unknown_order(order_id))
        if order.status is not OrderStatus.PAID:
            return Error(Errors.not_billable(order_id, f"order is {order.status.value}"))
        if order.gateway_order_id is None:
            return Ok(Invoice.of([order]))

        # Orders settled by the same gateway order belong to one checkout
        siblings = [
            o
            for o in await self._orders.for_user(order.user_id)
            if o.gateway_order_id == order.gateway_order_id and o.status is OrderStatus.PAID
        ]
        return Ok(Invoice.of(siblings or [order]))


__all__ = ("Bill", "Invoice", "invoice_number", "Documents")
