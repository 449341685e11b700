"""
Orders — immutable item sets frozen from the cart at checkout.

    from atelier import orders as O

    ledger = O.OrderLedger(carts, O.MemoryOrderRepository(), orchestrator)

    match await ledger.checkout(user_id, [line_a.id, line_b.id]):
        case Ok(receipt):
            receipt.order.amount    # 2·A + B
            receipt.intent          # for the client checkout
"""

from atelier.orders._types import (
    OrderStatus,
    DeliveryStatus,
    OrderItem,
    DeliveryUpdate,
    Order,
)
from atelier.orders._store import OrderRepository, MemoryOrderRepository
from atelier.orders._sqlalchemy import SQLAlchemyOrderRepository
from atelier.orders._saga import SagaStep, Then, step, SagaResult, SagaFailure, run
from atelier.orders._ledger import CheckoutReceipt, OrderLedger

__all__ = (
    # Types
    "OrderStatus",
    "DeliveryStatus",
    "OrderItem",
    "DeliveryUpdate",
    "Order",
    # Storage
    "OrderRepository",
    "MemoryOrderRepository",
    "SQLAlchemyOrderRepository",
    # Saga
    "SagaStep",
    "Then",
    "step",
    "SagaResult",
    "SagaFailure",
    "run",
    # Ledger
    "CheckoutReceipt",
    "OrderLedger",
)
