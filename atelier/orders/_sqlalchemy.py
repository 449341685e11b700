"""
SQLAlchemy order repository. Items live in a JSON column, frozen at insert.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult

from atelier.db import OrderTable, SessionFactory
from atelier.orders._types import (
    DeliveryStatus,
    DeliveryUpdate,
    Order,
    OrderItem,
    OrderStatus,
)


def _item_to_json(item: OrderItem) -> dict[str, Any]:
    return {
        "product_id": item.product_id,
        "title": item.title,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "project_id": item.project_id,
        "area": item.area,
        "image_url": item.image_url,
    }


def _to_order(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        items=tuple(OrderItem(**item) for item in row.items),
        amount=row.amount,
        currency=row.currency,
        status=OrderStatus(row.status),
        delivery_status=DeliveryStatus(row.delivery_status),
        created_at=row.created_at,
        updated_at=row.updated_at,
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        tracking_id=row.tracking_id,
        estimated_delivery=row.estimated_delivery,
        paid_at=row.paid_at,
    )


class SQLAlchemyOrderRepository:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def insert(self, order: Order) -> None:
        async with self._session_factory() as session:
            session.add(
                OrderTable(
                    id=order.id,
                    user_id=order.user_id,
                    items=[_item_to_json(item) for item in order.items],
                    amount=order.amount,
                    currency=order.currency,
                    gateway_order_id=order.gateway_order_id,
                    gateway_payment_id=order.gateway_payment_id,
                    status=order.status.value,
                    delivery_status=order.delivery_status.value,
                    tracking_id=order.tracking_id,
                    estimated_delivery=order.estimated_delivery,
                    created_at=order.created_at,
                    paid_at=order.paid_at,
                    updated_at=order.updated_at,
                )
            )
            await session.commit()

    async def get(self, order_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.get(OrderTable, order_id)
            return _to_order(row) if row is not None else None

    async def for_user(self, user_id: str) -> list[Order]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(OrderTable)
                .where(OrderTable.user_id == user_id)
                .order_by(OrderTable.created_at.desc())
            )
            return [_to_order(row) for row in rows]

    async def attach_gateway_order(self, order_id: str, gateway_order_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(OrderTable)
                .where(OrderTable.id == order_id)
                .values(gateway_order_id=gateway_order_id)
            )
            await session.commit()

    async def mark_paid(
        self, order_id: str, gateway_payment_id: str | None, at: datetime
    ) -> Order | None:
        return await self._swap(
            order_id,
            OrderTable.status == OrderStatus.PENDING.value,
            status=OrderStatus.PAID.value,
            gateway_payment_id=gateway_payment_id,
            paid_at=at,
            updated_at=at,
        )

    async def mark_failed(self, order_id: str, at: datetime) -> Order | None:
        return await self._swap(
            order_id,
            OrderTable.status == OrderStatus.PENDING.value,
            status=OrderStatus.FAILED.value,
            updated_at=at,
        )

    async def advance_delivery(
        self,
        order_id: str,
        expected: DeliveryStatus,
        to: DeliveryStatus,
        update: DeliveryUpdate,
        at: datetime,
    ) -> Order | None:
        values: dict[str, Any] = {"delivery_status": to.value, "updated_at": at}
        if update.tracking_id is not None:
            values["tracking_id"] = update.tracking_id
        if update.estimated_delivery is not None:
            values["estimated_delivery"] = update.estimated_delivery
        return await self._swap(
            order_id, OrderTable.delivery_status == expected.value, **values
        )

    async def _swap(self, order_id: str, condition: Any, **values: Any) -> Order | None:
        async with self._session_factory() as session:
            result = cast(
                CursorResult[Any],
                await session.execute(
                    update(OrderTable)
                    .where(OrderTable.id == order_id, condition)
                    .values(**values)
                ),
            )
            await session.commit()
            if result.rowcount == 0:
                return None
            row = await session.get(OrderTable, order_id, populate_existing=True)
            return _to_order(row) if row is not None else None


__all__ = ("SQLAlchemyOrderRepository",)
