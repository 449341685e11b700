"""
SQLAlchemy payment repository.

Status changes are single `UPDATE ... WHERE id = :id AND status = :expected`
statements; `rowcount` decides who won.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult

from atelier.db import PaymentTable, SessionFactory
from atelier.payments._types import Payment, PaymentStatus, PaymentType


def _to_payment(row: PaymentTable) -> Payment:
    return Payment(
        id=row.id,
        type=PaymentType(row.payment_type),
        amount=row.amount,
        currency=row.currency,
        gateway_order_id=row.gateway_order_id,
        status=PaymentStatus(row.status),
        created_at=row.created_at,
        project_id=row.project_id,
        estimate_id=row.estimate_id,
        order_id=row.order_id,
        user_id=row.user_id,
        gateway_payment_id=row.gateway_payment_id,
        gateway_signature=row.gateway_signature,
        failure_reason=row.failure_reason,
        notes=dict(row.notes or {}),
        paid_at=row.paid_at,
        abandoned_at=row.abandoned_at,
    )


class SQLAlchemyPaymentRepository:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def insert(self, payment: Payment) -> None:
        async with self._session_factory() as session:
            session.add(
                PaymentTable(
                    id=payment.id,
                    project_id=payment.project_id,
                    estimate_id=payment.estimate_id,
                    order_id=payment.order_id,
                    user_id=payment.user_id,
                    payment_type=payment.type.value,
                    amount=payment.amount,
                    currency=payment.currency,
                    gateway_order_id=payment.gateway_order_id,
                    gateway_payment_id=payment.gateway_payment_id,
                    gateway_signature=payment.gateway_signature,
                    status=payment.status.value,
                    failure_reason=payment.failure_reason,
                    notes=dict(payment.notes),
                    created_at=payment.created_at,
                    paid_at=payment.paid_at,
                    abandoned_at=payment.abandoned_at,
                )
            )
            await session.commit()

    async def get(self, payment_id: str) -> Payment | None:
        async with self._session_factory() as session:
            row = await session.get(PaymentTable, payment_id)
            return _to_payment(row) if row is not None else None

    async def by_gateway_order(self, gateway_order_id: str) -> Payment | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(PaymentTable).where(PaymentTable.gateway_order_id == gateway_order_id)
            )
            return _to_payment(row) if row is not None else None

    async def for_project(self, project_id: str) -> list[Payment]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(PaymentTable)
                .where(PaymentTable.project_id == project_id)
                .order_by(PaymentTable.created_at)
            )
            return [_to_payment(row) for row in rows]

    async def for_estimate(self, estimate_id: str) -> list[Payment]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(PaymentTable)
                .where(PaymentTable.estimate_id == estimate_id)
                .order_by(PaymentTable.created_at)
            )
            return [_to_payment(row) for row in rows]

    async def mark_paid(
        self,
        payment_id: str,
        gateway_payment_id: str,
        signature: str,
        at: datetime,
    ) -> Payment | None:
        return await self._swap(
            payment_id,
            PaymentStatus.PENDING,
            status=PaymentStatus.PAID.value,
            gateway_payment_id=gateway_payment_id,
            gateway_signature=signature,
            paid_at=at,
        )

    async def mark_failed(self, payment_id: str, reason: str) -> Payment | None:
        return await self._swap(
            payment_id,
            PaymentStatus.PENDING,
            status=PaymentStatus.FAILED.value,
            failure_reason=reason,
        )

    async def mark_refunded(self, payment_id: str) -> Payment | None:
        return await self._swap(
            payment_id, PaymentStatus.PAID, status=PaymentStatus.REFUNDED.value
        )

    async def stale_pending(self, before: datetime) -> list[Payment]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(PaymentTable).where(
                    PaymentTable.status == PaymentStatus.PENDING.value,
                    PaymentTable.abandoned_at.is_(None),
                    PaymentTable.created_at < before,
                )
            )
            return [_to_payment(row) for row in rows]

    async def stamp_abandoned(self, payment_ids: Sequence[str], at: datetime) -> int:
        if not payment_ids:
            return 0
        async with self._session_factory() as session:
            result = cast(
                CursorResult[Any],
                await session.execute(
                    update(PaymentTable)
                    .where(
                        PaymentTable.id.in_(list(payment_ids)),
                        PaymentTable.status == PaymentStatus.PENDING.value,
                    )
                    .values(abandoned_at=at)
                ),
            )
            await session.commit()
            return result.rowcount

    async def _swap(
        self, payment_id: str, expected: PaymentStatus, **values: Any
    ) -> Payment | None:
        async with self._session_factory() as session:
            result = cast(
                CursorResult[Any],
                await session.execute(
                    update(PaymentTable)
                    .where(
                        PaymentTable.id == payment_id,
                        PaymentTable.status == expected.value,
                    )
                    .values(**values)
                ),
            )
            await session.commit()
            if result.rowcount == 0:
                return None
            row = await session.get(PaymentTable, payment_id, populate_existing=True)
            return _to_payment(row) if row is not None else None


__all__ = ("SQLAlchemyPaymentRepository",)
