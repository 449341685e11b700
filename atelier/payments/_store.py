"""
Payment repository protocol and in-memory implementation.

Every status change is a compare-and-set on the current status: the write
only happens if the row is still in the expected state, and the caller learns
whether it won. This is what keeps a duplicate verification from settling
a payment twice.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from atelier.payments._types import Payment, PaymentStatus


class PaymentRepository(Protocol):
    async def insert(self, payment: Payment) -> None:
        ...

    async def get(self, payment_id: str) -> Payment | None:
        ...

    async def by_gateway_order(self, gateway_order_id: str) -> Payment | None:
        ...

    async def for_project(self, project_id: str) -> list[Payment]:
        ...

    async def for_estimate(self, estimate_id: str) -> list[Payment]:
        ...

    async def mark_paid(
        self,
        payment_id: str,
        gateway_payment_id: str,
        signature: str,
        at: datetime,
    ) -> Payment | None:
        """PENDING → PAID. None if the payment was not pending."""
        ...

    async def mark_failed(self, payment_id: str, reason: str) -> Payment | None:
        """PENDING → FAILED. None if the payment was not pending."""
        ...

    async def mark_refunded(self, payment_id: str) -> Payment | None:
        """PAID → REFUNDED. None if the payment was not paid."""
        ...

    async def stale_pending(self, before: datetime) -> list[Payment]:
        """Pending payments created before `before`, not yet stamped abandoned."""
        ...

    async def stamp_abandoned(self, payment_ids: Sequence[str], at: datetime) -> int:
        ...


class MemoryPaymentRepository:
    def __init__(self) -> None:
        self._payments: dict[str, Payment] = {}

    async def insert(self, payment: Payment) -> None:
        self._payments[payment.id] = payment

    async def get(self, payment_id: str) -> Payment | None:
        return self._payments.get(payment_id)

    async def by_gateway_order(self, gateway_order_id: str) -> Payment | None:
        for payment in self._payments.values():
            if payment.gateway_order_id == gateway_order_id:
                return payment
        return None

    async def for_project(self, project_id: str) -> list[Payment]:
        return [p for p in self._payments.values() if p.project_id == project_id]

    async def for_estimate(self, estimate_id: str) -> list[Payment]:
        return [p for p in self._payments.values() if p.estimate_id == estimate_id]

    async def mark_paid(
        self,
        payment_id: str,
        gateway_payment_id: str,
        signature: str,
        at: datetime,
    ) -> Payment | None:
        current = self._payments.get(payment_id)
        if current is None or current.status is not PaymentStatus.PENDING:
            return None
        updated = current.paid(gateway_payment_id, signature, at)
        self._payments[payment_id] = updated
        return updated

    async def mark_failed(self, payment_id: str, reason: str) -> Payment | None:
        return self._swap(
            payment_id,
            PaymentStatus.PENDING,
            status=PaymentStatus.FAILED,
            failure_reason=reason,
        )

    async def mark_refunded(self, payment_id: str) -> Payment | None:
        return self._swap(payment_id, PaymentStatus.PAID, status=PaymentStatus.REFUNDED)

    async def stale_pending(self, before: datetime) -> list[Payment]:
        return [
            p
            for p in self._payments.values()
            if p.is_pending and p.abandoned_at is None and p.created_at < before
        ]

    async def stamp_abandoned(self, payment_ids: Sequence[str], at: datetime) -> int:
        stamped = 0
        for payment_id in payment_ids:
            if self._swap(payment_id, PaymentStatus.PENDING, abandoned_at=at) is not None:
                stamped += 1
        return stamped

    def _swap(
        self, payment_id: str, expected: PaymentStatus, **changes: object
    ) -> Payment | None:
        current = self._payments.get(payment_id)
        if current is None or current.status is not expected:
            return None
        updated = dataclasses.replace(current, **changes)  # type: ignore[arg-type]
        self._payments[payment_id] = updated
        return updated


__all__ = ("PaymentRepository", "MemoryPaymentRepository")
