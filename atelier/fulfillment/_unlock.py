"""
Unlock state — derived from paid payments, never stored.

    advance or full paid  → renders unlocked
    balance or full paid  → final files unlocked

Because it is recomputed on every read, a late or out-of-order verification
fixes the flags by itself, and a refund relocks.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from atelier.notify import UNLOCK_CHANGED, Notification, NotificationSink, notify
from atelier.payments import Payment, PaymentRepository, PaymentType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnlockState:
    renders_unlocked: bool = False
    final_files_unlocked: bool = False


def compute_unlock(payments: Iterable[Payment]) -> UnlockState:
    """Only paid design milestones count; product orders never unlock anything."""
    paid_types = {p.type for p in payments if p.is_paid and p.estimate_id is not None}
    return UnlockState(
        renders_unlocked=bool(paid_types & {PaymentType.ADVANCE, PaymentType.FULL}),
        final_files_unlocked=bool(paid_types & {PaymentType.BALANCE, PaymentType.FULL}),
    )


class UnlockReader:
    def __init__(
        self,
        payments: PaymentRepository,
        sink: NotificationSink | None = None,
        notify_timeout: float = 2.0,
    ) -> None:
        self._payments = payments
        self._sink = sink
        self._notify_timeout = notify_timeout

    async def read(self, project_id: str) -> UnlockState:
        return compute_unlock(await self._payments.for_project(project_id))

    async def on_payment_verified(self, payment: Payment) -> None:
        """Tell the sink when a newly paid milestone changed what the project can see."""
        if payment.project_id is None or payment.estimate_id is None:
            return

        payments = await self._payments.for_project(payment.project_id)
        after = compute_unlock(payments)
        before = compute_unlock(p for p in payments if p.id != payment.id)
        if after == before:
            return

        logger.info("project %s unlock state now %s", payment.project_id, after)
        if self._sink is not None:
            await notify(
                self._sink,
                Notification(
                    UNLOCK_CHANGED,
                    payment.project_id,
                    {
                        "renders_unlocked": after.renders_unlocked,
                        "final_files_unlocked": after.final_files_unlocked,
                        "payment_id": payment.id,
                    },
                ),
                self._notify_timeout,
            )


__all__ = ("UnlockState", "compute_unlock", "UnlockReader")
