"""
Milestone billing — advance / balance / full payments against an estimate.

    billing = MilestoneBilling(estimates, orchestrator)
    intent = await billing.open("proj1", PaymentType.ADVANCE)

The advance is 30% of the estimate total (rounded), the balance is the rest,
so advance + balance == total exactly. The paid sum for an estimate never
exceeds its total: checked when an intent is opened and again, as a guard,
right before a payment is settled.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from kungfu import Result, Ok, Error

from atelier._locks import KeyedLocks
from atelier.errors import CommerceError, Errors
from atelier.estimate import (
    DEFAULT_ADVANCE_PERCENT,
    Estimate,
    EstimateService,
    MilestoneAmounts,
    split_milestones,
)
from atelier.payments._orchestrator import PaymentOrchestrator
from atelier.payments._types import IntentRequest, Payment, PaymentIntent, PaymentType

logger = logging.getLogger(__name__)


class MilestoneBilling:
    def __init__(
        self,
        estimates: EstimateService,
        orchestrator: PaymentOrchestrator,
        advance_pct: Decimal = DEFAULT_ADVANCE_PERCENT,
    ) -> None:
        self._estimates = estimates
        self._orchestrator = orchestrator
        self.advance_pct = advance_pct
        self._locks = KeyedLocks()
        orchestrator.guard(self._within_estimate)

    def split(self, estimate: Estimate) -> MilestoneAmounts:
        return split_milestones(estimate.total_amount, self.advance_pct)

    def amount_for(self, estimate: Estimate, payment_type: PaymentType) -> int:
        amounts = self.split(estimate)
        match payment_type:
            case PaymentType.ADVANCE:
                return amounts.advance
            case PaymentType.BALANCE:
                return amounts.balance
            case PaymentType.FULL:
                return amounts.full

    async def open(
        self,
        project_id: str,
        payment_type: PaymentType,
        estimate_id: str | None = None,
        user_id: str | None = None,
    ) -> Result[PaymentIntent, CommerceError]:
        """Open a payment intent for one milestone of the project's estimate."""
        if estimate_id is not None:
            resolved = await self._estimates.get(estimate_id)
        else:
            resolved = await self._estimates.governing(project_id)

        match resolved:
            case Error(e):
                return Error(e)
            case Ok(estimate):
                pass

        if estimate.project_id != project_id:
            return Error(Errors.unknown_estimate(estimate.id))

        async with self._locks.hold(estimate.id):
            paid = await self._paid(estimate.id)
            amount = self.amount_for(estimate, payment_type)

            if any(p.type is payment_type for p in paid):
                return Error(Errors.milestone_already_paid(estimate.id, payment_type.value))
            paid_total = sum(p.amount for p in paid)
            if paid_total + amount > estimate.total_amount:
                return Error(
                    Errors.milestone_exceeds_total(
                        estimate.id, paid_total, amount, estimate.total_amount
                    )
                )

            logger.info(
                "opening %s payment of %s for estimate %s",
                payment_type.value,
                amount,
                estimate.number,
            )
            return await self._orchestrator.create_intent(
                IntentRequest(
                    amount=amount,
                    type=payment_type,
                    currency=self._orchestrator.currency,
                    project_id=project_id,
                    estimate_id=estimate.id,
                    user_id=user_id,
                    notes={"estimate_number": estimate.number},
                )
            )

    async def _paid(self, estimate_id: str) -> list[Payment]:
        payments = await self._orchestrator.payments.for_estimate(estimate_id)
        return [p for p in payments if p.is_paid]

    async def _within_estimate(self, payment: Payment) -> CommerceError | None:
        """Guard: a duplicate milestone or an overpayment is never settled."""
        if payment.estimate_id is None:
            return None

        estimate = await self._estimates.repository.get(payment.estimate_id)
        if estimate is None:
            return Errors.unknown_estimate(payment.estimate_id)

        paid = [p for p in await self._paid(payment.estimate_id) if p.id != payment.id]
        if any(p.type is payment.type for p in paid):
            return Errors.milestone_already_paid(estimate.id, payment.type.value)
        paid_total = sum(p.amount for p in paid)
        if paid_total + payment.amount > estimate.total_amount:
            return Errors.milestone_exceeds_total(
                estimate.id, paid_total, payment.amount, estimate.total_amount
            )
        return None


__all__ = ("MilestoneBilling",)
