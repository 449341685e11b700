"""
Payment orchestrator — intents in, verified payments out.

    orchestrator = PaymentOrchestrator(gateway, MemoryPaymentRepository(), key_secret=secret)

    intent = await orchestrator.create_intent(IntentRequest(amount=10_500_00, order_id=order.id))
    # ... client completes the gateway checkout ...
    receipt = await orchestrator.verify(callback)

Guarantees:
    - no Payment row unless the gateway handed out an order id
    - nothing is marked paid without a verified signature
    - verify for one gateway order runs one at a time; a replay is a success
      that changes nothing
    - payments against one estimate settle one at a time, so milestone guards
      see every earlier settlement
    - effects (`on_paid`) run once, after the paid status is committed
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from combinators import lift as L
from kungfu import Result, Ok, Error, LazyCoroResult

from atelier._locks import KeyedLocks
from atelier._types import Clock, new_id, utcnow
from atelier.errors import CommerceError, ErrorCategory, Errors
from atelier.payments._gateway import GatewayFailure, PaymentGateway
from atelier.payments._graph import VerifySpec, run_verification
from atelier.payments._store import PaymentRepository
from atelier.payments._types import (
    GatewayCallback,
    IntentRequest,
    Payment,
    PaymentEffect,
    PaymentGuard,
    PaymentIntent,
    PaymentStatus,
    VerifyReceipt,
)

logger = logging.getLogger(__name__)

RECEIPT_MAX_LENGTH = 40


class PaymentOrchestrator:
    def __init__(
        self,
        gateway: PaymentGateway,
        payments: PaymentRepository,
        *,
        key_secret: str,
        currency: str = "INR",
        gateway_timeout: float = 10.0,
        confirm_amount: bool = False,
        pending_ttl: timedelta = timedelta(minutes=30),
        clock: Clock = utcnow,
    ) -> None:
        self.gateway = gateway
        self.payments = payments
        self.currency = currency
        self._key_secret = key_secret
        self._gateway_timeout = gateway_timeout
        self._confirm_amount = confirm_amount
        self._pending_ttl = pending_ttl
        self._clock = clock
        self._locks = KeyedLocks()
        self._effects: list[PaymentEffect] = []
        self._guards: list[PaymentGuard] = []

    # ═══════════════════════════════════════════════════════════════════════════
    # Hooks
    # ═══════════════════════════════════════════════════════════════════════════

    def on_paid(self, effect: PaymentEffect) -> PaymentEffect:
        """Register an effect to run once per newly paid payment."""
        self._effects.append(effect)
        return effect

    def guard(self, check: PaymentGuard) -> PaymentGuard:
        """Register a check that can hold back settling a pending payment."""
        self._guards.append(check)
        return check

    # ═══════════════════════════════════════════════════════════════════════════
    # create_intent
    # ═══════════════════════════════════════════════════════════════════════════

    def create_intent(self, request: IntentRequest) -> LazyCoroResult[PaymentIntent, CommerceError]:
        """
        Open a gateway order and record a pending payment.

        Lazy: nothing happens until awaited, so it drops straight into a saga step.
        """
        return LazyCoroResult(lambda: self._create_intent(request))

    async def _create_intent(self, request: IntentRequest) -> Result[PaymentIntent, CommerceError]:
        if request.amount <= 0:
            return Error(Errors.invalid_amount(f"Amount must be positive, got {request.amount}"))
        if request.currency != self.currency:
            return Error(Errors.unsupported_currency(request.currency, self.currency))

        payment_id = new_id("pay")
        notes = {
            key: value
            for key, value in {
                "payment_id": payment_id,
                "payment_type": request.type.value,
                "project_id": request.project_id,
                "estimate_id": request.estimate_id,
                "order_id": request.order_id,
                "user_id": request.user_id,
                **request.notes,
            }.items()
            if value is not None
        }

        opened = await L.catching_async(
            lambda: asyncio.wait_for(
                self.gateway.create_order(
                    request.amount,
                    request.currency,
                    payment_id[:RECEIPT_MAX_LENGTH],
                    notes,
                ),
                self._gateway_timeout,
            ),
            on_error=self._gateway_error,
        )

        match opened:
            case Error(e):
                logger.warning(
                    "gateway order for %s %s not opened: %s",
                    request.type.value,
                    request.order_id or request.estimate_id,
                    e,
                )
                return Error(e)
            case Ok(gateway_order):
                pass

        payment = Payment(
            id=payment_id,
            type=request.type,
            amount=request.amount,
            currency=request.currency,
            gateway_order_id=gateway_order.id,
            status=PaymentStatus.PENDING,
            created_at=self._clock(),
            project_id=request.project_id,
            estimate_id=request.estimate_id,
            order_id=request.order_id,
            user_id=request.user_id,
            notes=notes,
        )
        await self.payments.insert(payment)
        logger.info(
            "payment %s pending: %s %s via %s",
            payment.id,
            payment.amount,
            payment.currency,
            payment.gateway_order_id,
        )

        return Ok(
            PaymentIntent(
                payment_id=payment.id,
                gateway_order_id=payment.gateway_order_id,
                amount=payment.amount,
                currency=payment.currency,
                key_id=self.gateway.key_id,
            )
        )

    def _gateway_error(self, exc: Exception) -> CommerceError:
        if isinstance(exc, asyncio.TimeoutError):
            return Errors.gateway_timeout(self._gateway_timeout)
        if isinstance(exc, GatewayFailure) and exc.timed_out:
            return Errors.gateway_timeout(self._gateway_timeout)
        return Errors.gateway_unavailable(str(exc) or type(exc).__name__)

    # ═══════════════════════════════════════════════════════════════════════════
    # verify
    # ═══════════════════════════════════════════════════════════════════════════

    async def verify(
        self,
        callback: GatewayCallback,
        local_record_id: str | None = None,
    ) -> Result[VerifyReceipt, CommerceError]:
        """
        Verify a gateway callback and settle the payment.

        Replays return Ok with newly_paid=False and apply nothing.
        """
        spec = VerifySpec(
            callback=callback,
            secret=self._key_secret,
            payments=self.payments,
            gateway=self.gateway,
            local_record_id=local_record_id,
            confirm_amount=self._confirm_amount,
            guards=tuple(self._guards),
            clock=self._clock,
        )

        async with self._locks.hold(callback.gateway_order_id):
            async with self._settling(callback.gateway_order_id):
                result = await run_verification(spec)

            match result:
                case Ok(receipt) if receipt.newly_paid:
                    logger.info(
                        "payment %s paid (%s)", receipt.payment.id, receipt.payment.bill_number
                    )
                    await self._apply_effects(receipt.payment)
                case Ok(receipt):
                    logger.info("payment %s verify replayed", receipt.payment.id)
                case Error(e) if e.category is not ErrorCategory.SECURITY:
                    logger.info("verify for %s rejected: %s", callback.gateway_order_id, e)
                case Error(_):
                    pass

            return result

    @asynccontextmanager
    async def _settling(self, gateway_order_id: str) -> AsyncIterator[None]:
        """
        Serialize settling across milestone payments of one estimate.

        Guards read the estimate's paid rows, so two payments for the same
        estimate must not pass their guards side by side.
        Lock order: gateway order, then estimate.
        """
        found = await L.catching_async(
            lambda: self.payments.by_gateway_order(gateway_order_id),
            on_error=lambda e: e,
        )
        match found:
            case Ok(Payment(estimate_id=str(estimate_id))):
                async with self._locks.hold(f"estimate:{estimate_id}"):
                    yield
            case _:
                # lookup failures surface from the verification graph
                yield

    async def _apply_effects(self, payment: Payment) -> None:
        for effect in self._effects:
            try:
                await effect(payment)
            except Exception:
                logger.exception("effect %r failed for payment %s", effect, payment.id)

    # ═══════════════════════════════════════════════════════════════════════════
    # Other transitions
    # ═══════════════════════════════════════════════════════════════════════════

    async def record_failure(
        self, gateway_order_id: str, reason: str
    ) -> Result[Payment, CommerceError]:
        """Gateway reported the attempt failed: PENDING → FAILED."""
        async with self._locks.hold(gateway_order_id):
            payment = await self.payments.by_gateway_order(gateway_order_id)
            if payment is None:
                return Error(Errors.unknown_order(gateway_order_id))
            if payment.status is PaymentStatus.FAILED:
                return Ok(payment)

            failed = await self.payments.mark_failed(payment.id, reason)
            if failed is None:
                return Error(Errors.payment_closed(payment.id, payment.status.value))

        logger.info("payment %s failed at gateway: %s", failed.id, reason)
        return Ok(failed)

    async def refund(self, payment_id: str) -> Result[Payment, CommerceError]:
        """Operator action: PAID → REFUNDED. Unlocks recompute from paid rows only."""
        payment = await self.payments.get(payment_id)
        if payment is None:
            return Error(Errors.unknown_payment(payment_id))

        async with self._locks.hold(payment.gateway_order_id):
            refunded = await self.payments.mark_refunded(payment_id)
            if refunded is None:
                current = await self.payments.get(payment_id)
                if current is not None and current.status is PaymentStatus.REFUNDED:
                    return Ok(current)
                return Error(Errors.payment_closed(payment_id, payment.status.value))

        logger.info("payment %s refunded", payment_id)
        return Ok(refunded)

    async def sweep_abandoned(self, now: datetime | None = None) -> list[Payment]:
        """
        Stamp `abandoned_at` on pending payments older than the TTL.

        Informational only: status stays PENDING and a late verify still settles.
        """
        at = now or self._clock()
        stale = await self.payments.stale_pending(at - self._pending_ttl)
        if not stale:
            return []
        stamped = await self.payments.stamp_abandoned([p.id for p in stale], at)
        logger.info("swept %d abandoned pending payments", stamped)
        return stale

    async def get(self, payment_id: str) -> Result[Payment, CommerceError]:
        payment = await self.payments.get(payment_id)
        if payment is None:
            return Error(Errors.unknown_payment(payment_id))
        return Ok(payment)


__all__ = ("PaymentOrchestrator", "RECEIPT_MAX_LENGTH")
