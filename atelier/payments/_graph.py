"""
Payment verification as a nodnod graph.

Every branch of the protocol is a state node that either validates its
precondition or raises NodeError. The polymorphic outcome picks the one case
whose dependencies resolved.

Architecture:
    VerifySpec (injected)
         │
         ▼
      SpecNode ───────────────┐
         │                    │
         ▼                    ▼
    SignatureNode       FetchPaymentNode
         │                    │
         ├── ForgedCallbackNode
         ├── StoreErrorNode ──┤
         ├── UnknownOrderNode ┤
         └── MatchedPaymentNode
                  │
                  ├── AlreadyPaidNode
                  ├── ClosedPaymentNode
                  └── PendingPaymentNode
                           │
                           ▼
                    CapturedAmountNode
                           │
                           ├── ConfirmedPaymentNode
                           ├── AmountMismatchNode
                           └── AmountLookupFailedNode
                                      │
                  VerifyOutcome (@polymorphic)
                                      │
                                      ▼
                              FinalVerifyNode

Note: no 'from __future__ import annotations' here, nodnod reads the
__compose__ hints at runtime.
"""

import logging
from dataclasses import dataclass, field

from combinators import lift as L
from kungfu import Result, Ok, Error
from nodnod import NodeError, polymorphic, case

from atelier import graph as G
from atelier._types import Clock, Money, utcnow
from atelier.errors import CommerceError, Errors
from atelier.payments._gateway import PaymentGateway
from atelier.payments._signature import signature_matches
from atelier.payments._store import PaymentRepository
from atelier.payments._types import (
    GatewayCallback,
    Payment,
    PaymentGuard,
    PaymentStatus,
    VerifyReceipt,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Input — Spec (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class VerifySpec:
    """
    Everything one verification attempt needs.

    Note: confirm_amount asks the gateway what it actually captured before
    settling. Off by default, it costs a round trip.
    """

    callback: GatewayCallback
    secret: str
    payments: PaymentRepository
    gateway: PaymentGateway
    local_record_id: str | None = None
    confirm_amount: bool = False
    guards: tuple[PaymentGuard, ...] = field(default_factory=tuple)
    clock: Clock = utcnow


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class SpecNode:
    def __init__(self, spec: VerifySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, spec: VerifySpec) -> "SpecNode":
        return cls(spec)


@G.node
class SignatureNode:
    """Recomputes the HMAC. Runs before anything is trusted."""

    def __init__(self, valid: bool, spec: VerifySpec) -> None:
        self.valid = valid
        self.spec = spec

    @classmethod
    def __compose__(cls, spec_node: SpecNode) -> "SignatureNode":
        spec = spec_node.spec
        return cls(signature_matches(spec.secret, spec.callback), spec)


@G.node
class FetchPaymentNode:
    """Loads the payment for the gateway order id."""

    def __init__(
        self,
        payment: Payment | None,
        spec: VerifySpec,
        store_error: Exception | None = None,
    ) -> None:
        self.payment = payment
        self.spec = spec
        self.store_error = store_error

    @classmethod
    async def __compose__(cls, spec_node: SpecNode) -> "FetchPaymentNode":
        spec = spec_node.spec
        result = await L.catching_async(
            lambda: spec.payments.by_gateway_order(spec.callback.gateway_order_id),
            on_error=lambda e: e,
        )

        match result:
            case Ok(payment):
                return cls(payment, spec)
            case Error(err):
                return cls(None, spec, store_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes — Signature & Lookup
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class ForgedCallbackNode:
    """Validates: signature does not match."""

    def __init__(self, spec: VerifySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, signature: SignatureNode) -> "ForgedCallbackNode":
        if signature.valid:
            raise NodeError("Signature valid")
        return cls(signature.spec)


@G.node
class StoreErrorNode:
    """Validates: signature ok, repository failed."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    @classmethod
    def __compose__(
        cls, signature: SignatureNode, fetch: FetchPaymentNode
    ) -> "StoreErrorNode":
        if not signature.valid:
            raise NodeError("Signature invalid")
        if fetch.store_error is None:
            raise NodeError("No store error")
        return cls(fetch.store_error)


@G.node
class UnknownOrderNode:
    """Validates: signature ok, but no payment for this order (or the local id disagrees)."""

    def __init__(self, spec: VerifySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(
        cls, signature: SignatureNode, fetch: FetchPaymentNode
    ) -> "UnknownOrderNode":
        if not signature.valid:
            raise NodeError("Signature invalid")
        if fetch.store_error is not None:
            raise NodeError("Store error")
        payment = fetch.payment
        if payment is not None and payment.matches(fetch.spec.local_record_id):
            raise NodeError("Payment found")
        return cls(fetch.spec)


@G.node
class MatchedPaymentNode:
    """Validates: signature ok, payment found and agrees with the local id."""

    def __init__(self, payment: Payment, spec: VerifySpec) -> None:
        self.payment = payment
        self.spec = spec

    @classmethod
    def __compose__(
        cls, signature: SignatureNode, fetch: FetchPaymentNode
    ) -> "MatchedPaymentNode":
        if not signature.valid:
            raise NodeError("Signature invalid")
        payment = fetch.payment
        if payment is None:
            raise NodeError("No payment")
        if not payment.matches(fetch.spec.local_record_id):
            raise NodeError("Local id mismatch")
        return cls(payment, fetch.spec)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes — Payment Status
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class AlreadyPaidNode:
    """Validates: payment is PAID. Replays land here."""

    def __init__(self, payment: Payment) -> None:
        self.payment = payment

    @classmethod
    def __compose__(cls, matched: MatchedPaymentNode) -> "AlreadyPaidNode":
        if matched.payment.status is not PaymentStatus.PAID:
            raise NodeError("Not paid")
        return cls(matched.payment)


@G.node
class ClosedPaymentNode:
    """Validates: payment is FAILED or REFUNDED."""

    def __init__(self, payment: Payment) -> None:
        self.payment = payment

    @classmethod
    def __compose__(cls, matched: MatchedPaymentNode) -> "ClosedPaymentNode":
        if matched.payment.status not in (PaymentStatus.FAILED, PaymentStatus.REFUNDED):
            raise NodeError("Not closed")
        return cls(matched.payment)


@G.node
class PendingPaymentNode:
    """Validates: payment is PENDING."""

    def __init__(self, payment: Payment, spec: VerifySpec) -> None:
        self.payment = payment
        self.spec = spec

    @classmethod
    def __compose__(cls, matched: MatchedPaymentNode) -> "PendingPaymentNode":
        if matched.payment.status is not PaymentStatus.PENDING:
            raise NodeError("Not pending")
        return cls(matched.payment, matched.spec)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes — Captured Amount
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class CapturedAmountNode:
    """Asks the gateway what it captured (only when confirm_amount is on)."""

    def __init__(
        self,
        pending: PendingPaymentNode,
        captured: Money | None,
        lookup_error: Exception | None = None,
    ) -> None:
        self.pending = pending
        self.captured = captured
        self.lookup_error = lookup_error

    @classmethod
    async def __compose__(cls, pending: PendingPaymentNode) -> "CapturedAmountNode":
        spec = pending.spec
        if not spec.confirm_amount:
            return cls(pending, None)

        result = await L.catching_async(
            lambda: spec.gateway.fetch_payment(spec.callback.gateway_payment_id),
            on_error=lambda e: e,
        )
        match result:
            case Ok(gateway_payment):
                return cls(pending, gateway_payment.amount)
            case Error(err):
                return cls(pending, None, lookup_error=err)


@G.node
class ConfirmedPaymentNode:
    """Validates: amount check off, or the gateway captured exactly the recorded amount."""

    def __init__(self, payment: Payment, spec: VerifySpec) -> None:
        self.payment = payment
        self.spec = spec

    @classmethod
    def __compose__(cls, amount: CapturedAmountNode) -> "ConfirmedPaymentNode":
        pending = amount.pending
        if pending.spec.confirm_amount:
            if amount.lookup_error is not None:
                raise NodeError("Lookup failed")
            if amount.captured != pending.payment.amount:
                raise NodeError("Amount mismatch")
        return cls(pending.payment, pending.spec)


@G.node
class AmountMismatchNode:
    """Validates: gateway captured a different amount."""

    def __init__(self, payment: Payment, captured: Money) -> None:
        self.payment = payment
        self.captured = captured

    @classmethod
    def __compose__(cls, amount: CapturedAmountNode) -> "AmountMismatchNode":
        if amount.captured is None:
            raise NodeError("Nothing captured to compare")
        if amount.captured == amount.pending.payment.amount:
            raise NodeError("Amount matches")
        return cls(amount.pending.payment, amount.captured)


@G.node
class AmountLookupFailedNode:
    """Validates: the gateway could not be asked."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    @classmethod
    def __compose__(cls, amount: CapturedAmountNode) -> "AmountLookupFailedNode":
        if amount.lookup_error is None:
            raise NodeError("Lookup fine")
        return cls(amount.lookup_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Verdict:
    """Exactly one of receipt / error is set."""

    receipt: VerifyReceipt | None = None
    error: CommerceError | None = None


@polymorphic[Verdict]
class VerifyOutcome:
    """
    Polymorphic router — each @case depends on a validated state node.

    Note: only `settle` writes, and only after every check passed.
    """

    @case
    def forged(cls, node: ForgedCallbackNode) -> Verdict:
        """SIGNATURE_INVALID — audit and leave the payment alone."""
        callback = node.spec.callback
        logger.warning(
            "AUDIT signature mismatch: gateway_order=%s gateway_payment=%s local=%s",
            callback.gateway_order_id,
            callback.gateway_payment_id,
            node.spec.local_record_id,
        )
        return Verdict(error=Errors.signature_invalid(callback.gateway_order_id))

    @case
    def store_error(cls, node: StoreErrorNode) -> Verdict:
        return Verdict(error=Errors.store_unavailable(node.error))

    @case
    def unknown_order(cls, node: UnknownOrderNode) -> Verdict:
        return Verdict(error=Errors.unknown_order(node.spec.callback.gateway_order_id))

    @case
    def replay(cls, node: AlreadyPaidNode) -> Verdict:
        """Already paid — success, nothing to apply."""
        return Verdict(receipt=VerifyReceipt(node.payment, newly_paid=False))

    @case
    def closed(cls, node: ClosedPaymentNode) -> Verdict:
        return Verdict(
            error=Errors.payment_closed(node.payment.id, node.payment.status.value)
        )

    @case
    def amount_mismatch(cls, node: AmountMismatchNode) -> Verdict:
        logger.warning(
            "AUDIT amount mismatch on payment %s: recorded %s, captured %s",
            node.payment.id,
            node.payment.amount,
            node.captured,
        )
        return Verdict(error=Errors.amount_mismatch(node.payment.amount, node.captured))

    @case
    def amount_lookup_failed(cls, node: AmountLookupFailedNode) -> Verdict:
        return Verdict(error=Errors.gateway_unavailable(str(node.error)))

    @case
    async def settle(cls, node: ConfirmedPaymentNode) -> Verdict:
        """PENDING → PAID via compare-and-set."""
        spec = node.spec
        payment = node.payment

        for guard in spec.guards:
            veto = await guard(payment)
            if veto is not None:
                logger.warning("payment %s held back: %s", payment.id, veto)
                return Verdict(error=veto)

        settled = await spec.payments.mark_paid(
            payment.id,
            spec.callback.gateway_payment_id,
            spec.callback.gateway_signature,
            spec.clock(),
        )
        if settled is not None:
            return Verdict(receipt=VerifyReceipt(settled, newly_paid=True))

        # Lost the race; the winner decides
        current = await spec.payments.get(payment.id)
        if current is not None and current.is_paid:
            return Verdict(receipt=VerifyReceipt(current, newly_paid=False))
        status = current.status.value if current is not None else "missing"
        return Verdict(error=Errors.payment_closed(payment.id, status))


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FinalVerifyNode:
    """Converts the verdict to a typed Result."""

    def __init__(self, verdict: Verdict) -> None:
        self.verdict = verdict

    @classmethod
    def __compose__(cls, outcome: VerifyOutcome) -> "FinalVerifyNode":
        return cls(outcome.value)

    def to_result(self) -> Result[VerifyReceipt, CommerceError]:
        match self.verdict:
            case Verdict(receipt=receipt, error=None) if receipt is not None:
                return Ok(receipt)
            case Verdict(error=error) if error is not None:
                return Error(error)
            case _:
                raise RuntimeError("verdict carries neither receipt nor error")


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def run_verification(spec: VerifySpec) -> Result[VerifyReceipt, CommerceError]:
    """Run one verification attempt through the graph."""
    node = await G.run(FinalVerifyNode).inject(spec)
    return node.to_result()


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "VerifySpec",
    "Verdict",
    "SpecNode",
    "SignatureNode",
    "FetchPaymentNode",
    "ForgedCallbackNode",
    "StoreErrorNode",
    "UnknownOrderNode",
    "MatchedPaymentNode",
    "AlreadyPaidNode",
    "ClosedPaymentNode",
    "PendingPaymentNode",
    "CapturedAmountNode",
    "ConfirmedPaymentNode",
    "AmountMismatchNode",
    "AmountLookupFailedNode",
    "VerifyOutcome",
    "FinalVerifyNode",
    "run_verification",
)
