"""
Payment types — records, intents, gateway callbacks.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from atelier._types import Money
from atelier.errors import CommerceError

# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentType(str, Enum):
    """Milestone a payment settles. Cart orders are always FULL."""

    ADVANCE = "advance"
    BALANCE = "balance"
    FULL = "full"


class PaymentStatus(str, Enum):
    """
    Lifecycle:
        PENDING → PAID      (verified signature only)
                → FAILED    (gateway reported failure)
        PAID    → REFUNDED  (operator action)

    Note: an abandoned attempt stays PENDING; the sweep only stamps
    `abandoned_at`.
    """

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Record
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Payment:
    id: str
    type: PaymentType
    amount: Money
    currency: str
    gateway_order_id: str
    status: PaymentStatus
    created_at: datetime
    project_id: str | None = None
    estimate_id: str | None = None
    order_id: str | None = None
    user_id: str | None = None
    gateway_payment_id: str | None = None
    gateway_signature: str | None = None
    failure_reason: str | None = None
    notes: Mapping[str, str] = field(default_factory=dict)
    paid_at: datetime | None = None
    abandoned_at: datetime | None = None

    @property
    def is_paid(self) -> bool:
        return self.status is PaymentStatus.PAID

    @property
    def is_pending(self) -> bool:
        return self.status is PaymentStatus.PENDING

    @property
    def bill_number(self) -> str:
        return f"BILL-{self.id.removeprefix('pay_')[:8].upper()}"

    def matches(self, local_record_id: str | None) -> bool:
        """Does the caller's local id point at this payment (or its order)?"""
        if local_record_id is None:
            return True
        return local_record_id in (self.id, self.order_id, self.estimate_id)

    def paid(self, gateway_payment_id: str, signature: str, at: datetime) -> Payment:
        return dataclasses.replace(
            self,
            status=PaymentStatus.PAID,
            gateway_payment_id=gateway_payment_id,
            gateway_signature=signature,
            paid_at=at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Intents & Callbacks
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class IntentRequest:
    """What to charge. The amount is computed server-side, never by the client."""

    amount: Money
    type: PaymentType = PaymentType.FULL
    currency: str = "INR"
    project_id: str | None = None
    estimate_id: str | None = None
    order_id: str | None = None
    user_id: str | None = None
    notes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    """Handed to the client to open the gateway checkout."""

    payment_id: str
    gateway_order_id: str
    amount: Money
    currency: str
    key_id: str


@dataclass(frozen=True, slots=True)
class GatewayCallback:
    """What the gateway hands the client after a completed checkout."""

    gateway_order_id: str
    gateway_payment_id: str
    gateway_signature: str


@dataclass(frozen=True, slots=True)
class VerifyReceipt:
    """
    Successful verification.

    Note: newly_paid is False for a replay. Effects only run when True.
    """

    payment: Payment
    newly_paid: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class GatewayOrder:
    id: str
    amount: Money
    currency: str
    receipt: str | None = None


@dataclass(frozen=True, slots=True)
class GatewayPayment:
    id: str
    order_id: str
    amount: Money
    status: str


# ═══════════════════════════════════════════════════════════════════════════════
# Hooks
# ═══════════════════════════════════════════════════════════════════════════════

PaymentEffect = Callable[[Payment], Awaitable[None]]
"""Runs once after a payment is committed as paid."""

PaymentGuard = Callable[[Payment], Awaitable[CommerceError | None]]
"""May veto settling a pending payment. None means go ahead."""


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "PaymentType",
    "PaymentStatus",
    "Payment",
    "IntentRequest",
    "PaymentIntent",
    "GatewayCallback",
    "VerifyReceipt",
    "GatewayOrder",
    "GatewayPayment",
    "PaymentEffect",
    "PaymentGuard",
)
