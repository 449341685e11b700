"""
Error taxonomy — every expected failure is a value, not an exception.

Domain operations return `Result[T, CommerceError]`. The `category` of an
error tells the caller what to do:

    VALIDATION  — fix the input, nothing changed
    CONFLICT    — state moved under you, re-fetch
    SECURITY    — verification failed, payment stays pending, audit-logged
    TRANSIENT   — gateway trouble, safe to retry

Example:
    from atelier.errors import Errors, ErrorCategory

    match await cart.add("p1", 0, snapshot=snap):
        case Error(e) if e.category is ErrorCategory.VALIDATION:
            print(e.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

# ═══════════════════════════════════════════════════════════════════════════════
# Kinds & Categories
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorCategory(Enum):
    VALIDATION = auto()
    CONFLICT = auto()
    SECURITY = auto()
    TRANSIENT = auto()


class ErrorKind(Enum):
    """Kinds of commerce errors."""

    # Validation
    INVALID_QUANTITY = auto()
    INVALID_LINE_KEY = auto()
    EMPTY_SELECTION = auto()
    NO_PRICING_INPUT = auto()
    INVALID_AMOUNT = auto()
    UNSUPPORTED_CURRENCY = auto()

    # Conflict
    UNKNOWN_ORDER = auto()
    UNKNOWN_LINE = auto()
    UNKNOWN_PAYMENT = auto()
    UNKNOWN_ESTIMATE = auto()
    INVALID_TRANSITION = auto()
    PAYMENT_CLOSED = auto()
    MILESTONE_ALREADY_PAID = auto()
    MILESTONE_EXCEEDS_TOTAL = auto()
    NOT_BILLABLE = auto()

    # Security
    SIGNATURE_INVALID = auto()
    AMOUNT_MISMATCH = auto()

    # Transient
    GATEWAY_UNAVAILABLE = auto()
    GATEWAY_TIMEOUT = auto()
    STORE_UNAVAILABLE = auto()


_CATEGORIES: dict[ErrorKind, ErrorCategory] = {
    ErrorKind.INVALID_QUANTITY: ErrorCategory.VALIDATION,
    ErrorKind.INVALID_LINE_KEY: ErrorCategory.VALIDATION,
    ErrorKind.EMPTY_SELECTION: ErrorCategory.VALIDATION,
    ErrorKind.NO_PRICING_INPUT: ErrorCategory.VALIDATION,
    ErrorKind.INVALID_AMOUNT: ErrorCategory.VALIDATION,
    ErrorKind.UNSUPPORTED_CURRENCY: ErrorCategory.VALIDATION,
    ErrorKind.UNKNOWN_ORDER: ErrorCategory.CONFLICT,
    ErrorKind.UNKNOWN_LINE: ErrorCategory.CONFLICT,
    ErrorKind.UNKNOWN_PAYMENT: ErrorCategory.CONFLICT,
    ErrorKind.UNKNOWN_ESTIMATE: ErrorCategory.CONFLICT,
    ErrorKind.INVALID_TRANSITION: ErrorCategory.CONFLICT,
    ErrorKind.PAYMENT_CLOSED: ErrorCategory.CONFLICT,
    ErrorKind.MILESTONE_ALREADY_PAID: ErrorCategory.CONFLICT,
    ErrorKind.MILESTONE_EXCEEDS_TOTAL: ErrorCategory.CONFLICT,
    ErrorKind.NOT_BILLABLE: ErrorCategory.CONFLICT,
    ErrorKind.SIGNATURE_INVALID: ErrorCategory.SECURITY,
    ErrorKind.AMOUNT_MISMATCH: ErrorCategory.SECURITY,
    ErrorKind.GATEWAY_UNAVAILABLE: ErrorCategory.TRANSIENT,
    ErrorKind.GATEWAY_TIMEOUT: ErrorCategory.TRANSIENT,
    ErrorKind.STORE_UNAVAILABLE: ErrorCategory.TRANSIENT,
}

VERIFICATION_FAILED_MESSAGE = "Payment could not be verified. Please contact support."
RETRY_LATER_MESSAGE = "Payment service is temporarily unavailable. Please try again."


# ═══════════════════════════════════════════════════════════════════════════════
# CommerceError
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CommerceError:
    """
    Commerce operation error.

    Note: message is for logs and operators. Show `public_message` to users,
    security failures never leak their detail.
    """

    kind: ErrorKind
    message: str
    detail: Any | None = None

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self.kind]

    @property
    def retryable(self) -> bool:
        return self.category is ErrorCategory.TRANSIENT

    @property
    def public_message(self) -> str:
        match self.category:
            case ErrorCategory.SECURITY:
                return VERIFICATION_FAILED_MESSAGE
            case ErrorCategory.TRANSIENT:
                return RETRY_LATER_MESSAGE
            case _:
                return self.message

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.message}"


# ═══════════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    """Factory methods for commerce errors."""

    @staticmethod
    def invalid_quantity(quantity: int) -> CommerceError:
        return CommerceError(
            ErrorKind.INVALID_QUANTITY, f"Quantity must be at least 1, got {quantity}"
        )

    @staticmethod
    def invalid_line_key(field: str) -> CommerceError:
        return CommerceError(
            ErrorKind.INVALID_LINE_KEY, f"{field} must be non-empty when present"
        )

    @staticmethod
    def empty_selection() -> CommerceError:
        return CommerceError(ErrorKind.EMPTY_SELECTION, "Select at least one cart item")

    @staticmethod
    def no_pricing_input(project_id: str) -> CommerceError:
        return CommerceError(
            ErrorKind.NO_PRICING_INPUT,
            f"Project {project_id} has no areas to price",
            detail=project_id,
        )

    @staticmethod
    def invalid_amount(message: str) -> CommerceError:
        return CommerceError(ErrorKind.INVALID_AMOUNT, message)

    @staticmethod
    def unsupported_currency(currency: str, expected: str) -> CommerceError:
        return CommerceError(
            ErrorKind.UNSUPPORTED_CURRENCY,
            f"Currency {currency} is not supported, use {expected}",
        )

    @staticmethod
    def unknown_order(ref: str) -> CommerceError:
        return CommerceError(ErrorKind.UNKNOWN_ORDER, f"Order not found: {ref}", detail=ref)

    @staticmethod
    def unknown_line(line_id: str) -> CommerceError:
        return CommerceError(
            ErrorKind.UNKNOWN_LINE, f"Cart line not found: {line_id}", detail=line_id
        )

    @staticmethod
    def unknown_payment(ref: str) -> CommerceError:
        return CommerceError(
            ErrorKind.UNKNOWN_PAYMENT, f"Payment not found: {ref}", detail=ref
        )

    @staticmethod
    def unknown_estimate(ref: str) -> CommerceError:
        return CommerceError(
            ErrorKind.UNKNOWN_ESTIMATE, f"Estimate not found: {ref}", detail=ref
        )

    @staticmethod
    def invalid_transition(current: str, requested: str) -> CommerceError:
        return CommerceError(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot move delivery from {current} to {requested}",
            detail=(current, requested),
        )

    @staticmethod
    def payment_closed(payment_id: str, status: str) -> CommerceError:
        return CommerceError(
            ErrorKind.PAYMENT_CLOSED,
            f"Payment {payment_id} is {status}",
            detail=payment_id,
        )

    @staticmethod
    def not_billable(ref: str, reason: str) -> CommerceError:
        return CommerceError(ErrorKind.NOT_BILLABLE, f"No document for {ref}: {reason}", detail=ref)

    @staticmethod
    def milestone_already_paid(estimate_id: str, payment_type: str) -> CommerceError:
        return CommerceError(
            ErrorKind.MILESTONE_ALREADY_PAID,
            f"{payment_type} payment already completed for estimate {estimate_id}",
            detail=(estimate_id, payment_type),
        )

    @staticmethod
    def milestone_exceeds_total(
        estimate_id: str, paid: int, amount: int, total: int
    ) -> CommerceError:
        return CommerceError(
            ErrorKind.MILESTONE_EXCEEDS_TOTAL,
            f"Paying {amount} on top of {paid} exceeds estimate {estimate_id} total {total}",
            detail=(estimate_id, paid, amount, total),
        )

    @staticmethod
    def signature_invalid(gateway_order_id: str) -> CommerceError:
        return CommerceError(
            ErrorKind.SIGNATURE_INVALID,
            f"Signature mismatch for gateway order {gateway_order_id}",
            detail=gateway_order_id,
        )

    @staticmethod
    def amount_mismatch(expected: int, captured: int) -> CommerceError:
        return CommerceError(
            ErrorKind.AMOUNT_MISMATCH,
            f"Gateway captured {captured}, expected {expected}",
            detail=(expected, captured),
        )

    @staticmethod
    def gateway_unavailable(message: str) -> CommerceError:
        return CommerceError(ErrorKind.GATEWAY_UNAVAILABLE, message)

    @staticmethod
    def gateway_timeout(seconds: float) -> CommerceError:
        return CommerceError(
            ErrorKind.GATEWAY_TIMEOUT, f"Gateway did not answer within {seconds:g}s"
        )

    @staticmethod
    def store_unavailable(cause: Exception) -> CommerceError:
        return CommerceError(ErrorKind.STORE_UNAVAILABLE, str(cause), detail=cause)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ErrorCategory",
    "ErrorKind",
    "CommerceError",
    "Errors",
    "VERIFICATION_FAILED_MESSAGE",
    "RETRY_LATER_MESSAGE",
)
