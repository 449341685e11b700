"""
Shared primitives — money, ids, clock.

All money is an int in minor currency units (paise for INR).
Percentages are Decimal, rounding is half-up to a whole minor unit.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

Money = int
"""Amount in minor currency units."""


def percent_of(amount: Money, pct: Decimal) -> Money:
    """
    amount × pct / 100, rounded half-up.

        percent_of(2_500_000, Decimal("18"))  # 450_000
    """
    value = Decimal(amount) * pct / Decimal(100)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ═══════════════════════════════════════════════════════════════════════════════
# Ids & Clock
# ═══════════════════════════════════════════════════════════════════════════════

Clock = Callable[[], datetime]


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo on the way back)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    "Money",
    "percent_of",
    "Clock",
    "new_id",
    "utcnow",
)
