"""
Cart types — lines, identity keys, snapshots, change events.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from kungfu import Result, Ok, Error

from atelier._types import Money
from atelier.errors import CommerceError, Errors

# ═══════════════════════════════════════════════════════════════════════════════
# Identity Key
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineKey:
    """
    Identity of a cart line: (product, project, area).

    Two adds with the same key merge into one line. The same product for a
    different room is a different line.
    """

    product_id: str
    project_id: str | None = None
    area: str | None = None

    @classmethod
    def parse(
        cls,
        product_id: str,
        project_id: str | None = None,
        area: str | None = None,
    ) -> Result[LineKey, CommerceError]:
        """Build a key, rejecting blank parts."""
        if not product_id or not product_id.strip():
            return Error(Errors.invalid_line_key("product_id"))
        if project_id is not None and not project_id.strip():
            return Error(Errors.invalid_line_key("project_id"))
        if area is not None and not area.strip():
            return Error(Errors.invalid_line_key("area"))
        return Ok(cls(product_id, project_id, area))


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot & Line
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProductSnapshot:
    """Price and display data captured when the product was added."""

    unit_price: Money
    title: str
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class CartLine:
    id: str
    owner: str
    key: LineKey
    quantity: int
    snapshot: ProductSnapshot
    position: int
    created_at: datetime
    updated_at: datetime

    @property
    def product_id(self) -> str:
        return self.key.product_id

    @property
    def project_id(self) -> str | None:
        return self.key.project_id

    @property
    def area(self) -> str | None:
        return self.key.area

    @property
    def line_total(self) -> Money:
        return self.snapshot.unit_price * self.quantity

    def with_quantity(self, quantity: int, at: datetime) -> CartLine:
        return dataclasses.replace(self, quantity=quantity, updated_at=at)


@dataclass(frozen=True, slots=True)
class CartDraft:
    """A line from another cart (guest or client cache) waiting to be merged."""

    key: LineKey
    quantity: int
    snapshot: ProductSnapshot

    @classmethod
    def of(cls, line: CartLine) -> CartDraft:
        return cls(line.key, line.quantity, line.snapshot)


# ═══════════════════════════════════════════════════════════════════════════════
# Change Events
# ═══════════════════════════════════════════════════════════════════════════════


class CartEventKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    CLEARED = "cleared"


@dataclass(frozen=True, slots=True)
class CartEvent:
    kind: CartEventKind
    owner: str
    line: CartLine | None
    at: datetime


CartListener = Callable[[CartEvent], Awaitable[None]]


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "LineKey",
    "ProductSnapshot",
    "CartLine",
    "CartDraft",
    "CartEventKind",
    "CartEvent",
    "CartListener",
)
