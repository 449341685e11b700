"""
Cart store — one owner's cart over a pluggable backend.

Backends implement `CartBackend` (in-memory here, SQLAlchemy in
`_sqlalchemy.py`). `CartStore` owns the rules: key merging, quantity
validation, insertion order, change events.

Example:
    carts = Carts(MemoryCartBackend())
    cart = carts.for_owner("user-1")

    await cart.add("p1", 2, snapshot=snap, project_id="proj1", area="Living Room")
    await cart.add("p1", 3, snapshot=snap, project_id="proj1", area="Living Room")

    [line] = await cart.list()   # line.quantity == 5
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol

from kungfu import Result, Ok, Error

from atelier._locks import KeyedLocks
from atelier._types import Clock, Money, new_id, utcnow
from atelier.cart._types import (
    CartDraft,
    CartEvent,
    CartEventKind,
    CartLine,
    CartListener,
    LineKey,
    ProductSnapshot,
)
from atelier.errors import CommerceError, Errors

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Backend Protocol — Storage Implements This
# ═══════════════════════════════════════════════════════════════════════════════


class CartBackend(Protocol):
    """
    Storage for cart lines.

    Note: backends do no validation. `insert` assigns the next position for
    the owner, `lines` returns them in position order.
    """

    async def lines(self, owner: str) -> list[CartLine]:
        ...

    async def find(self, owner: str, key: LineKey) -> CartLine | None:
        ...

    async def get(self, owner: str, line_id: str) -> CartLine | None:
        ...

    async def insert(self, line: CartLine) -> CartLine:
        ...

    async def save_quantity(self, line: CartLine) -> CartLine | None:
        """Persist line.quantity. None if the line is gone."""
        ...

    async def delete(self, owner: str, line_id: str) -> bool:
        ...

    async def clear(self, owner: str) -> int:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Backend
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCartBackend:
    """In-memory backend. Dicts keep insertion order."""

    def __init__(self) -> None:
        self._lines: dict[str, dict[str, CartLine]] = defaultdict(dict)
        self._positions: dict[str, int] = defaultdict(int)

    async def lines(self, owner: str) -> list[CartLine]:
        return sorted(self._lines[owner].values(), key=lambda line: line.position)

    async def find(self, owner: str, key: LineKey) -> CartLine | None:
        for line in self._lines[owner].values():
            if line.key == key:
                return line
        return None

    async def get(self, owner: str, line_id: str) -> CartLine | None:
        return self._lines[owner].get(line_id)

    async def insert(self, line: CartLine) -> CartLine:
        self._positions[line.owner] += 1
        stored = CartLine(
            id=line.id,
            owner=line.owner,
            key=line.key,
            quantity=line.quantity,
            snapshot=line.snapshot,
            position=self._positions[line.owner],
            created_at=line.created_at,
            updated_at=line.updated_at,
        )
        self._lines[line.owner][line.id] = stored
        return stored

    async def save_quantity(self, line: CartLine) -> CartLine | None:
        if line.id not in self._lines[line.owner]:
            return None
        self._lines[line.owner][line.id] = line
        return line

    async def delete(self, owner: str, line_id: str) -> bool:
        return self._lines[owner].pop(line_id, None) is not None

    async def clear(self, owner: str) -> int:
        count = len(self._lines[owner])
        self._lines[owner].clear()
        return count


# ═══════════════════════════════════════════════════════════════════════════════
# Change Events
# ═══════════════════════════════════════════════════════════════════════════════


class CartEvents:
    """
    Per-owner change notifications.

    Every open view of a cart subscribes here; writes from one view reach the
    others. A failing listener is logged and skipped.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[CartListener]] = defaultdict(list)

    def subscribe(self, owner: str, listener: CartListener) -> Callable[[], None]:
        self._listeners[owner].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[owner]:
                self._listeners[owner].remove(listener)

        return unsubscribe

    async def publish(self, event: CartEvent) -> None:
        for listener in list(self._listeners[event.owner]):
            try:
                await listener(event)
            except Exception:
                logger.exception("cart listener failed for owner %s", event.owner)


# ═══════════════════════════════════════════════════════════════════════════════
# CartStore — One Owner's Cart
# ═══════════════════════════════════════════════════════════════════════════════


class CartStore:
    """
    Cart of a single owner (user id or guest session id).

    All writes for one owner are serialized; events go out after the write.
    """

    def __init__(
        self,
        owner: str,
        backend: CartBackend,
        events: CartEvents,
        locks: KeyedLocks,
        clock: Clock = utcnow,
    ) -> None:
        self.owner = owner
        self._backend = backend
        self._events = events
        self._locks = locks
        self._clock = clock

    # ─── Writes ──────────────────────────────────────────────────────────────

    async def add(
        self,
        product_id: str,
        quantity: int,
        *,
        snapshot: ProductSnapshot,
        project_id: str | None = None,
        area: str | None = None,
    ) -> Result[CartLine, CommerceError]:
        """Add to the line with this key, or append a new line."""
        match self._checked(product_id, quantity, project_id, area):
            case Error(e):
                return Error(e)
            case Ok(key):
                pass

        async with self._locks.hold(self.owner):
            now = self._clock()
            existing = await self._backend.find(self.owner, key)
            if existing is not None:
                saved = await self._backend.save_quantity(
                    existing.with_quantity(existing.quantity + quantity, now)
                )
                line = saved if saved is not None else existing
                kind = CartEventKind.UPDATED
            else:
                line = await self._backend.insert(
                    CartLine(
                        id=new_id("line"),
                        owner=self.owner,
                        key=key,
                        quantity=quantity,
                        snapshot=snapshot,
                        position=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
                kind = CartEventKind.ADDED

        await self._publish(kind, line)
        return Ok(line)

    async def remove(
        self,
        product_id: str,
        project_id: str | None = None,
        area: str | None = None,
    ) -> Result[bool, CommerceError]:
        """Delete the line with this key. Removing a missing line is fine."""
        match LineKey.parse(product_id, project_id, area):
            case Error(e):
                return Error(e)
            case Ok(key):
                pass

        async with self._locks.hold(self.owner):
            line = await self._backend.find(self.owner, key)
            removed = line is not None and await self._backend.delete(self.owner, line.id)

        if removed:
            await self._publish(CartEventKind.REMOVED, line)
        return Ok(removed)

    async def remove_up_to(self, key: LineKey, quantity: int) -> CartLine | None:
        """
        Take at most `quantity` units off the keyed line.

        Returns what is left, None when the line is gone. Units added after
        checkout survive.
        """
        async with self._locks.hold(self.owner):
            line = await self._backend.find(self.owner, key)
            if line is None:
                return None
            remaining = line.quantity - quantity
            if remaining < 1:
                await self._backend.delete(self.owner, line.id)
                left = None
            else:
                left = await self._backend.save_quantity(
                    line.with_quantity(remaining, self._clock())
                )

        if left is None:
            await self._publish(CartEventKind.REMOVED, line)
        else:
            await self._publish(CartEventKind.UPDATED, left)
        return left

    async def set_quantity(
        self, line_id: str, quantity: int
    ) -> Result[CartLine | None, CommerceError]:
        """Set a line's quantity. Below 1 removes the line (Ok(None))."""
        async with self._locks.hold(self.owner):
            line = await self._backend.get(self.owner, line_id)
            if quantity < 1:
                removed = line is not None and await self._backend.delete(self.owner, line_id)
                updated = None
            elif line is None:
                return Error(Errors.unknown_line(line_id))
            else:
                removed = False
                updated = await self._backend.save_quantity(
                    line.with_quantity(quantity, self._clock())
                )
                if updated is None:
                    return Error(Errors.unknown_line(line_id))

        if removed:
            await self._publish(CartEventKind.REMOVED, line)
        elif updated is not None:
            await self._publish(CartEventKind.UPDATED, updated)
        return Ok(updated)

    async def merge(self, drafts: Iterable[CartDraft]) -> Result[list[CartLine], CommerceError]:
        """
        Fold another cart's lines into this one.

        All or nothing on input: every draft is checked before the first add.
        """
        drafts = list(drafts)
        for draft in drafts:
            key = draft.key
            match self._checked(key.product_id, draft.quantity, key.project_id, key.area):
                case Error(e):
                    return Error(e)
                case Ok(_):
                    pass

        merged: list[CartLine] = []
        for draft in drafts:
            line = (
                await self.add(
                    draft.key.product_id,
                    draft.quantity,
                    snapshot=draft.snapshot,
                    project_id=draft.key.project_id,
                    area=draft.key.area,
                )
            ).unwrap()
            merged.append(line)
        return Ok(merged)

    async def clear(self) -> int:
        async with self._locks.hold(self.owner):
            count = await self._backend.clear(self.owner)
        if count:
            await self._publish(CartEventKind.CLEARED, None)
        return count

    # ─── Reads ───────────────────────────────────────────────────────────────

    async def list(self) -> list[CartLine]:
        return await self._backend.lines(self.owner)

    async def selected(self, line_ids: Sequence[str]) -> Result[list[CartLine], CommerceError]:
        """Lines for the given ids, in cart order. Any unknown id is a conflict."""
        lines = await self.list()
        by_id = {line.id: line for line in lines}
        for line_id in line_ids:
            if line_id not in by_id:
                return Error(Errors.unknown_line(line_id))
        wanted = set(line_ids)
        return Ok([line for line in lines if line.id in wanted])

    async def selection_subtotal(self, line_ids: Sequence[str]) -> Money:
        """Σ unit_price_snapshot × quantity over the selected lines."""
        wanted = set(line_ids)
        return sum(line.line_total for line in await self.list() if line.id in wanted)

    async def quantity_of(self, key: LineKey) -> int:
        line = await self._backend.find(self.owner, key)
        return line.quantity if line is not None else 0

    async def contains(self, key: LineKey) -> bool:
        return await self._backend.find(self.owner, key) is not None

    async def total_quantity(self) -> int:
        return sum(line.quantity for line in await self.list())

    # ─── Events ──────────────────────────────────────────────────────────────

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        return self._events.subscribe(self.owner, listener)

    async def _publish(self, kind: CartEventKind, line: CartLine | None) -> None:
        await self._events.publish(CartEvent(kind, self.owner, line, self._clock()))

    @staticmethod
    def _checked(
        product_id: str, quantity: int, project_id: str | None, area: str | None
    ) -> Result[LineKey, CommerceError]:
        if quantity < 1:
            return Error(Errors.invalid_quantity(quantity))
        return LineKey.parse(product_id, project_id, area)


# ═══════════════════════════════════════════════════════════════════════════════
# Carts — Directory of Owner Carts
# ═══════════════════════════════════════════════════════════════════════════════


class Carts:
    """
    Hands out `CartStore` views that share one backend, one event bus and
    one lock table.
    """

    def __init__(
        self,
        backend: CartBackend,
        events: CartEvents | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.backend = backend
        self.events = events if events is not None else CartEvents()
        self._locks = KeyedLocks()
        self._clock = clock

    def for_owner(self, owner: str) -> CartStore:
        return CartStore(owner, self.backend, self.events, self._locks, self._clock)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CartBackend",
    "MemoryCartBackend",
    "CartEvents",
    "CartStore",
    "Carts",
)
