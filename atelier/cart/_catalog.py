"""
Display enrichment — live catalog data for cart lines, best effort.

Lookup order per product:
    1. ProductTier (in-process LRU, TTL)
    2. Catalog (external, bounded by a timeout) — populates the tier
    3. the line's own snapshot

Resolution never fails. A product the catalog doesn't know (or a catalog
that is down) still renders from the snapshot, and subtotals never depend on
the catalog at all.

Example:
    resolver = ProductResolver(catalog, tier=LocalTier(max_size=500))
    views = await resolver.resolve_all(await cart.list())
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from collections import OrderedDict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Protocol

from combinators import lift as L, parallel
from kungfu import Ok, Error

from atelier._types import Clock, Money, utcnow
from atelier.cart._types import CartLine

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Catalog Protocol — External Collaborator
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    title: str
    price: Money
    image_url: str | None = None


class Catalog(Protocol):
    async def get_product(self, product_id: str) -> Product | None:
        """Current product data, None if unknown."""
        ...


class StaticCatalog:
    """Catalog backed by a dict. For tests and local runs."""

    def __init__(self, products: Sequence[Product] = ()) -> None:
        self.products = {p.id: p for p in products}
        self.calls = 0

    async def get_product(self, product_id: str) -> Product | None:
        self.calls += 1
        return self.products.get(product_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Product Tier — Cache In Front of the Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class ProductTier(Protocol):
    """
    Cache tier for catalog products.

    Implement for a shared backend (Redis, Memcached) if several workers
    should share lookups.
    """

    @property
    def name(self) -> str:
        ...

    async def get(self, product_id: str) -> Product | None:
        ...

    async def set(self, product: Product) -> None:
        ...

    async def delete_pattern(self, pattern: str) -> int:
        ...


class LocalTier:
    """
    In-process LRU with a TTL.

        tier = LocalTier(max_size=1000, ttl=timedelta(minutes=5))
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: timedelta | None = timedelta(minutes=5),
        clock: Clock = utcnow,
    ) -> None:
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Product, datetime | None]] = OrderedDict()

    @property
    def name(self) -> str:
        return "local"

    async def get(self, product_id: str) -> Product | None:
        entry = self._entries.get(product_id)
        if entry is None:
            return None
        product, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[product_id]
            return None
        self._entries.move_to_end(product_id)
        return product

    async def set(self, product: Product) -> None:
        if product.id in self._entries:
            self._entries.move_to_end(product.id)
        elif len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)
        expires_at = self._clock() + self._ttl if self._ttl is not None else None
        self._entries[product.id] = (product, expires_at)

    async def delete_pattern(self, pattern: str) -> int:
        doomed = [k for k in self._entries if fnmatch.fnmatch(k, pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)


# ═══════════════════════════════════════════════════════════════════════════════
# Resolver
# ═══════════════════════════════════════════════════════════════════════════════

Source = Literal["cache", "catalog", "snapshot"]


@dataclass(frozen=True, slots=True)
class DisplayLine:
    """A cart line with what to show for it."""

    line: CartLine
    title: str
    image_url: str | None
    live_price: Money
    source: Source

    @property
    def price_changed(self) -> bool:
        """Catalog price moved since the line was added (display only)."""
        return self.live_price != self.line.snapshot.unit_price


class ProductResolver:
    def __init__(
        self,
        catalog: Catalog | None,
        tier: ProductTier | None = None,
        timeout: float = 1.5,
    ) -> None:
        self._catalog = catalog
        self._tier = tier if tier is not None else LocalTier()
        self._timeout = timeout

    async def lookup(self, product_id: str) -> tuple[Product | None, Source]:
        """Tier, then catalog. (None, "snapshot") on miss or failure."""
        cached = await self._tier.get(product_id)
        if cached is not None:
            return cached, "cache"
        if self._catalog is None:
            return None, "snapshot"

        catalog = self._catalog
        fetched = await L.catching_async(
            lambda: asyncio.wait_for(catalog.get_product(product_id), self._timeout),
            on_error=lambda e: e,
        )
        match fetched:
            case Ok(product) if product is not None:
                await self._tier.set(product)
                return product, "catalog"
            case Ok(_):
                return None, "snapshot"
            case Error(e):
                logger.warning("catalog lookup for %s failed: %r", product_id, e)
                return None, "snapshot"

    async def resolve(self, line: CartLine) -> DisplayLine:
        product, source = await self.lookup(line.product_id)
        if product is None:
            return DisplayLine(
                line=line,
                title=line.snapshot.title,
                image_url=line.snapshot.image_url,
                live_price=line.snapshot.unit_price,
                source="snapshot",
            )
        return DisplayLine(
            line=line,
            title=product.title,
            image_url=product.image_url or line.snapshot.image_url,
            live_price=product.price,
            source=source,
        )

    async def resolve_all(self, lines: Sequence[CartLine]) -> list[DisplayLine]:
        """Resolve concurrently, keeping cart order."""
        if not lines:
            return []
        ops = [
            L.catching_async(lambda line=line: self.resolve(line), on_error=str)
            for line in lines
        ]
        match await parallel(*ops):
            case Ok(views):
                return list(views)
            case Error(e):
                logger.warning("display resolution failed, using snapshots: %s", e)
                return [
                    DisplayLine(
                        line=line,
                        title=line.snapshot.title,
                        image_url=line.snapshot.image_url,
                        live_price=line.snapshot.unit_price,
                        source="snapshot",
                    )
                    for line in lines
                ]

    async def invalidate(self, pattern: str = "*") -> int:
        return await self._tier.delete_pattern(pattern)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Product",
    "Catalog",
    "StaticCatalog",
    "ProductTier",
    "LocalTier",
    "DisplayLine",
    "ProductResolver",
)
