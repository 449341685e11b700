import asyncio
from datetime import datetime, timedelta

from atelier.cart import (
    Carts,
    LocalTier,
    MemoryCartBackend,
    Product,
    ProductResolver,
    ProductSnapshot,
    StaticCatalog,
)

from tests.conftest import LAMP, SOFA, snapshot_of


class BrokenCatalog:
    async def get_product(self, product_id: str) -> Product | None:
        raise ConnectionError("catalog down")


class SlowCatalog:
    async def get_product(self, product_id: str) -> Product | None:
        await asyncio.sleep(1)
        return SOFA


async def lines_for(*products: Product):
    cart = Carts(MemoryCartBackend()).for_owner("u1")
    for product in products:
        await cart.add(product.id, 1, snapshot=snapshot_of(product))
    return await cart.list()


async def test_resolve_prefers_live_catalog_data() -> None:
    repriced = Product("sofa", "Linen Sofa (new)", 49_000_00, None)
    resolver = ProductResolver(StaticCatalog([repriced]))
    [line] = await lines_for(SOFA)

    shown = await resolver.resolve(line)

    assert shown.source == "catalog"
    assert shown.title == "Linen Sofa (new)"
    assert shown.live_price == 49_000_00
    assert shown.price_changed
    # Missing catalog image falls back to the snapshot
    assert shown.image_url == SOFA.image_url
    # The charged amount stays the snapshot
    assert shown.line.line_total == SOFA.price


async def test_second_lookup_hits_cache() -> None:
    catalog = StaticCatalog([SOFA])
    resolver = ProductResolver(catalog)

    first, _ = await resolver.lookup("sofa")
    second, source = await resolver.lookup("sofa")

    assert first == second == SOFA
    assert source == "cache"
    assert catalog.calls == 1


async def test_catalog_failure_falls_back_to_snapshot() -> None:
    resolver = ProductResolver(BrokenCatalog())
    [line] = await lines_for(LAMP)

    shown = await resolver.resolve(line)

    assert shown.source == "snapshot"
    assert shown.title == LAMP.title
    assert shown.live_price == LAMP.price
    assert not shown.price_changed


async def test_catalog_timeout_falls_back_to_snapshot() -> None:
    resolver = ProductResolver(SlowCatalog(), timeout=0.01)
    [line] = await lines_for(SOFA)

    shown = await resolver.resolve(line)

    assert shown.source == "snapshot"


async def test_unknown_product_uses_snapshot() -> None:
    resolver = ProductResolver(StaticCatalog([]))
    cart = Carts(MemoryCartBackend()).for_owner("u1")
    await cart.add("discontinued", 1, snapshot=ProductSnapshot(5_00, "Old Vase", None))

    [shown] = await resolver.resolve_all(await cart.list())

    assert shown.title == "Old Vase"
    assert shown.source == "snapshot"


async def test_resolve_all_keeps_cart_order() -> None:
    resolver = ProductResolver(StaticCatalog([SOFA, LAMP]))
    lines = await lines_for(LAMP, SOFA)

    shown = await resolver.resolve_all(lines)

    assert [s.line.product_id for s in shown] == ["lamp", "sofa"]
    assert await resolver.resolve_all([]) == []


async def test_local_tier_expires_and_evicts() -> None:
    now = datetime(2026, 1, 1)
    tier = LocalTier(max_size=2, ttl=timedelta(minutes=5), clock=lambda: now)

    await tier.set(SOFA)
    await tier.set(LAMP)
    await tier.get("sofa")
    await tier.set(Product("rug", "Rug", 1, None))

    # lamp was least recently used
    assert await tier.get("lamp") is None
    assert await tier.get("sofa") == SOFA
    assert len(tier) == 2

    now = now + timedelta(minutes=6)
    assert await tier.get("sofa") is None


async def test_invalidate_drops_matching_entries() -> None:
    tier = LocalTier()
    resolver = ProductResolver(StaticCatalog([SOFA, LAMP]), tier)
    await resolver.lookup("sofa")
    await resolver.lookup("lamp")

    dropped = await resolver.invalidate("so*")

    assert dropped == 1
    assert len(tier) == 1
