"""
Cart — lines keyed by (product, project, area), merged on add.

    from atelier import cart as C

    carts = C.Carts(C.MemoryCartBackend())
    cart = carts.for_owner(user_id)

    await cart.add("sofa-01", 2, snapshot=C.ProductSnapshot(4_999_00, "Sofa"),
                   project_id="proj1", area="Living Room")
    subtotal = await cart.selection_subtotal([line.id for line in await cart.list()])

Display data comes from `ProductResolver` (catalog, cached, best effort);
prices for subtotals always come from the line's snapshot.
"""

from atelier.cart._types import (
    LineKey,
    ProductSnapshot,
    CartLine,
    CartDraft,
    CartEventKind,
    CartEvent,
    CartListener,
)
from atelier.cart._store import (
    CartBackend,
    MemoryCartBackend,
    CartEvents,
    CartStore,
    Carts,
)
from atelier.cart._catalog import (
    Product,
    Catalog,
    StaticCatalog,
    ProductTier,
    LocalTier,
    DisplayLine,
    ProductResolver,
)
from atelier.cart._sqlalchemy import SQLAlchemyCartBackend

__all__ = (
    # Types
    "LineKey",
    "ProductSnapshot",
    "CartLine",
    "CartDraft",
    "CartEventKind",
    "CartEvent",
    "CartListener",
    # Store
    "CartBackend",
    "MemoryCartBackend",
    "SQLAlchemyCartBackend",
    "CartEvents",
    "CartStore",
    "Carts",
    # Display
    "Product",
    "Catalog",
    "StaticCatalog",
    "ProductTier",
    "LocalTier",
    "DisplayLine",
    "ProductResolver",
)
