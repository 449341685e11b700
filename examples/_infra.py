"""Shared setup for examples."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine

from atelier.cart import Product, ProductSnapshot, StaticCatalog
from atelier.estimate import StaticProjectRegistry
from atelier.log import setup_logging
from atelier.notify import MemorySink
from atelier.payments import SandboxGateway
from atelier.services import Commerce, build_in_memory

SOFA = Product("sofa", "Linen Sofa", 45_000_00, "https://cdn.example/sofa.jpg")
LAMP = Product("lamp", "Brass Floor Lamp", 8_500_00, None)

PROJECTS = {
    "villa-42": ["Living Room", "Master Bedroom", "Kitchen"],
}


def snapshot_of(product: Product) -> ProductSnapshot:
    return ProductSnapshot(product.price, product.title, product.image_url)


def sandbox() -> tuple[Commerce, SandboxGateway, MemorySink]:
    gateway = SandboxGateway()
    sink = MemorySink()
    commerce = build_in_memory(
        gateway,
        registry=StaticProjectRegistry(PROJECTS),
        catalog=StaticCatalog([SOFA, LAMP]),
        sink=sink,
    )
    return commerce, gateway, sink


def rupees(paise: int) -> str:
    return f"₹{paise // 100:,}.{paise % 100:02d}"


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    setup_logging("WARNING")
    asyncio.run(main())
