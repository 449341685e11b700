from collections.abc import AsyncIterator

import pytest

from atelier.cart import Product, ProductSnapshot, StaticCatalog
from atelier.db import SessionFactory, create_database
from atelier.estimate import StaticProjectRegistry
from atelier.notify import MemorySink
from atelier.payments import SandboxGateway
from atelier.services import Commerce, build_in_memory

SOFA = Product("sofa", "Linen Sofa", 45_000_00, "https://cdn.example/sofa.jpg")
LAMP = Product("lamp", "Brass Floor Lamp", 8_500_00, None)
RUG = Product("rug", "Wool Rug", 12_000_00, None)


def snapshot_of(product: Product) -> ProductSnapshot:
    return ProductSnapshot(product.price, product.title, product.image_url)


@pytest.fixture
def gateway() -> SandboxGateway:
    return SandboxGateway()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def catalog() -> StaticCatalog:
    return StaticCatalog([SOFA, LAMP, RUG])


@pytest.fixture
def registry() -> StaticProjectRegistry:
    return StaticProjectRegistry(
        {
            "proj1": ["Living Room"],
            "proj2": ["Living Room", "Bedroom", "Kitchen"],
            "empty": [],
        }
    )


@pytest.fixture
def commerce(
    gateway: SandboxGateway,
    sink: MemorySink,
    catalog: StaticCatalog,
    registry: StaticProjectRegistry,
) -> Commerce:
    return build_in_memory(gateway, registry=registry, catalog=catalog, sink=sink)


@pytest.fixture
async def session_factory() -> AsyncIterator[SessionFactory]:
    factory, engine = await create_database("sqlite+aiosqlite:///:memory:")
    try:
        yield factory
    finally:
        await engine.dispose()
