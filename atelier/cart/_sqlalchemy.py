"""
SQLAlchemy cart backend.

    session_factory, engine = await create_database(config.DATABASE_URL)
    carts = Carts(SQLAlchemyCartBackend(session_factory))
"""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.engine import CursorResult

from atelier.cart._types import CartLine, LineKey, ProductSnapshot
from atelier.db import CartLineTable, SessionFactory


def _to_line(row: CartLineTable) -> CartLine:
    return CartLine(
        id=row.id,
        owner=row.owner,
        key=LineKey(row.product_id, row.project_id, row.area),
        quantity=row.quantity,
        snapshot=ProductSnapshot(row.unit_price, row.title, row.image_url),
        position=row.position,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _key_filter(owner: str, key: LineKey) -> tuple[ColumnElement[bool], ...]:
    # IS NULL vs = for optional key parts
    return (
        CartLineTable.owner == owner,
        CartLineTable.product_id == key.product_id,
        CartLineTable.project_id.is_(None)
        if key.project_id is None
        else CartLineTable.project_id == key.project_id,
        CartLineTable.area.is_(None) if key.area is None else CartLineTable.area == key.area,
    )


class SQLAlchemyCartBackend:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def lines(self, owner: str) -> list[CartLine]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(CartLineTable)
                .where(CartLineTable.owner == owner)
                .order_by(CartLineTable.position)
            )
            return [_to_line(row) for row in rows]

    async def find(self, owner: str, key: LineKey) -> CartLine | None:
        async with self._session_factory() as session:
            row = await session.scalar(select(CartLineTable).where(*_key_filter(owner, key)))
            return _to_line(row) if row is not None else None

    async def get(self, owner: str, line_id: str) -> CartLine | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(CartLineTable).where(
                    CartLineTable.owner == owner, CartLineTable.id == line_id
                )
            )
            return _to_line(row) if row is not None else None

    async def insert(self, line: CartLine) -> CartLine:
        async with self._session_factory() as session:
            last = await session.scalar(
                select(func.max(CartLineTable.position)).where(
                    CartLineTable.owner == line.owner
                )
            )
            row = CartLineTable(
                id=line.id,
                owner=line.owner,
                product_id=line.key.product_id,
                project_id=line.key.project_id,
                area=line.key.area,
                quantity=line.quantity,
                unit_price=line.snapshot.unit_price,
                title=line.snapshot.title,
                image_url=line.snapshot.image_url,
                position=(last or 0) + 1,
                created_at=line.created_at,
                updated_at=line.updated_at,
            )
            session.add(row)
            await session.commit()
            return _to_line(row)

    async def save_quantity(self, line: CartLine) -> CartLine | None:
        async with self._session_factory() as session:
            result = cast(
                CursorResult[Any],
                await session.execute(
                    update(CartLineTable)
                    .where(CartLineTable.owner == line.owner, CartLineTable.id == line.id)
                    .values(quantity=line.quantity, updated_at=line.updated_at)
                ),
            )
            await session.commit()
            return line if result.rowcount > 0 else None

    async def delete(self, owner: str, line_id: str) -> bool:
        async with self._session_factory() as session:
            result = cast(
                CursorResult[Any],
                await session.execute(
                    delete(CartLineTable).where(
                        CartLineTable.owner == owner, CartLineTable.id == line_id
                    )
                ),
            )
            await session.commit()
            return result.rowcount > 0

    async def clear(self, owner: str) -> int:
        async with self._session_factory() as session:
            result = cast(
                CursorResult[Any],
                await session.execute(delete(CartLineTable).where(CartLineTable.owner == owner)),
            )
            await session.commit()
            return result.rowcount


__all__ = ("SQLAlchemyCartBackend",)
