"""
SQLAlchemy estimate repository.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select, update

from atelier.db import EstimateTable, SessionFactory
from atelier.estimate._types import Estimate, EstimateStatus, EstimateType, LineItem


def _to_estimate(row: EstimateTable) -> Estimate:
    return Estimate(
        id=row.id,
        project_id=row.project_id,
        number=row.number,
        type=EstimateType(row.estimate_type),
        line_items=tuple(
            LineItem(i["code"], i["description"], i["quantity"], i["unit_amount"])
            for i in row.line_items
        ),
        subtotal=row.subtotal,
        discount_pct=Decimal(row.discount_pct),
        discount_amt=row.discount_amt,
        gst_pct=Decimal(row.gst_pct),
        gst_amt=row.gst_amt,
        total_amount=row.total_amount,
        status=EstimateStatus(row.status),
        areas=tuple(row.areas),
        iterations=row.iterations,
        options=row.options,
        created_at=row.created_at,
        extra_charges=row.extra_charges,
        notes=row.notes,
    )


def _to_row(estimate: Estimate) -> EstimateTable:
    return EstimateTable(
        id=estimate.id,
        project_id=estimate.project_id,
        number=estimate.number,
        estimate_type=estimate.type.value,
        status=estimate.status.value,
        line_items=[
            {
                "code": i.code,
                "description": i.description,
                "quantity": i.quantity,
                "unit_amount": i.unit_amount,
            }
            for i in estimate.line_items
        ],
        areas=list(estimate.areas),
        iterations=estimate.iterations,
        options=estimate.options,
        extra_charges=estimate.extra_charges,
        subtotal=estimate.subtotal,
        discount_pct=str(estimate.discount_pct),
        discount_amt=estimate.discount_amt,
        gst_pct=str(estimate.gst_pct),
        gst_amt=estimate.gst_amt,
        total_amount=estimate.total_amount,
        notes=estimate.notes,
        created_at=estimate.created_at,
    )


class SQLAlchemyEstimateRepository:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def replace_active(self, estimate: Estimate) -> Estimate | None:
        async with self._session_factory() as session:
            async with session.begin():
                previous = await session.scalar(
                    select(EstimateTable).where(
                        EstimateTable.project_id == estimate.project_id,
                        EstimateTable.estimate_type == estimate.type.value,
                        EstimateTable.status == EstimateStatus.ACTIVE.value,
                    )
                )
                superseded = _to_estimate(previous).superseded() if previous else None
                if previous is not None:
                    await session.execute(
                        update(EstimateTable)
                        .where(EstimateTable.id == previous.id)
                        .values(status=EstimateStatus.SUPERSEDED.value)
                    )
                session.add(_to_row(estimate))
            return superseded

    async def active(self, project_id: str, estimate_type: EstimateType) -> Estimate | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(EstimateTable).where(
                    EstimateTable.project_id == project_id,
                    EstimateTable.estimate_type == estimate_type.value,
                    EstimateTable.status == EstimateStatus.ACTIVE.value,
                )
            )
            return _to_estimate(row) if row is not None else None

    async def get(self, estimate_id: str) -> Estimate | None:
        async with self._session_factory() as session:
            row = await session.get(EstimateTable, estimate_id)
            return _to_estimate(row) if row is not None else None

    async def for_project(self, project_id: str) -> list[Estimate]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(EstimateTable)
                .where(EstimateTable.project_id == project_id)
                .order_by(EstimateTable.created_at.desc())
            )
            return [_to_estimate(row) for row in rows]


__all__ = ("SQLAlchemyEstimateRepository",)
