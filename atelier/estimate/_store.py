"""
Estimate repository protocol and in-memory implementation.
"""

from __future__ import annotations

from typing import Protocol

from atelier.estimate._types import Estimate, EstimateStatus, EstimateType


class EstimateRepository(Protocol):
    async def replace_active(self, estimate: Estimate) -> Estimate | None:
        """
        Supersede the active estimate of the same (project, type) and store
        this one, atomically. Returns the superseded estimate, if any.
        """
        ...

    async def active(self, project_id: str, estimate_type: EstimateType) -> Estimate | None:
        ...

    async def get(self, estimate_id: str) -> Estimate | None:
        ...

    async def for_project(self, project_id: str) -> list[Estimate]:
        """Newest first."""
        ...


class MemoryEstimateRepository:
    def __init__(self) -> None:
        self._estimates: dict[str, Estimate] = {}

    async def replace_active(self, estimate: Estimate) -> Estimate | None:
        previous = await self.active(estimate.project_id, estimate.type)
        if previous is not None:
            self._estimates[previous.id] = previous.superseded()
        self._estimates[estimate.id] = estimate
        return previous

    async def active(self, project_id: str, estimate_type: EstimateType) -> Estimate | None:
        for estimate in self._estimates.values():
            if (
                estimate.project_id == project_id
                and estimate.type is estimate_type
                and estimate.status is EstimateStatus.ACTIVE
            ):
                return estimate
        return None

    async def get(self, estimate_id: str) -> Estimate | None:
        return self._estimates.get(estimate_id)

    async def for_project(self, project_id: str) -> list[Estimate]:
        found = [e for e in self._estimates.values() if e.project_id == project_id]
        return sorted(found, key=lambda e: e.created_at, reverse=True)


__all__ = ("EstimateRepository", "MemoryEstimateRepository")
