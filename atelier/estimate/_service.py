"""
Estimate service — generate, supersede, look up.

    service = EstimateService(MemoryEstimateRepository(), registry)

    match await service.generate("proj1", EstimateType.ROUGH, PricingInputs(("Living Room",))):
        case Ok(estimate):
            print(estimate.number, estimate.total_amount)

Callers that show a quote use `get_or_generate`: a project without an active
estimate gets one priced from its registered areas.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Protocol

from kungfu import Result, Ok, Error

from atelier._locks import KeyedLocks
from atelier._types import Clock, new_id, utcnow
from atelier.errors import CommerceError, Errors
from atelier.estimate._pricing import DEFAULT_GST_PERCENT, DEFAULT_RATE_CARDS, price
from atelier.estimate._store import EstimateRepository
from atelier.estimate._types import (
    Estimate,
    EstimateStatus,
    EstimateType,
    PricingInputs,
    RateCard,
)

logger = logging.getLogger(__name__)

# Most precise first
GOVERNING_ORDER = (EstimateType.FINAL, EstimateType.INITIAL, EstimateType.ROUGH)


# ═══════════════════════════════════════════════════════════════════════════════
# Project Registry — External Collaborator
# ═══════════════════════════════════════════════════════════════════════════════


class ProjectRegistry(Protocol):
    async def areas(self, project_id: str) -> list[str]:
        """Areas (rooms) registered on the project."""
        ...


class StaticProjectRegistry:
    def __init__(self, projects: Mapping[str, Sequence[str]] | None = None) -> None:
        self.projects = {pid: list(areas) for pid, areas in (projects or {}).items()}

    async def areas(self, project_id: str) -> list[str]:
        return list(self.projects.get(project_id, []))


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class EstimateService:
    def __init__(
        self,
        repository: EstimateRepository,
        registry: ProjectRegistry,
        rate_cards: Mapping[EstimateType, RateCard] = DEFAULT_RATE_CARDS,
        gst_pct: Decimal = DEFAULT_GST_PERCENT,
        clock: Clock = utcnow,
    ) -> None:
        self.repository = repository
        self._registry = registry
        self._rate_cards = dict(rate_cards)
        self._gst_pct = gst_pct
        self._clock = clock
        self._locks = KeyedLocks()

    async def generate(
        self,
        project_id: str,
        estimate_type: EstimateType,
        inputs: PricingInputs,
    ) -> Result[Estimate, CommerceError]:
        """Price and store a new active estimate, superseding the previous one."""
        priced = price(
            project_id,
            estimate_type,
            inputs,
            self._rate_cards[estimate_type],
            self._gst_pct,
        )
        match priced:
            case Error(e):
                return Error(e)
            case Ok(p):
                pass

        now = self._clock()
        estimate = Estimate(
            id=new_id("est"),
            project_id=project_id,
            number=f"EST-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}",
            type=estimate_type,
            line_items=p.line_items,
            subtotal=p.subtotal,
            discount_pct=p.discount_pct,
            discount_amt=p.discount_amt,
            gst_pct=p.gst_pct,
            gst_amt=p.gst_amt,
            total_amount=p.total_amount,
            status=EstimateStatus.ACTIVE,
            areas=p.areas,
            iterations=p.iterations,
            options=p.options,
            created_at=now,
            extra_charges=inputs.extra_charges,
            notes=inputs.notes,
        )

        async with self._locks.hold(project_id):
            previous = await self.repository.replace_active(estimate)

        if previous is not None:
            logger.info(
                "estimate %s supersedes %s for project %s",
                estimate.number,
                previous.number,
                project_id,
            )
        else:
            logger.info("estimate %s created for project %s", estimate.number, project_id)
        return Ok(estimate)

    async def get_active(
        self, project_id: str, estimate_type: EstimateType
    ) -> Estimate | None:
        return await self.repository.active(project_id, estimate_type)

    async def get_or_generate(
        self, project_id: str, estimate_type: EstimateType
    ) -> Result[Estimate, CommerceError]:
        """Active estimate, or a fresh one priced from the project's areas."""
        active = await self.get_active(project_id, estimate_type)
        if active is not None:
            return Ok(active)

        areas = await self._registry.areas(project_id)
        logger.info(
            "no active %s estimate for %s, generating from %d areas",
            estimate_type.value,
            project_id,
            len(areas),
        )
        return await self.generate(project_id, estimate_type, PricingInputs(tuple(areas)))

    async def governing(self, project_id: str) -> Result[Estimate, CommerceError]:
        """The most precise active estimate; a rough one is generated if none exist."""
        for estimate_type in GOVERNING_ORDER:
            active = await self.get_active(project_id, estimate_type)
            if active is not None:
                return Ok(active)
        return await self.get_or_generate(project_id, EstimateType.ROUGH)

    async def get(self, estimate_id: str) -> Result[Estimate, CommerceError]:
        estimate = await self.repository.get(estimate_id)
        if estimate is None:
            return Error(Errors.unknown_estimate(estimate_id))
        return Ok(estimate)

    async def list(self, project_id: str) -> list[Estimate]:
        return await self.repository.for_project(project_id)


__all__ = (
    "ProjectRegistry",
    "StaticProjectRegistry",
    "EstimateService",
    "GOVERNING_ORDER",
)
