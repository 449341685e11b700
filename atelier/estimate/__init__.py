"""
Estimate — priced design quotes per project.

    from atelier import estimate as E

    service = E.EstimateService(E.MemoryEstimateRepository(), registry)
    result = await service.get_or_generate("proj1", E.EstimateType.ROUGH)

At most one active estimate per (project, type). Generating again supersedes.
"""

from atelier.estimate._types import (
    EstimateType,
    EstimateStatus,
    PricingInputs,
    RateCard,
    LineItem,
    Estimate,
    MilestoneAmounts,
)
from atelier.estimate._pricing import (
    DEFAULT_GST_PERCENT,
    DEFAULT_ADVANCE_PERCENT,
    DEFAULT_RATE_CARDS,
    Priced,
    price,
    split_milestones,
)
from atelier.estimate._store import EstimateRepository, MemoryEstimateRepository
from atelier.estimate._sqlalchemy import SQLAlchemyEstimateRepository
from atelier.estimate._service import (
    ProjectRegistry,
    StaticProjectRegistry,
    EstimateService,
    GOVERNING_ORDER,
)

__all__ = (
    # Types
    "EstimateType",
    "EstimateStatus",
    "PricingInputs",
    "RateCard",
    "LineItem",
    "Estimate",
    "MilestoneAmounts",
    # Pricing
    "DEFAULT_GST_PERCENT",
    "DEFAULT_ADVANCE_PERCENT",
    "DEFAULT_RATE_CARDS",
    "Priced",
    "price",
    "split_milestones",
    # Storage
    "EstimateRepository",
    "MemoryEstimateRepository",
    "SQLAlchemyEstimateRepository",
    # Service
    "ProjectRegistry",
    "StaticProjectRegistry",
    "EstimateService",
    "GOVERNING_ORDER",
)
