"""
Billing view as a nodnod graph.

What a project owes and what it can see, composed from independent reads.
The estimate and payment branches run concurrently.

Architecture:
    BillingQuery + BillingContext (injected)
                 │
                 ▼
             QueryNode
          ┌──────┴───────┐
          ▼              ▼
  GoverningEstimateNode  ProjectPaymentsNode
          │              │      │
          │              │      ▼
          │              │   UnlockNode
          └──────┬───────┘      │
                 ▼              │
           MilestonesNode       │
                 └──────┬───────┘
                        ▼
                 BillingViewNode

Note: no 'from __future__ import annotations' here, nodnod reads the
__compose__ hints at runtime.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from kungfu import Result, Ok, Error

from atelier import graph as G
from atelier._types import Money
from atelier.errors import CommerceError
from atelier.estimate import DEFAULT_ADVANCE_PERCENT, Estimate, EstimateService, split_milestones
from atelier.fulfillment._unlock import UnlockState, compute_unlock
from atelier.payments import Payment, PaymentRepository, PaymentType

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class BillingQuery:
    project_id: str


@dataclass(frozen=True)
class BillingContext:
    estimates: EstimateService
    payments: PaymentRepository
    advance_pct: Decimal = DEFAULT_ADVANCE_PERCENT


# ═══════════════════════════════════════════════════════════════════════════════
# Read model
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MilestoneSummary:
    """Milestones against the governing estimate."""

    advance: Money
    balance: Money
    paid_total: Money
    outstanding: Money
    advance_paid: bool
    balance_paid: bool


@dataclass(frozen=True, slots=True)
class BillingView:
    project_id: str
    estimate: Estimate
    milestones: MilestoneSummary
    unlock: UnlockState
    payments: tuple[Payment, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class QueryNode:
    def __init__(self, project_id: str, ctx: BillingContext) -> None:
        self.project_id = project_id
        self.ctx = ctx

    @classmethod
    def __compose__(cls, query: BillingQuery, ctx: BillingContext) -> "QueryNode":
        return cls(query.project_id, ctx)


@G.node
class GoverningEstimateNode:
    """FINAL over INITIAL over ROUGH, generating a rough one if none exists."""

    def __init__(self, result: Result[Estimate, CommerceError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, query: QueryNode) -> "GoverningEstimateNode":
        return cls(await query.ctx.estimates.governing(query.project_id))


@G.node
class ProjectPaymentsNode:
    def __init__(self, payments: list[Payment]) -> None:
        self.payments = payments

    @classmethod
    async def __compose__(cls, query: QueryNode) -> "ProjectPaymentsNode":
        return cls(await query.ctx.payments.for_project(query.project_id))


@G.node
class UnlockNode:
    def __init__(self, state: UnlockState) -> None:
        self.state = state

    @classmethod
    def __compose__(cls, payments: ProjectPaymentsNode) -> "UnlockNode":
        return cls(compute_unlock(payments.payments))


@G.node
class MilestonesNode:
    def __init__(self, result: Result[tuple[Estimate, MilestoneSummary], CommerceError]) -> None:
        self.result = result

    @classmethod
    def __compose__(
        cls,
        query: QueryNode,
        governing: GoverningEstimateNode,
        payments: ProjectPaymentsNode,
    ) -> "MilestonesNode":
        match governing.result:
            case Error(e):
                return cls(Error(e))
            case Ok(estimate):
                pass

        amounts = split_milestones(estimate.total_amount, query.ctx.advance_pct)
        paid = [
            p for p in payments.payments if p.is_paid and p.estimate_id == estimate.id
        ]
        paid_types = {p.type for p in paid}
        paid_total = sum(p.amount for p in paid)

        summary = MilestoneSummary(
            advance=amounts.advance,
            balance=amounts.balance,
            paid_total=paid_total,
            outstanding=max(estimate.total_amount - paid_total, 0),
            advance_paid=bool(paid_types & {PaymentType.ADVANCE, PaymentType.FULL}),
            balance_paid=bool(paid_types & {PaymentType.BALANCE, PaymentType.FULL}),
        )
        return cls(Ok((estimate, summary)))


@G.node
class BillingViewNode:
    def __init__(self, result: Result[BillingView, CommerceError]) -> None:
        self.result = result

    @classmethod
    def __compose__(
        cls,
        query: QueryNode,
        milestones: MilestonesNode,
        unlock: UnlockNode,
        payments: ProjectPaymentsNode,
    ) -> "BillingViewNode":
        match milestones.result:
            case Error(e):
                logger.warning("no billing view for %s: %s", query.project_id, e)
                return cls(Error(e))
            case Ok((estimate, summary)):
                return cls(
                    Ok(
                        BillingView(
                            project_id=query.project_id,
                            estimate=estimate,
                            milestones=summary,
                            unlock=unlock.state,
                            payments=tuple(payments.payments),
                        )
                    )
                )


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def billing_view(
    query: BillingQuery, ctx: BillingContext
) -> Result[BillingView, CommerceError]:
    node = await G.compose(BillingViewNode, query, ctx)
    return node.result


__all__ = (
    "BillingQuery",
    "BillingContext",
    "MilestoneSummary",
    "BillingView",
    "QueryNode",
    "GoverningEstimateNode",
    "ProjectPaymentsNode",
    "UnlockNode",
    "MilestonesNode",
    "BillingViewNode",
    "billing_view",
)
