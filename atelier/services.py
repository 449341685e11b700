"""
Composition root — one object holding every service, wired together.

    commerce = build_in_memory(SandboxGateway())           # tests, examples
    commerce = build_sqlalchemy(session_factory, gateway)  # real storage
    commerce, engine = await from_config()                 # env driven

Wiring done here:
    payments.on_paid → orders.on_payment_verified   (mark order paid, trim cart)
    payments.on_paid → unlocks.on_payment_verified  (unlock notification)
    payments.guard   ← milestones                   (ceiling, no double milestone)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from kungfu import Result
from sqlalchemy.ext.asyncio import AsyncEngine

from atelier import cart as C
from atelier import estimate as E
from atelier import fulfillment as F
from atelier import orders as O
from atelier import payments as P
from atelier._types import Clock, utcnow
from atelier.config import Config, config as default_config
from atelier.db import SessionFactory, create_database
from atelier.errors import CommerceError
from atelier.notify import LoggingSink, NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class Commerce:
    carts: C.Carts
    resolver: C.ProductResolver
    estimates: E.EstimateService
    payments: P.PaymentOrchestrator
    milestones: P.MilestoneBilling
    orders: O.OrderLedger
    delivery: F.DeliveryStateMachine
    unlocks: F.UnlockReader
    documents: F.Documents
    sink: NotificationSink

    async def billing(self, project_id: str) -> Result[F.BillingView, CommerceError]:
        return await F.billing_view(
            F.BillingQuery(project_id),
            F.BillingContext(
                self.estimates, self.payments.payments, self.milestones.advance_pct
            ),
        )


@dataclass(frozen=True)
class Storage:
    carts: C.CartBackend
    estimates: E.EstimateRepository
    payments: P.PaymentRepository
    orders: O.OrderRepository


def assemble(
    storage: Storage,
    gateway: P.PaymentGateway,
    *,
    key_secret: str,
    registry: E.ProjectRegistry | None = None,
    catalog: C.Catalog | None = None,
    sink: NotificationSink | None = None,
    currency: str = "INR",
    gst_pct: Decimal = E.DEFAULT_GST_PERCENT,
    advance_pct: Decimal = E.DEFAULT_ADVANCE_PERCENT,
    gateway_timeout: float = 10.0,
    confirm_amount: bool = False,
    pending_ttl: timedelta = timedelta(minutes=30),
    catalog_timeout: float = 1.5,
    catalog_cache_size: int = 1000,
    notify_timeout: float = 2.0,
    clock: Clock = utcnow,
) -> Commerce:
    if not key_secret:
        raise ValueError("Payment gateway not configured: empty key secret")
    sink = sink if sink is not None else LoggingSink()

    carts = C.Carts(storage.carts, clock=clock)
    resolver = C.ProductResolver(
        catalog, C.LocalTier(max_size=catalog_cache_size, clock=clock), timeout=catalog_timeout
    )
    estimates = E.EstimateService(
        storage.estimates,
        registry if registry is not None else E.StaticProjectRegistry(),
        gst_pct=gst_pct,
        clock=clock,
    )
    payments = P.PaymentOrchestrator(
        gateway,
        storage.payments,
        key_secret=key_secret,
        currency=currency,
        gateway_timeout=gateway_timeout,
        confirm_amount=confirm_amount,
        pending_ttl=pending_ttl,
        clock=clock,
    )
    milestones = P.MilestoneBilling(estimates, payments, advance_pct)
    orders = O.OrderLedger(carts, storage.orders, payments, clock=clock)
    delivery = F.DeliveryStateMachine(storage.orders, sink, notify_timeout, clock=clock)
    unlocks = F.UnlockReader(storage.payments, sink, notify_timeout)
    documents = F.Documents(storage.payments, storage.orders)
    payments.on_paid(unlocks.on_payment_verified)

    return Commerce(
        carts=carts,
        resolver=resolver,
        estimates=estimates,
        payments=payments,
        milestones=milestones,
        orders=orders,
        delivery=delivery,
        unlocks=unlocks,
        documents=documents,
        sink=sink,
    )


def build_in_memory(
    gateway: P.PaymentGateway,
    *,
    key_secret: str | None = None,
    **options,
) -> Commerce:
    """In-memory stores. The sandbox gateway brings its own secret."""
    if key_secret is None:
        if not isinstance(gateway, P.SandboxGateway):
            raise ValueError("key_secret is required for a real gateway")
        key_secret = gateway.key_secret
    storage = Storage(
        carts=C.MemoryCartBackend(),
        estimates=E.MemoryEstimateRepository(),
        payments=P.MemoryPaymentRepository(),
        orders=O.MemoryOrderRepository(),
    )
    return assemble(storage, gateway, key_secret=key_secret, **options)


def build_sqlalchemy(
    session_factory: SessionFactory,
    gateway: P.PaymentGateway,
    *,
    key_secret: str,
    **options,
) -> Commerce:
    storage = Storage(
        carts=C.SQLAlchemyCartBackend(session_factory),
        estimates=E.SQLAlchemyEstimateRepository(session_factory),
        payments=P.SQLAlchemyPaymentRepository(session_factory),
        orders=O.SQLAlchemyOrderRepository(session_factory),
    )
    return assemble(storage, gateway, key_secret=key_secret, **options)


async def from_config(
    cfg: Config = default_config,
    *,
    registry: E.ProjectRegistry | None = None,
    catalog: C.Catalog | None = None,
    sink: NotificationSink | None = None,
) -> tuple[Commerce, AsyncEngine]:
    """Razorpay + SQLAlchemy from environment settings. Caller disposes the engine."""
    missing = [
        name
        for name, value in (
            ("RAZORPAY_KEY_ID", cfg.RAZORPAY_KEY_ID),
            ("RAZORPAY_KEY_SECRET", cfg.RAZORPAY_KEY_SECRET),
        )
        if not value.strip()
    ]
    if missing:
        raise ValueError(f"Payment gateway not configured: {', '.join(missing)} not set")

    session_factory, engine = await create_database(cfg.DATABASE_URL)
    gateway = P.RazorpayGateway(
        cfg.RAZORPAY_KEY_ID,
        cfg.RAZORPAY_KEY_SECRET,
        base_url=cfg.GATEWAY_BASE_URL,
        timeout=cfg.GATEWAY_TIMEOUT_SECONDS,
    )
    commerce = build_sqlalchemy(
        session_factory,
        gateway,
        key_secret=cfg.RAZORPAY_KEY_SECRET,
        registry=registry,
        catalog=catalog,
        sink=sink,
        currency=cfg.CURRENCY,
        gst_pct=cfg.GST_PERCENT,
        advance_pct=cfg.ADVANCE_PERCENT,
        gateway_timeout=cfg.GATEWAY_TIMEOUT_SECONDS,
        confirm_amount=cfg.CONFIRM_CAPTURED_AMOUNT,
        pending_ttl=timedelta(minutes=cfg.PENDING_TTL_MINUTES),
        catalog_timeout=cfg.CATALOG_TIMEOUT_SECONDS,
        catalog_cache_size=cfg.CATALOG_CACHE_SIZE,
        notify_timeout=cfg.NOTIFY_TIMEOUT_SECONDS,
    )
    logger.info("commerce services ready (database %s)", cfg.DATABASE_URL.split("://")[0])
    return commerce, engine


__all__ = (
    "Commerce",
    "Storage",
    "assemble",
    "build_in_memory",
    "build_sqlalchemy",
    "from_config",
)
