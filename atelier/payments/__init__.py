"""
Payments — gateway intents, signature verification, milestone billing.

    from atelier import payments as P

    orchestrator = P.PaymentOrchestrator(gateway, P.MemoryPaymentRepository(), key_secret=secret)

    match await orchestrator.create_intent(P.IntentRequest(amount=order.amount, order_id=order.id)):
        case Ok(intent):
            ...  # hand intent.gateway_order_id + intent.key_id to the client

    match await orchestrator.verify(callback):
        case Ok(receipt):
            ...  # receipt.newly_paid is False for a replay
        case Error(e):
            ...  # e.public_message for the user

Note: verification runs as a nodnod graph (`_graph.py`), one state node per
branch of the protocol.
"""

from atelier.payments._types import (
    PaymentType,
    PaymentStatus,
    Payment,
    IntentRequest,
    PaymentIntent,
    GatewayCallback,
    VerifyReceipt,
    GatewayOrder,
    GatewayPayment,
    PaymentEffect,
    PaymentGuard,
)
from atelier.payments._signature import sign, signature_matches
from atelier.payments._gateway import (
    GatewayFailure,
    PaymentGateway,
    RazorpayGateway,
    SandboxGateway,
)
from atelier.payments._store import PaymentRepository, MemoryPaymentRepository
from atelier.payments._sqlalchemy import SQLAlchemyPaymentRepository
from atelier.payments._graph import VerifySpec, run_verification
from atelier.payments._orchestrator import PaymentOrchestrator
from atelier.payments._milestones import MilestoneBilling

__all__ = (
    # Types
    "PaymentType",
    "PaymentStatus",
    "Payment",
    "IntentRequest",
    "PaymentIntent",
    "GatewayCallback",
    "VerifyReceipt",
    "GatewayOrder",
    "GatewayPayment",
    "PaymentEffect",
    "PaymentGuard",
    # Signature
    "sign",
    "signature_matches",
    # Gateways
    "GatewayFailure",
    "PaymentGateway",
    "RazorpayGateway",
    "SandboxGateway",
    # Storage
    "PaymentRepository",
    "MemoryPaymentRepository",
    "SQLAlchemyPaymentRepository",
    # Verification
    "VerifySpec",
    "run_verification",
    # Orchestration
    "PaymentOrchestrator",
    "MilestoneBilling",
)
