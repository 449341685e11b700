"""
Payment gateways.

`RazorpayGateway` talks to the REST API over aiohttp. `SandboxGateway` runs
in-process: it hands out order ids, signs completion callbacks with the same
HMAC the real gateway uses, and can be switched offline or slowed down.

Both raise `GatewayFailure` on trouble; the orchestrator turns that into
GatewayUnavailable / GatewayTimeout.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from atelier._types import Money
from atelier.payments._signature import sign
from atelier.payments._types import GatewayCallback, GatewayOrder, GatewayPayment

logger = logging.getLogger(__name__)

RAZORPAY_API = "https://api.razorpay.com/v1"


class GatewayFailure(Exception):
    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentGateway(Protocol):
    @property
    def key_id(self) -> str:
        """Public key the client checkout is opened with."""
        ...

    async def create_order(
        self,
        amount: Money,
        currency: str,
        receipt: str,
        notes: Mapping[str, str],
    ) -> GatewayOrder:
        ...

    async def fetch_payment(self, gateway_payment_id: str) -> GatewayPayment:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Razorpay
# ═══════════════════════════════════════════════════════════════════════════════


class RazorpayGateway:
    """
    Razorpay Orders API client.

        gateway = RazorpayGateway(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET)
        order = await gateway.create_order(3_500_000, "INR", "pay_1a2b", {"project_id": "p1"})
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = RAZORPAY_API,
        timeout: float = 10.0,
    ) -> None:
        self._key_id = key_id
        self._key_secret = key_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def key_id(self) -> str:
        return self._key_id

    async def create_order(
        self,
        amount: Money,
        currency: str,
        receipt: str,
        notes: Mapping[str, str],
    ) -> GatewayOrder:
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": dict(notes),
        }
        data = await self._request("POST", "/orders", json=payload)
        return GatewayOrder(
            id=data["id"],
            amount=int(data["amount"]),
            currency=data["currency"],
            receipt=data.get("receipt"),
        )

    async def fetch_payment(self, gateway_payment_id: str) -> GatewayPayment:
        data = await self._request("GET", f"/payments/{gateway_payment_id}")
        return GatewayPayment(
            id=data["id"],
            order_id=data["order_id"],
            amount=int(data["amount"]),
            status=data["status"],
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        auth = aiohttp.BasicAuth(self._key_id, self._key_secret)
        timeout = aiohttp.ClientTimeout(total=self._timeout)

        try:
            async with aiohttp.ClientSession(auth=auth, timeout=timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    if response.status == 200:
                        data: dict[str, Any] = await response.json()
                        return data
                    body = await response.text()
                    logger.error(
                        "gateway %s %s answered %s: %s", method, path, response.status, body
                    )
                    raise GatewayFailure(f"gateway answered {response.status}")
        except asyncio.TimeoutError as e:
            raise GatewayFailure(f"gateway {method} {path} timed out", timed_out=True) from e
        except aiohttp.ClientError as e:
            raise GatewayFailure(f"gateway {method} {path} failed: {e}") from e


# ═══════════════════════════════════════════════════════════════════════════════
# Sandbox
# ═══════════════════════════════════════════════════════════════════════════════


class SandboxGateway:
    """
    In-process gateway for tests and local runs.

        gateway = SandboxGateway()
        intent = ...                       # orchestrator.create_intent(...)
        callback = gateway.complete(intent.gateway_order_id)
        await orchestrator.verify(callback)
    """

    def __init__(
        self,
        key_id: str = "rzp_test_sandbox",
        key_secret: str = "sandbox_secret",
        latency: float = 0.0,
    ) -> None:
        self._key_id = key_id
        self.key_secret = key_secret
        self.latency = latency
        self.available = True
        self.orders: dict[str, GatewayOrder] = {}
        self.payments: dict[str, GatewayPayment] = {}

    @property
    def key_id(self) -> str:
        return self._key_id

    async def create_order(
        self,
        amount: Money,
        currency: str,
        receipt: str,
        notes: Mapping[str, str],
    ) -> GatewayOrder:
        await self._round_trip()
        order = GatewayOrder(
            id=f"order_{secrets.token_hex(7)}",
            amount=amount,
            currency=currency,
            receipt=receipt,
        )
        self.orders[order.id] = order
        return order

    async def fetch_payment(self, gateway_payment_id: str) -> GatewayPayment:
        await self._round_trip()
        payment = self.payments.get(gateway_payment_id)
        if payment is None:
            raise GatewayFailure(f"unknown payment {gateway_payment_id}")
        return payment

    def complete(self, gateway_order_id: str, amount: Money | None = None) -> GatewayCallback:
        """Simulate the user finishing checkout. Returns the signed callback."""
        order = self.orders[gateway_order_id]
        payment = GatewayPayment(
            id=f"pay_{secrets.token_hex(7)}",
            order_id=gateway_order_id,
            amount=order.amount if amount is None else amount,
            status="captured",
        )
        self.payments[payment.id] = payment
        return GatewayCallback(
            gateway_order_id=gateway_order_id,
            gateway_payment_id=payment.id,
            gateway_signature=sign(self.key_secret, gateway_order_id, payment.id),
        )

    async def _round_trip(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if not self.available:
            raise GatewayFailure("sandbox gateway is offline")


__all__ = (
    "GatewayFailure",
    "PaymentGateway",
    "RazorpayGateway",
    "SandboxGateway",
    "RAZORPAY_API",
)
