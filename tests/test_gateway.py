import asyncio
from collections.abc import AsyncIterator

import pytest
from aiohttp import BasicAuth, test_utils, web

from atelier.payments import GatewayFailure, GatewayOrder, GatewayPayment, RazorpayGateway


class FakeRazorpay:
    """Just enough of the Orders API to exercise the client."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict]] = []
        self.auth: list[BasicAuth] = []
        self.status = 200
        self.delay = 0.0

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/v1/orders", self.create_order)
        app.router.add_get("/v1/payments/{payment_id}", self.fetch_payment)
        return app

    async def _prelude(self, request: web.Request) -> web.Response | None:
        self.auth.append(BasicAuth.decode(request.headers["Authorization"]))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.status != 200:
            return web.json_response({"error": {"code": "BAD_REQUEST_ERROR"}}, status=self.status)
        return None

    async def create_order(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.requests.append(("POST", request.path, body))
        if (failed := await self._prelude(request)) is not None:
            return failed
        return web.json_response(
            {
                "id": "order_Ab12",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            }
        )

    async def fetch_payment(self, request: web.Request) -> web.Response:
        self.requests.append(("GET", request.path, {}))
        if (failed := await self._prelude(request)) is not None:
            return failed
        return web.json_response(
            {
                "id": request.match_info["payment_id"],
                "entity": "payment",
                "order_id": "order_Ab12",
                "amount": "350000",
                "status": "captured",
            }
        )


@pytest.fixture
def fake() -> FakeRazorpay:
    return FakeRazorpay()


@pytest.fixture
async def gateway(fake: FakeRazorpay) -> AsyncIterator[RazorpayGateway]:
    async with test_utils.TestServer(fake.app()) as server:
        yield RazorpayGateway(
            "rzp_test_key", "rzp_test_secret", base_url=str(server.make_url("/v1")), timeout=0.5
        )


async def test_create_order(fake: FakeRazorpay, gateway: RazorpayGateway) -> None:
    order = await gateway.create_order(350_000, "INR", "pay_1", {"project_id": "proj1"})

    assert order == GatewayOrder(id="order_Ab12", amount=350_000, currency="INR", receipt="pay_1")
    [(method, path, body)] = fake.requests
    assert (method, path) == ("POST", "/v1/orders")
    assert body["notes"] == {"project_id": "proj1"}
    assert fake.auth[0].login == "rzp_test_key"
    assert fake.auth[0].password == "rzp_test_secret"


async def test_fetch_payment_coerces_amount(gateway: RazorpayGateway) -> None:
    payment = await gateway.fetch_payment("pay_Zx9")

    assert payment == GatewayPayment(
        id="pay_Zx9", order_id="order_Ab12", amount=350_000, status="captured"
    )


async def test_error_status_raises(fake: FakeRazorpay, gateway: RazorpayGateway) -> None:
    fake.status = 502

    with pytest.raises(GatewayFailure) as caught:
        await gateway.create_order(100, "INR", "pay_2", {})

    assert not caught.value.timed_out
    assert "502" in str(caught.value)


async def test_slow_gateway_times_out(fake: FakeRazorpay, gateway: RazorpayGateway) -> None:
    fake.delay = 1.0

    with pytest.raises(GatewayFailure) as caught:
        await gateway.fetch_payment("pay_slow")

    assert caught.value.timed_out


async def test_unreachable_gateway() -> None:
    gateway = RazorpayGateway("k", "s", base_url="http://127.0.0.1:9/v1", timeout=0.5)

    with pytest.raises(GatewayFailure) as caught:
        await gateway.create_order(100, "INR", "pay_3", {})

    assert not caught.value.timed_out
