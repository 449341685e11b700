"""
HTTP routes. Thin: pull the caller, call one service, map the Result.

Caller identity comes from the X-User-Id header, set by whatever
authenticates in front of this service.
"""

from __future__ import annotations

import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from kungfu import Ok, Error

from atelier.api._schemas import (
    BillOut,
    CartOut,
    CheckoutIn,
    CheckoutOut,
    ErrorOut,
    EstimateOut,
    InvoiceOut,
    OrderOut,
    UnlockOut,
    VerifyIn,
    VerifyOut,
)
from atelier.errors import CommerceError, ErrorCategory, ErrorKind
from atelier.estimate import EstimateType
from atelier.services import Commerce

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_STATUS = {
    ErrorCategory.VALIDATION: 422,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.SECURITY: 400,
    ErrorCategory.TRANSIENT: 503,
}

_NOT_FOUND = frozenset(
    {
        ErrorKind.UNKNOWN_ORDER,
        ErrorKind.UNKNOWN_LINE,
        ErrorKind.UNKNOWN_PAYMENT,
        ErrorKind.UNKNOWN_ESTIMATE,
    }
)


def fail(err: CommerceError, *, read: bool = False) -> NoReturn:
    """Raise the HTTP error for a domain error. Unknown resources are 404 on reads."""
    status = 404 if read and err.kind in _NOT_FOUND else _STATUS[err.category]
    raise HTTPException(status_code=status, detail=ErrorOut.from_domain(err).model_dump())


# ═══════════════════════════════════════════════════════════════════════════════
# Dependencies
# ═══════════════════════════════════════════════════════════════════════════════


def get_commerce(request: Request) -> Commerce:
    return request.app.state.commerce


def get_user(x_user_id: Annotated[str | None, Header()] = None) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return x_user_id


CommerceDep = Annotated[Commerce, Depends(get_commerce)]
UserDep = Annotated[str, Depends(get_user)]


# ═══════════════════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════════════════


@router.get("/cart")
async def get_cart(commerce: CommerceDep, user_id: UserDep) -> CartOut:
    lines = await commerce.carts.for_owner(user_id).list()
    return CartOut.from_domain(await commerce.resolver.resolve_all(lines))


@router.get("/projects/{project_id}/estimates/{estimate_type}")
async def get_estimate(
    project_id: str,
    estimate_type: EstimateType,
    commerce: CommerceDep,
    user_id: UserDep,
) -> EstimateOut:
    match await commerce.estimates.get_or_generate(project_id, estimate_type):
        case Ok(estimate):
            return EstimateOut.from_domain(estimate)
        case Error(e):
            fail(e, read=True)


@router.get("/projects/{project_id}/unlock-state")
async def get_unlock_state(project_id: str, commerce: CommerceDep, user_id: UserDep) -> UnlockOut:
    return UnlockOut.from_domain(await commerce.unlocks.read(project_id))


@router.get("/orders/{order_id}")
async def get_order(order_id: str, commerce: CommerceDep, user_id: UserDep) -> OrderOut:
    match await commerce.orders.get(order_id):
        case Ok(order) if order.user_id == user_id:
            return OrderOut.from_domain(order)
        case Ok(_):
            # Someone else's order looks the same as a missing one
            raise HTTPException(status_code=404, detail="Order not found")
        case Error(e):
            fail(e, read=True)


@router.get("/orders/{order_id}/invoice")
async def get_invoice(order_id: str, commerce: CommerceDep, user_id: UserDep) -> InvoiceOut:
    match await commerce.documents.invoice(order_id):
        case Ok(invoice) if invoice.user_id == user_id:
            return InvoiceOut.from_domain(invoice)
        case Ok(_):
            raise HTTPException(status_code=404, detail="Order not found")
        case Error(e):
            fail(e, read=True)


@router.get("/payments/{payment_id}/bill")
async def get_bill(payment_id: str, commerce: CommerceDep, user_id: UserDep) -> BillOut:
    match await commerce.documents.bill(payment_id):
        case Ok(bill) if bill.user_id in (None, user_id):
            return BillOut.from_domain(bill)
        case Ok(_):
            raise HTTPException(status_code=404, detail="Payment not found")
        case Error(e):
            fail(e, read=True)


@router.post("/checkout")
async def checkout(body: CheckoutIn, commerce: CommerceDep, user_id: UserDep) -> CheckoutOut:
    match await commerce.orders.checkout(user_id, body.line_ids):
        case Ok(receipt):
            return CheckoutOut.from_domain(receipt)
        case Error(e):
            fail(e)


@router.post("/payments/verify")
async def verify_payment(body: VerifyIn, commerce: CommerceDep, user_id: UserDep) -> VerifyOut:
    match await commerce.payments.verify(body.to_domain(), body.local_record_id):
        case Ok(receipt):
            return VerifyOut.from_domain(receipt)
        case Error(e):
            fail(e)


__all__ = ("router", "fail", "get_commerce", "get_user")
