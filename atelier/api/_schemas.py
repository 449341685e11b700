"""
Request / response models. Requests know how to become domain values
(`to_domain`), responses how to be built from them (`from_domain`).

Amounts are integer minor units (paise) on the wire too.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from atelier.cart import DisplayLine
from atelier.errors import CommerceError
from atelier.estimate import Estimate, LineItem
from atelier.fulfillment import Bill, Invoice, UnlockState
from atelier.orders import CheckoutReceipt, Order, OrderItem
from atelier.payments import GatewayCallback, PaymentIntent, VerifyReceipt

# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorOut(BaseModel):
    error: str
    message: str
    retryable: bool

    @classmethod
    def from_domain(cls, err: CommerceError) -> ErrorOut:
        return cls(error=err.kind.name, message=err.public_message, retryable=err.retryable)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class CartLineOut(BaseModel):
    id: str
    product_id: str
    project_id: str | None
    area: str | None
    quantity: int
    title: str
    image_url: str | None
    unit_price: int
    live_price: int
    price_changed: bool
    line_total: int

    @classmethod
    def from_domain(cls, shown: DisplayLine) -> CartLineOut:
        line = shown.line
        return cls(
            id=line.id,
            product_id=line.product_id,
            project_id=line.project_id,
            area=line.area,
            quantity=line.quantity,
            title=shown.title,
            image_url=shown.image_url,
            unit_price=line.snapshot.unit_price,
            live_price=shown.live_price,
            price_changed=shown.price_changed,
            line_total=line.line_total,
        )


class CartOut(BaseModel):
    lines: list[CartLineOut]
    subtotal: int
    item_count: int

    @classmethod
    def from_domain(cls, shown: list[DisplayLine]) -> CartOut:
        return cls(
            lines=[CartLineOut.from_domain(s) for s in shown],
            subtotal=sum(s.line.line_total for s in shown),
            item_count=sum(s.line.quantity for s in shown),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Estimates & Unlock
# ═══════════════════════════════════════════════════════════════════════════════


class LineItemOut(BaseModel):
    code: str
    description: str
    quantity: int
    unit_amount: int
    total: int

    @classmethod
    def from_domain(cls, item: LineItem) -> LineItemOut:
        return cls(
            code=item.code,
            description=item.description,
            quantity=item.quantity,
            unit_amount=item.unit_amount,
            total=item.total,
        )


class EstimateOut(BaseModel):
    id: str
    project_id: str
    number: str
    type: str
    status: str
    line_items: list[LineItemOut]
    subtotal: int
    discount_pct: str
    discount_amt: int
    gst_pct: str
    gst_amt: int
    total_amount: int
    areas: list[str]
    iterations: int
    options: int
    created_at: datetime

    @classmethod
    def from_domain(cls, estimate: Estimate) -> EstimateOut:
        return cls(
            id=estimate.id,
            project_id=estimate.project_id,
            number=estimate.number,
            type=estimate.type.value,
            status=estimate.status.value,
            line_items=[LineItemOut.from_domain(i) for i in estimate.line_items],
            subtotal=estimate.subtotal,
            discount_pct=str(estimate.discount_pct),
            discount_amt=estimate.discount_amt,
            gst_pct=str(estimate.gst_pct),
            gst_amt=estimate.gst_amt,
            total_amount=estimate.total_amount,
            areas=list(estimate.areas),
            iterations=estimate.iterations,
            options=estimate.options,
            created_at=estimate.created_at,
        )


class UnlockOut(BaseModel):
    renders_unlocked: bool
    final_files_unlocked: bool

    @classmethod
    def from_domain(cls, state: UnlockState) -> UnlockOut:
        return cls(
            renders_unlocked=state.renders_unlocked,
            final_files_unlocked=state.final_files_unlocked,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders & Checkout
# ═══════════════════════════════════════════════════════════════════════════════


class OrderItemOut(BaseModel):
    product_id: str
    title: str
    quantity: int
    unit_price: int
    project_id: str | None
    area: str | None
    image_url: str | None

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            product_id=item.product_id,
            title=item.title,
            quantity=item.quantity,
            unit_price=item.unit_price,
            project_id=item.project_id,
            area=item.area,
            image_url=item.image_url,
        )


class OrderOut(BaseModel):
    id: str
    status: str
    delivery_status: str
    amount: int
    currency: str
    items: list[OrderItemOut]
    tracking_id: str | None
    estimated_delivery: date | None
    created_at: datetime
    paid_at: datetime | None

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            id=order.id,
            status=order.status.value,
            delivery_status=order.delivery_status.value,
            amount=order.amount,
            currency=order.currency,
            items=[OrderItemOut.from_domain(i) for i in order.items],
            tracking_id=order.tracking_id,
            estimated_delivery=order.estimated_delivery,
            created_at=order.created_at,
            paid_at=order.paid_at,
        )


class CheckoutIn(BaseModel):
    line_ids: list[str] = Field(default_factory=list)


class IntentOut(BaseModel):
    payment_id: str
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str

    @classmethod
    def from_domain(cls, intent: PaymentIntent) -> IntentOut:
        return cls(
            payment_id=intent.payment_id,
            gateway_order_id=intent.gateway_order_id,
            amount=intent.amount,
            currency=intent.currency,
            key_id=intent.key_id,
        )


class CheckoutOut(BaseModel):
    order: OrderOut
    intent: IntentOut

    @classmethod
    def from_domain(cls, receipt: CheckoutReceipt) -> CheckoutOut:
        return cls(
            order=OrderOut.from_domain(receipt.order),
            intent=IntentOut.from_domain(receipt.intent),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Verification
# ═══════════════════════════════════════════════════════════════════════════════


class VerifyIn(BaseModel):
    """Accepts the gateway's own field names as well as ours."""

    model_config = ConfigDict(populate_by_name=True)

    gateway_order_id: str = Field(
        validation_alias=AliasChoices("gateway_order_id", "razorpay_order_id")
    )
    gateway_payment_id: str = Field(
        validation_alias=AliasChoices("gateway_payment_id", "razorpay_payment_id")
    )
    gateway_signature: str = Field(
        validation_alias=AliasChoices("gateway_signature", "razorpay_signature")
    )
    local_record_id: str | None = None

    def to_domain(self) -> GatewayCallback:
        return GatewayCallback(
            gateway_order_id=self.gateway_order_id,
            gateway_payment_id=self.gateway_payment_id,
            gateway_signature=self.gateway_signature,
        )


class VerifyOut(BaseModel):
    payment_id: str
    status: str
    bill_number: str
    amount: int
    newly_paid: bool

    @classmethod
    def from_domain(cls, receipt: VerifyReceipt) -> VerifyOut:
        payment = receipt.payment
        return cls(
            payment_id=payment.id,
            status=payment.status.value,
            bill_number=payment.bill_number,
            amount=payment.amount,
            newly_paid=receipt.newly_paid,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Documents
# ═══════════════════════════════════════════════════════════════════════════════


class BillOut(BaseModel):
    number: str
    payment_id: str
    project_id: str | None
    estimate_number: str | None
    type: str
    amount: int
    currency: str
    issued_at: datetime

    @classmethod
    def from_domain(cls, bill: Bill) -> BillOut:
        return cls(
            number=bill.number,
            payment_id=bill.payment_id,
            project_id=bill.project_id,
            estimate_number=bill.estimate_number,
            type=bill.type.value,
            amount=bill.amount,
            currency=bill.currency,
            issued_at=bill.issued_at,
        )


class InvoiceOut(BaseModel):
    number: str
    order_ids: list[str]
    items: list[OrderItemOut]
    subtotal: int
    total: int
    currency: str
    issued_at: datetime

    @classmethod
    def from_domain(cls, invoice: Invoice) -> InvoiceOut:
        return cls(
            number=invoice.number,
            order_ids=list(invoice.order_ids),
            items=[OrderItemOut.from_domain(i) for i in invoice.items],
            subtotal=invoice.subtotal,
            total=invoice.total,
            currency=invoice.currency,
            issued_at=invoice.issued_at,
        )


__all__ = (
    "ErrorOut",
    "CartLineOut",
    "CartOut",
    "LineItemOut",
    "EstimateOut",
    "UnlockOut",
    "OrderItemOut",
    "OrderOut",
    "CheckoutIn",
    "IntentOut",
    "CheckoutOut",
    "VerifyIn",
    "VerifyOut",
    "BillOut",
    "InvoiceOut",
)
