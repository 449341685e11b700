"""
Fulfillment — what happens after money moves.

    from atelier import fulfillment as F

    delivery = F.DeliveryStateMachine(orders, sink)
    await delivery.advance(order.id, DeliveryStatus.PROCESSING)

    unlocks = F.UnlockReader(payments)
    state = await unlocks.read(project_id)    # derived, never stored

    view = await F.billing_view(F.BillingQuery(project_id), F.BillingContext(estimates, payments))

    documents = F.Documents(payments, orders)
    bill = await documents.bill(payment_id)       # paid design milestone
    invoice = await documents.invoice(order_id)   # paid checkout
"""

from atelier.fulfillment._delivery import DeliveryStateMachine
from atelier.fulfillment._unlock import UnlockState, compute_unlock, UnlockReader
from atelier.fulfillment._billing import (
    BillingQuery,
    BillingContext,
    MilestoneSummary,
    BillingView,
    billing_view,
)
from atelier.fulfillment._documents import Bill, Invoice, invoice_number, Documents

__all__ = (
    # Delivery
    "DeliveryStateMachine",
    # Unlock
    "UnlockState",
    "compute_unlock",
    "UnlockReader",
    # Billing
    "BillingQuery",
    "BillingContext",
    "MilestoneSummary",
    "BillingView",
    "billing_view",
    # Documents
    "Bill",
    "Invoice",
    "invoice_number",
    "Documents",
)
