"""
atelier — commerce & fulfillment core of an interior-design app.

    from atelier import cart as C         # Per-user cart, live catalog lookups
    from atelier import estimate as E     # Priced design quotes
    from atelier import payments as P     # Gateway intents, verification, milestones
    from atelier import orders as O       # Checkout saga, order ledger
    from atelier import fulfillment as F  # Delivery, unlock state, billing view

    from atelier.services import build_in_memory
    from atelier.api import create_app    # HTTP surface (FastAPI)
"""

from atelier import cart
from atelier import estimate
from atelier import payments
from atelier import orders
from atelier import fulfillment
from atelier import graph
from atelier._types import Money, percent_of, new_id
from atelier.errors import CommerceError, ErrorCategory, ErrorKind, Errors

__version__ = "0.1.0"

__all__ = (
    "cart",
    "estimate",
    "payments",
    "orders",
    "fulfillment",
    "graph",
    "Money",
    "percent_of",
    "new_id",
    "CommerceError",
    "ErrorCategory",
    "ErrorKind",
    "Errors",
)
