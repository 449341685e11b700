"""
Gateway callback signatures.

The gateway signs `order_id|payment_id` with HMAC-SHA256 using the key
secret and sends the hex digest. We recompute and compare in constant time.
"""

import hashlib
import hmac

from atelier.payments._types import GatewayCallback


def sign(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def signature_matches(secret: str, callback: GatewayCallback) -> bool:
    expected = sign(secret, callback.gateway_order_id, callback.gateway_payment_id)
    return hmac.compare_digest(expected.encode(), callback.gateway_signature.encode())


__all__ = ("sign", "signature_matches")
