"""
Payment gateway signature verification.

The gateway signs "<order_ref>|<transaction_ref>" with HMAC-SHA256 using the shared key secret and
returns the hex digest to the client, which forwards it to us. We recompute and compare in constant time.
"""

import hashlib
import hmac
from typing import Optional

from app.core.config import settings
from app.core.exceptions import ServiceError


def _secret(secret: Optional[str]) -> bytes:
    value = secret if secret is not None else settings.payment_gateway_key_secret
    if not value:
        raise ServiceError("Payment gateway key secret is not configured")
    return value.encode("utf-8")


def create_signature(order_ref: str, transaction_ref: str, secret: Optional[str] = None) -> str:
    message = f"{order_ref}|{transaction_ref}".encode("utf-8")
    return hmac.new(_secret(secret), message, hashlib.sha256).hexdigest()


def verify_signature(
    order_ref: str,
    transaction_ref: str,
    provided_signature: str,
    secret: Optional[str] = None,
) -> bool:
    expected = create_signature(order_ref, transaction_ref, secret)
    provided = (provided_signature or "").strip().encode("utf-8")
    return hmac.compare_digest(expected.encode("utf-8"), provided)
