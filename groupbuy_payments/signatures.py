"""
HMAC-SHA256 signature checks for Razorpay.

Two distinct schemes are in use:

- payment confirmation: ``"{order_id}|{payment_id}"`` signed with the key secret
- webhook delivery: the raw request body signed with the webhook secret

A mismatch is an expected outcome, so the ``verify_*`` helpers return a bool
instead of raising.
"""
import hashlib
import hmac
from typing import Optional, Union


def compute_signature(secret: str, payload: Union[str, bytes]) -> str:
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: Union[str, bytes], signature: Optional[str], secret: str) -> bool:
    if not signature or not secret:
        return False
    expected = compute_signature(secret, payload)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def verify_payment_signature(order_id: str, payment_id: str, signature: Optional[str], secret: str) -> bool:
    return verify_signature(f"{order_id}|{payment_id}", signature, secret)


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    return verify_signature(body, signature, secret)
