import math
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

import structlog

from groupbuy_payments.errors import ValidationError
from groupbuy_payments.razorpay_service import RazorpayGateway
from groupbuy_payments.store import PaymentStore

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "INR"


def to_minor_units(amount: float) -> int:
    """Rupees to paise, rounding half up (19.999 -> 2000)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: Optional[int]) -> Optional[float]:
    if amount is None:
        return None
    return amount / 100


def is_valid_amount(amount) -> bool:
    if amount is None or isinstance(amount, bool):
        return False
    if not isinstance(amount, (int, float)) or not math.isfinite(amount):
        return False
    return amount > 0


class OrderTracker:
    def __init__(self, store: PaymentStore, gateway: RazorpayGateway):
        self.store = store
        self.gateway = gateway

    def create_order(self, amount: Optional[float], currency: Optional[str] = None,
                     receipt: Optional[str] = None, notes: Optional[Dict[str, str]] = None) -> dict:
        if not is_valid_amount(amount):
            raise ValidationError("Invalid amount")

        notes = notes or {}
        order = self.gateway.create_order(
            amount=to_minor_units(amount),
            currency=currency or DEFAULT_CURRENCY,
            receipt=receipt or f"rcpt_{int(time.time() * 1000)}",
            notes=notes,
        )
        logger.info("razorpay_order_created", order_id=order["id"], amount=order["amount"])

        self.store.add_order(
            order["id"],
            amount=order["amount"],
            amount_in_rupees=amount,
            currency=order["currency"],
            receipt=order.get("receipt"),
            status=order.get("status", "created"),
            notes=notes,
        )
        self.store.commit()

        return {
            "id": order["id"],
            "amount": order["amount"],
            "amountInRupees": amount,
            "currency": order["currency"],
            "receipt": order.get("receipt"),
        }
