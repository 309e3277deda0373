"""
Payment confirmation and the operations around it.

``verify_and_record`` is the synchronous half of reconciliation: the client
reports a completed checkout, we check the Razorpay signature, pull the
authoritative payment record and project it locally together with the
order-cycle participant it pays for. The webhook dispatcher reaches the same
end state asynchronously.
"""
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog

from groupbuy_payments.errors import DomainConflict, ValidationError, VerificationFailure
from groupbuy_payments.orders import from_minor_units, is_valid_amount, to_minor_units
from groupbuy_payments.razorpay_service import RazorpayGateway
from groupbuy_payments.signatures import verify_payment_signature
from groupbuy_payments.store import PaymentStore

logger = structlog.get_logger(__name__)


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def refund_summary(refund: dict) -> dict:
    return {
        "id": refund["id"],
        "paymentId": refund.get("payment_id"),
        "amount": from_minor_units(refund.get("amount")),
        "currency": refund.get("currency"),
        "status": refund.get("status"),
    }


class PaymentReconciler:
    def __init__(self, store: PaymentStore, gateway: RazorpayGateway, key_secret: str):
        self.store = store
        self.gateway = gateway
        self.key_secret = key_secret

    def verify_and_record(self, order_id: Optional[str], payment_id: Optional[str],
                          signature: Optional[str], cycle_id: Optional[str] = None,
                          user_id: Optional[str] = None) -> dict:
        if not order_id or not payment_id or not signature:
            raise ValidationError("Missing required payment parameters")

        if not verify_payment_signature(order_id, payment_id, signature, self.key_secret):
            logger.warning("payment_signature_invalid", order_id=order_id, payment_id=payment_id)
            raise VerificationFailure("Payment verification failed")

        logger.info("payment_signature_verified", payment_id=payment_id)

        payment = self.gateway.fetch_payment(payment_id)
        now = datetime.now(timezone.utc)

        self.store.upsert_payment(
            payment_id,
            order_id=order_id,
            signature=signature,
            cycle_id=cycle_id,
            user_id=user_id,
            amount=payment.get("amount"),
            currency=payment.get("currency"),
            status=payment.get("status"),
            method=payment.get("method"),
            email=payment.get("email"),
            contact=payment.get("contact"),
            verified=True,
            created_at=from_timestamp(payment.get("created_at")),
            verified_at=now,
        )

        if cycle_id and user_id:
            if self.store.get_cycle(cycle_id) is None:
                logger.info("order_cycle_not_found", cycle_id=cycle_id)
            elif self.store.mark_participant_paid(cycle_id, user_id, payment_id, now):
                logger.info("order_cycle_participant_paid", cycle_id=cycle_id, user_id=user_id)
            else:
                logger.info("order_cycle_participant_not_found", cycle_id=cycle_id, user_id=user_id)

        # Payment projection and participant update land together
        self.store.commit()

        return {
            "id": payment_id,
            "orderId": order_id,
            "amount": from_minor_units(payment.get("amount")),
            "currency": payment.get("currency"),
            "status": payment.get("status"),
            "method": payment.get("method"),
        }

    def fetch_payment(self, payment_id: Optional[str]) -> dict:
        if not payment_id:
            raise ValidationError("Payment ID is required")

        payment = self.gateway.fetch_payment(payment_id)
        return {
            "id": payment["id"],
            "orderId": payment.get("order_id"),
            "amount": from_minor_units(payment.get("amount")),
            "currency": payment.get("currency"),
            "status": payment.get("status"),
            "method": payment.get("method"),
            "email": payment.get("email"),
            "contact": payment.get("contact"),
            "createdAt": from_timestamp(payment.get("created_at")),
        }

    def refund(self, payment_id: Optional[str], amount: Optional[float] = None,
               notes: Optional[Dict[str, str]] = None) -> dict:
        if not payment_id:
            raise ValidationError("Payment ID is required")
        # Zero or no amount asks for a full refund
        if amount and not is_valid_amount(amount):
            raise ValidationError("Invalid refund amount")

        # Raises through the gateway adapter when the payment does not exist
        self.gateway.fetch_payment(payment_id)

        notes = notes or {}
        refund = self.gateway.refund_payment(
            payment_id,
            amount=to_minor_units(amount) if amount else None,
            notes=notes,
        )
        logger.info("refund_created", refund_id=refund["id"], payment_id=payment_id)

        self.store.upsert_refund(
            refund["id"],
            payment_id=payment_id,
            amount=refund.get("amount"),
            currency=refund.get("currency"),
            status=refund.get("status"),
            notes=notes,
            created_at=from_timestamp(refund.get("created_at")),
        )
        self.store.commit()

        return refund_summary(refund)

    def fetch_refund(self, refund_id: Optional[str]) -> dict:
        if not refund_id:
            raise ValidationError("Refund ID is required")

        refund = self.gateway.fetch_refund(refund_id)
        return {
            **refund_summary(refund),
            "createdAt": from_timestamp(refund.get("created_at")),
        }

    def cancel_payment(self, payment_id: Optional[str]) -> dict:
        if not payment_id:
            raise ValidationError("Payment ID is required")

        payment = self.gateway.fetch_payment(payment_id)
        if payment.get("status") != "authorized":
            raise DomainConflict(f"Cannot cancel payment with status: {payment.get('status')}")

        cancelled = self.gateway.cancel_payment(payment_id)
        logger.info("payment_cancelled", payment_id=payment_id)

        if self.store.update_payment(payment_id, status="cancelled", cancelled_at=datetime.now(timezone.utc)):
            self.store.commit()

        return {"id": cancelled.get("id", payment_id), "status": cancelled.get("status", "cancelled")}
