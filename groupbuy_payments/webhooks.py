import json
from datetime import datetime, timezone
from typing import Optional

import structlog

from groupbuy_payments.errors import ValidationError, VerificationFailure
from groupbuy_payments.orders import from_minor_units
from groupbuy_payments.reconciler import from_timestamp
from groupbuy_payments.signatures import verify_webhook_signature
from groupbuy_payments.store import PaymentStore

logger = structlog.get_logger(__name__)


class WebhookDispatcher:
    """
    Verifies Razorpay webhook deliveries and routes them by event type.

    Each accepted delivery is appended to ``webhook_events`` and its projection
    write happens in the same commit. Handlers set target state and upsert, so
    redelivery and out-of-order arrival converge on the same rows.
    """

    def __init__(self, store: PaymentStore, webhook_secret: Optional[str]):
        self.store = store
        self.webhook_secret = webhook_secret
        self.handlers = {
            "payment.captured": self.handle_payment_captured,
            "payment.failed": self.handle_payment_failed,
            "refund.created": self.handle_refund_created,
            "refund.processed": self.handle_refund_processed,
        }

    def dispatch(self, body: bytes, signature: Optional[str], event_id: Optional[str] = None) -> Optional[str]:
        if self.webhook_secret:
            if not verify_webhook_signature(body, signature, self.webhook_secret):
                logger.warning("webhook_signature_invalid", event_id=event_id)
                raise VerificationFailure("Invalid signature")
        else:
            logger.warning("webhook_verification_disabled", event_id=event_id)

        try:
            event = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Invalid payload")
        if not isinstance(event, dict):
            raise ValidationError("Invalid payload")

        event_type = event.get("event")
        logger.info("webhook_received", event=event_type, event_id=event_id)

        handler = self.handlers.get(event_type) if isinstance(event_type, str) else None
        if handler is None:
            logger.info("webhook_event_ignored", event=event_type)
            return None

        try:
            kind = event_type.split(".")[0]
            entity = event["payload"][kind]["entity"]
        except (KeyError, TypeError):
            raise ValidationError("Invalid payload")

        handler(entity, event_id)
        self.store.commit()
        return event_type

    def handle_payment_captured(self, payment: dict, event_id: Optional[str]) -> None:
        logger.info("payment_captured", payment_id=payment["id"])
        now = datetime.now(timezone.utc)

        self.store.log_webhook_event(
            "payment.captured",
            event_id=event_id,
            payment_id=payment["id"],
            amount=from_minor_units(payment.get("amount")),
            status=payment.get("status"),
            received_at=now,
        )
        # Creates the projection if the client never confirmed; `verified` is left alone
        self.store.upsert_payment(
            payment["id"],
            order_id=payment.get("order_id"),
            amount=payment.get("amount"),
            currency=payment.get("currency"),
            method=payment.get("method"),
            email=payment.get("email"),
            contact=payment.get("contact"),
            created_at=from_timestamp(payment.get("created_at")),
            status="captured",
            captured_at=now,
        )

    def handle_payment_failed(self, payment: dict, event_id: Optional[str]) -> None:
        logger.info("payment_failed", payment_id=payment["id"], error_code=payment.get("error_code"))
        self.store.log_webhook_event(
            "payment.failed",
            event_id=event_id,
            payment_id=payment["id"],
            error_code=payment.get("error_code"),
            error_description=payment.get("error_description"),
        )

    def handle_refund_created(self, refund: dict, event_id: Optional[str]) -> None:
        logger.info("refund_created_webhook", refund_id=refund["id"])
        self.store.log_webhook_event(
            "refund.created",
            event_id=event_id,
            refund_id=refund["id"],
            payment_id=refund.get("payment_id"),
            amount=from_minor_units(refund.get("amount")),
        )

    def handle_refund_processed(self, refund: dict, event_id: Optional[str]) -> None:
        logger.info("refund_processed", refund_id=refund["id"])
        now = datetime.now(timezone.utc)

        self.store.log_webhook_event(
            "refund.processed",
            event_id=event_id,
            refund_id=refund["id"],
            payment_id=refund.get("payment_id"),
            status=refund.get("status"),
            received_at=now,
        )
        self.store.upsert_refund(
            refund["id"],
            payment_id=refund.get("payment_id"),
            amount=refund.get("amount"),
            currency=refund.get("currency"),
            created_at=from_timestamp(refund.get("created_at")),
            status="processed",
            processed_at=now,
        )
