from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from groupbuy_payments.errors import UpstreamFailure
from groupbuy_payments.models import OrderCycle, Payment, RazorpayOrder, Refund, WebhookEvent

logger = structlog.get_logger(__name__)


class PaymentStore:
    """
    All database writes go through here.

    Write methods only stage changes on the session; nothing is durable until
    ``commit()``, so a caller can group several writes into one transaction.
    Payments and refunds are keyed by their Razorpay id and merge-written.

    Staged writes are remembered until the next commit. When the commit hits
    a unique-key conflict (another request inserted the same gateway id after
    we looked it up) the transaction is rolled back and the writes are
    replayed once, so the upsert turns into a merge against the committed row.
    """

    def __init__(self, db: Session):
        self.db = db
        self._pending = []

    def add_order(self, order_id: str, **fields: Any) -> RazorpayOrder:
        return self._stage(self._add, RazorpayOrder, dict(fields, id=order_id))

    def get_order(self, order_id: str) -> Optional[RazorpayOrder]:
        return self.db.get(RazorpayOrder, order_id)

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        return self.db.get(Payment, payment_id)

    def upsert_payment(self, payment_id: str, **fields: Any) -> Payment:
        return self._stage(self._upsert, Payment, payment_id, fields)

    def update_payment(self, payment_id: str, **fields: Any) -> bool:
        """Patch an existing projection; returns False when there is none."""
        return self._stage(self._update, Payment, payment_id, fields)

    def get_refund(self, refund_id: str) -> Optional[Refund]:
        return self.db.get(Refund, refund_id)

    def upsert_refund(self, refund_id: str, **fields: Any) -> Refund:
        return self._stage(self._upsert, Refund, refund_id, fields)

    def log_webhook_event(self, event: str, **fields: Any) -> WebhookEvent:
        return self._stage(self._add, WebhookEvent, dict(fields, event=event))

    def get_cycle(self, cycle_id: str) -> Optional[OrderCycle]:
        return self.db.get(OrderCycle, cycle_id)

    def mark_participant_paid(self, cycle_id: str, user_id: str, payment_id: str, paid_at: datetime) -> bool:
        """
        Flip one pending participant to paid.

        Returns True only when a participant changed. A missing cycle, an
        unknown user or an already-paid participant leaves the cycle untouched,
        ``updated_at`` included.
        """
        return self._stage(self._mark_paid, cycle_id, user_id, payment_id, paid_at)

    def commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("database_commit_conflict", error=str(e.orig))
            self._replay()
        except SQLAlchemyError as e:
            self._fail(e)
        self._pending = []

    def _replay(self) -> None:
        try:
            for func, args in self._pending:
                func(*args)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail(e)

    def _fail(self, error: SQLAlchemyError):
        self.db.rollback()
        self._pending = []
        logger.error("database_commit_failed", error=str(error))
        raise UpstreamFailure("Database write failed") from error

    def _stage(self, func, *args):
        self._pending.append((func, args))
        return func(*args)

    def _add(self, model, fields: dict):
        instance = model(**fields)
        self.db.add(instance)
        return instance

    def _upsert(self, model, key: str, fields: dict):
        instance = self.db.get(model, key)
        if instance is None:
            instance = model(id=key, **fields)
            self.db.add(instance)
        else:
            # Merge: fields the new observation does not carry keep their value
            for name, value in fields.items():
                if value is not None:
                    setattr(instance, name, value)
        return instance

    def _update(self, model, key: str, fields: dict) -> bool:
        instance = self.db.get(model, key)
        if instance is None:
            return False
        for name, value in fields.items():
            setattr(instance, name, value)
        return True

    def _mark_paid(self, cycle_id: str, user_id: str, payment_id: str, paid_at: datetime) -> bool:
        cycle = self.get_cycle(cycle_id)
        if cycle is None:
            return False

        flipped = False
        participants = []
        for participant in cycle.participants or []:
            if not flipped and participant.get("userId") == user_id and participant.get("paymentStatus") != "paid":
                participant = {
                    **participant,
                    "paymentStatus": "paid",
                    "razorpayPaymentId": payment_id,
                    "paidAt": paid_at.isoformat(),
                }
                flipped = True
            participants.append(participant)

        if not flipped:
            return False

        # Reassign so the JSON column is flagged dirty
        cycle.participants = participants
        cycle.updated_at = paid_at
        return True
