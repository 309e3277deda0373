from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String

from groupbuy_payments.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class RazorpayOrder(Base):
    __tablename__ = "razorpay_orders"

    id = Column(String, primary_key=True)          # Razorpay order ID
    amount = Column(Integer, nullable=False)       # paise
    amount_in_rupees = Column(Float)
    currency = Column(String, nullable=False)
    receipt = Column(String, index=True)           # advisory, may repeat across retries
    status = Column(String, nullable=False)        # created | paid | cancelled
    notes = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True)          # Razorpay payment ID
    order_id = Column(String, index=True)
    signature = Column(String)
    cycle_id = Column(String)
    user_id = Column(String)
    amount = Column(Integer)
    currency = Column(String)
    status = Column(String)                        # authorized | captured | failed | cancelled
    method = Column(String)
    email = Column(String)
    contact = Column(String)
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True))
    verified_at = Column(DateTime(timezone=True))
    captured_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Refund(Base):
    __tablename__ = "refunds"

    id = Column(String, primary_key=True)          # Razorpay refund ID
    payment_id = Column(String, index=True)
    amount = Column(Integer)
    currency = Column(String)
    status = Column(String)                        # created | processed
    notes = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True))
    processed_at = Column(DateTime(timezone=True))


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event = Column(String, nullable=False)
    event_id = Column(String, index=True)          # X-Razorpay-Event-Id, when sent
    payment_id = Column(String)
    refund_id = Column(String)
    amount = Column(Float)                         # rupees
    status = Column(String)
    error_code = Column(String)
    error_description = Column(String)
    received_at = Column(DateTime(timezone=True), default=utcnow)


class OrderCycle(Base):
    """Group-buy cycle owned by the client app; only ``participants`` is touched here."""

    __tablename__ = "order_cycles"

    id = Column(String, primary_key=True)
    participants = Column(JSON, default=list)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
