import hashlib
import hmac
import json
import os

# Must be set before the application reads its settings
os.environ["DATABASE_URL"] = "sqlite:///./test_temp.db"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["JWT_SECRET"] = ""
os.environ["APP_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient

from groupbuy_payments.database import Base, SessionLocal, engine
from groupbuy_payments.main import app as fastapi_app
from groupbuy_payments.razorpay_service import get_gateway
from groupbuy_payments.store import PaymentStore

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"


def sign(secret, message):
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def payment_signature(order_id, payment_id):
    return sign(KEY_SECRET, f"{order_id}|{payment_id}")


def webhook_body(event, entity_kind, entity):
    return json.dumps({
        "entity": "event",
        "event": event,
        "payload": {entity_kind: {"entity": entity}},
    }).encode()


class FakeGateway:
    """In-memory stand-in for RazorpayGateway."""

    def __init__(self):
        self.payments = {}
        self.refunds = {}
        self.calls = []
        self.order_counter = 0
        self.refund_counter = 0

    def add_payment(self, payment_id, order_id="order_1", amount=50000, status="captured", **extra):
        self.payments[payment_id] = {
            "id": payment_id,
            "entity": "payment",
            "order_id": order_id,
            "amount": amount,
            "currency": "INR",
            "status": status,
            "method": "upi",
            "email": "buyer@example.com",
            "contact": "+919999999999",
            "created_at": 1700000000,
            **extra,
        }
        return self.payments[payment_id]

    def create_order(self, amount, currency, receipt, notes=None):
        self.calls.append(("create_order", amount, currency, receipt))
        self.order_counter += 1
        return {
            "id": f"order_test_{self.order_counter}",
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "notes": notes or {},
        }

    def fetch_payment(self, payment_id):
        self.calls.append(("fetch_payment", payment_id))
        return self.payments[payment_id]

    def refund_payment(self, payment_id, amount=None, notes=None):
        self.calls.append(("refund_payment", payment_id, amount))
        self.refund_counter += 1
        refund = {
            "id": f"rfnd_test_{self.refund_counter}",
            "entity": "refund",
            "payment_id": payment_id,
            "amount": amount if amount is not None else self.payments[payment_id]["amount"],
            "currency": "INR",
            "status": "created",
            "created_at": 1700000100,
        }
        self.refunds[refund["id"]] = refund
        return refund

    def fetch_refund(self, refund_id):
        self.calls.append(("fetch_refund", refund_id))
        return self.refunds[refund_id]

    def cancel_payment(self, payment_id):
        self.calls.append(("cancel_payment", payment_id))
        self.payments[payment_id]["status"] = "cancelled"
        return self.payments[payment_id]


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return PaymentStore(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway):
    fastapi_app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
