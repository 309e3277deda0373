from conftest import WEBHOOK_SECRET, payment_signature, sign, webhook_body
from groupbuy_payments.models import OrderCycle, Payment, RazorpayOrder, Refund, WebhookEvent


def post_webhook(client, body):
    return client.post(
        "/api/payment/webhook",
        content=body,
        headers={"X-Razorpay-Signature": sign(WEBHOOK_SECRET, body)},
    )


def test_full_payment_lifecycle_integration(client, gateway, db):
    """
    Test the full lifecycle:
    1. Create order (API -> DB + Razorpay faked)
    2. Client confirms payment (signature -> DB + order cycle)
    3. Capture webhook (Razorpay -> API -> DB)
    4. Refund, then refund.processed webhook
    """
    db.add(OrderCycle(id="cycle_int", participants=[
        {"userId": "user_1", "paymentStatus": "pending"},
        {"userId": "user_2", "paymentStatus": "pending"},
    ]))
    db.commit()

    # --- 1. CREATE ORDER ---
    response = client.post("/api/payment/create-order", json={"amount": 250, "notes": {"cycleId": "cycle_int"}})
    assert response.status_code == 200
    order_id = response.json()["order"]["id"]
    assert db.get(RazorpayOrder, order_id).amount == 25000

    # --- 2. VERIFY ---
    gateway.add_payment("pay_int", order_id=order_id, amount=25000, status="authorized")
    response = client.post("/api/payment/verify", json={
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_int",
        "razorpay_signature": payment_signature(order_id, "pay_int"),
        "cycleId": "cycle_int",
        "userId": "user_1",
    })
    assert response.status_code == 200
    assert response.json()["payment"]["status"] == "authorized"

    # --- 3. CAPTURE WEBHOOK ---
    captured = {**gateway.payments["pay_int"], "status": "captured"}
    assert post_webhook(client, webhook_body("payment.captured", "payment", captured)).status_code == 200

    db.expire_all()
    payment = db.get(Payment, "pay_int")
    assert payment.status == "captured"
    assert payment.verified is True
    statuses = [p["paymentStatus"] for p in db.get(OrderCycle, "cycle_int").participants]
    assert statuses == ["paid", "pending"]

    # --- 4. REFUND ---
    response = client.post("/api/payment/refund", json={"paymentId": "pay_int"})
    assert response.status_code == 200
    refund = gateway.refunds[response.json()["refund"]["id"]]

    processed = {**refund, "status": "processed"}
    assert post_webhook(client, webhook_body("refund.processed", "refund", processed)).status_code == 200

    db.expire_all()
    assert db.get(Refund, refund["id"]).status == "processed"
    assert db.query(WebhookEvent).count() == 2


def test_capture_webhook_before_verification_converges(client, gateway, db):
    """A capture webhook that beats the client's confirmation still ends with one verified row."""
    gateway.add_payment("pay_race", order_id="order_race", status="captured")

    body = webhook_body("payment.captured", "payment", gateway.payments["pay_race"])
    assert post_webhook(client, body).status_code == 200

    response = client.post("/api/payment/verify", json={
        "razorpay_order_id": "order_race",
        "razorpay_payment_id": "pay_race",
        "razorpay_signature": payment_signature("order_race", "pay_race"),
    })
    assert response.status_code == 200

    db.expire_all()
    rows = db.query(Payment).filter_by(id="pay_race").all()
    assert len(rows) == 1
    assert rows[0].status == "captured"
    assert rows[0].verified is True
    assert rows[0].captured_at is not None


def test_webhook_database_failure_returns_500(client, mocker):
    from sqlalchemy.exc import OperationalError
    mocker.patch("groupbuy_payments.store.PaymentStore.log_webhook_event",
                 side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")))

    body = webhook_body("payment.failed", "payment", {"id": "pay_x"})
    response = post_webhook(client, body)

    assert response.status_code == 500
    assert response.json()["success"] is False
