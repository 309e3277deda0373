import pytest
import requests
from razorpay.errors import BadRequestError, ServerError

from groupbuy_payments.errors import UpstreamFailure
from groupbuy_payments.razorpay_service import RazorpayGateway


@pytest.fixture
def client(mocker):
    return mocker.Mock()


def make_gateway(client, retries=3):
    return RazorpayGateway(client, timeout=4.5, max_retries=retries, backoff=0)


def test_create_order_passes_timeout_and_data(client):
    client.order.create.return_value = {"id": "order_1"}

    order = make_gateway(client).create_order(2000, "INR", "rcpt_1", {"cycleId": "c1"})

    assert order == {"id": "order_1"}
    client.order.create.assert_called_once_with(
        data={"amount": 2000, "currency": "INR", "receipt": "rcpt_1", "notes": {"cycleId": "c1"}},
        timeout=4.5,
    )


def test_full_refund_omits_amount(client):
    client.payment.refund.return_value = {"id": "rfnd_1"}

    make_gateway(client).refund_payment("pay_1")

    client.payment.refund.assert_called_once_with("pay_1", {"notes": {}}, timeout=4.5)


def test_transient_errors_are_retried(client):
    client.payment.fetch.side_effect = [
        requests.exceptions.ConnectionError("reset"),
        ServerError("upstream 503"),
        {"id": "pay_1", "status": "captured"},
    ]

    payment = make_gateway(client).fetch_payment("pay_1")

    assert payment["status"] == "captured"
    assert client.payment.fetch.call_count == 3


def test_retries_are_bounded(client):
    client.payment.fetch.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(UpstreamFailure):
        make_gateway(client, retries=2).fetch_payment("pay_1")

    assert client.payment.fetch.call_count == 2


def test_bad_request_is_not_retried(client):
    client.refund.fetch.side_effect = BadRequestError("The id provided does not exist")

    with pytest.raises(UpstreamFailure, match="does not exist"):
        make_gateway(client).fetch_refund("rfnd_missing")

    assert client.refund.fetch.call_count == 1


def test_cancel_posts_to_payment_cancel_url(client):
    client.payment.base_url = "/v1/payments"
    client.payment.post_url.return_value = {"id": "pay_1", "status": "cancelled"}

    make_gateway(client).cancel_payment("pay_1")

    client.payment.post_url.assert_called_once_with("/v1/payments/pay_1/cancel", {}, timeout=4.5)


def test_refund_is_not_resent_after_read_timeout(client):
    # The first request may have reached Razorpay; resending could refund twice
    client.payment.refund.side_effect = [
        requests.exceptions.ReadTimeout("slow"),
        {"id": "rfnd_2"},
    ]

    with pytest.raises(UpstreamFailure):
        make_gateway(client).refund_payment("pay_1", amount=1000)

    assert client.payment.refund.call_count == 1


@pytest.mark.parametrize("error", [
    requests.exceptions.ConnectionError("reset"),
    ServerError("upstream 503"),
])
def test_create_order_is_not_resent_after_ambiguous_failure(client, error):
    client.order.create.side_effect = [error, {"id": "order_2"}]

    with pytest.raises(UpstreamFailure):
        make_gateway(client).create_order(2000, "INR", "rcpt_1")

    assert client.order.create.call_count == 1


def test_post_is_retried_when_connection_never_opened(client):
    client.payment.base_url = "/v1/payments"
    client.payment.post_url.side_effect = [
        requests.exceptions.ConnectTimeout("no route"),
        {"id": "pay_1", "status": "cancelled"},
    ]

    result = make_gateway(client).cancel_payment("pay_1")

    assert result["status"] == "cancelled"
    assert client.payment.post_url.call_count == 2
