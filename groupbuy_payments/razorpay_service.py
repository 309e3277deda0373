from functools import lru_cache
from typing import Any, Dict, Optional

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError
import requests
import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from groupbuy_payments.config import Settings, get_settings
from groupbuy_payments.errors import UpstreamFailure

logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (
    ServerError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)

# A POST is only safe to resend when it provably never reached the gateway
SAFE_POST_ERRORS = (requests.exceptions.ConnectTimeout,)


class RazorpayGateway:
    """
    Thin wrapper around the Razorpay client.

    Every call carries an explicit timeout and is retried with exponential
    backoff on transient failures only. Reads retry on any transient error;
    order, refund and cancel POSTs only when the connection was never made,
    since a timed-out POST may already have taken effect. Whatever still
    fails is raised as ``UpstreamFailure`` with the gateway's message.
    """

    def __init__(self, client: razorpay.Client, timeout: float = 10.0, max_retries: int = 3,
                 backoff: float = 0.5):
        self.client = client
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff = backoff

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        if not settings.razorpay_key_id or not settings.razorpay_key_secret:
            raise UpstreamFailure("Razorpay credentials are not configured")
        client = razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
        logger.info(
            "razorpay_client_initialized",
            key_id=settings.razorpay_key_id[:15] + "...",
            mode="test" if "test" in settings.razorpay_key_id else "live",
        )
        return cls(client, timeout=settings.razorpay_timeout, max_retries=settings.razorpay_max_retries)

    def _call(self, operation: str, func, *args, retry_on=TRANSIENT_ERRORS, **kwargs) -> Dict[str, Any]:
        retrying = Retrying(
            retry=retry_if_exception_type(retry_on),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff, min=self.backoff, max=8),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "razorpay_call_retry",
                            operation=operation,
                            attempt=attempt.retry_state.attempt_number,
                        )
                    return func(*args, timeout=self.timeout, **kwargs)
        except (BadRequestError, GatewayError, ServerError) as e:
            logger.error("razorpay_api_error", operation=operation, error=str(e))
            raise UpstreamFailure(str(e) or f"Razorpay {operation} failed") from e
        except requests.exceptions.RequestException as e:
            logger.error("razorpay_unreachable", operation=operation, error=str(e))
            raise UpstreamFailure(f"Razorpay {operation} failed: {e}") from e

    def create_order(self, amount: int, currency: str, receipt: str,
                     notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        data = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}}
        return self._call("create_order", self.client.order.create, data=data,
                          retry_on=SAFE_POST_ERRORS)

    def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._call("fetch_payment", self.client.payment.fetch, payment_id)

    def refund_payment(self, payment_id: str, amount: Optional[int] = None,
                       notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        data = {"notes": notes or {}}
        if amount is not None:
            data["amount"] = amount
        return self._call("refund_payment", self.client.payment.refund, payment_id, data,
                          retry_on=SAFE_POST_ERRORS)

    def fetch_refund(self, refund_id: str) -> Dict[str, Any]:
        return self._call("fetch_refund", self.client.refund.fetch, refund_id)

    def cancel_payment(self, payment_id: str) -> Dict[str, Any]:
        # The SDK has no helper for this endpoint
        url = f"{self.client.payment.base_url}/{payment_id}/cancel"
        return self._call("cancel_payment", self.client.payment.post_url, url, {},
                          retry_on=SAFE_POST_ERRORS)


@lru_cache()
def _default_gateway() -> RazorpayGateway:
    return RazorpayGateway.from_settings(get_settings())


def get_gateway() -> RazorpayGateway:
    return _default_gateway()
