from typing import Any, Dict, Optional

from pydantic import BaseModel


class CreateOrderRequest(BaseModel):
    amount: Optional[float] = None                 # rupees
    currency: Optional[str] = None
    receipt: Optional[str] = None
    notes: Optional[Dict[str, Any]] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    cycleId: Optional[str] = None
    userId: Optional[str] = None


class RefundRequest(BaseModel):
    paymentId: Optional[str] = None
    amount: Optional[float] = None                 # rupees; omit for a full refund
    notes: Optional[Dict[str, Any]] = None


class CancelRequest(BaseModel):
    paymentId: Optional[str] = None
