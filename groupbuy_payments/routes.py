from fastapi import APIRouter, Depends

from groupbuy_payments.auth import verify_token
from groupbuy_payments.deps import get_order_tracker, get_reconciler
from groupbuy_payments.orders import OrderTracker
from groupbuy_payments.reconciler import PaymentReconciler
from groupbuy_payments.schemas import CancelRequest, CreateOrderRequest, RefundRequest, VerifyPaymentRequest

router = APIRouter(prefix="/api/payment", dependencies=[Depends(verify_token)])


@router.post("/create-order")
def create_order(request: CreateOrderRequest, tracker: OrderTracker = Depends(get_order_tracker)):
    order = tracker.create_order(
        request.amount,
        currency=request.currency,
        receipt=request.receipt,
        notes=request.notes,
    )
    return {"success": True, "order": order}


@router.post("/verify")
def verify_payment(request: VerifyPaymentRequest, reconciler: PaymentReconciler = Depends(get_reconciler)):
    payment = reconciler.verify_and_record(
        request.razorpay_order_id,
        request.razorpay_payment_id,
        request.razorpay_signature,
        cycle_id=request.cycleId,
        user_id=request.userId,
    )
    return {"success": True, "verified": True, "payment": payment}


@router.post("/refund")
def refund_payment(request: RefundRequest, reconciler: PaymentReconciler = Depends(get_reconciler)):
    refund = reconciler.refund(request.paymentId, amount=request.amount, notes=request.notes)
    return {"success": True, "refund": refund}


@router.get("/refund/{refund_id}")
def fetch_refund(refund_id: str, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return {"success": True, "refund": reconciler.fetch_refund(refund_id)}


@router.post("/cancel")
def cancel_payment(request: CancelRequest, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return {"success": True, "payment": reconciler.cancel_payment(request.paymentId)}


@router.get("/{payment_id}")
def fetch_payment(payment_id: str, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return {"success": True, "payment": reconciler.fetch_payment(payment_id)}
