from fastapi import Depends
from sqlalchemy.orm import Session

from groupbuy_payments.config import Settings, get_settings
from groupbuy_payments.database import get_db
from groupbuy_payments.orders import OrderTracker
from groupbuy_payments.razorpay_service import RazorpayGateway, get_gateway
from groupbuy_payments.reconciler import PaymentReconciler
from groupbuy_payments.store import PaymentStore
from groupbuy_payments.webhooks import WebhookDispatcher


def get_store(db: Session = Depends(get_db)) -> PaymentStore:
    return PaymentStore(db)


def get_order_tracker(store: PaymentStore = Depends(get_store),
                      gateway: RazorpayGateway = Depends(get_gateway)) -> OrderTracker:
    return OrderTracker(store, gateway)


def get_reconciler(store: PaymentStore = Depends(get_store),
                   gateway: RazorpayGateway = Depends(get_gateway),
                   settings: Settings = Depends(get_settings)) -> PaymentReconciler:
    return PaymentReconciler(store, gateway, settings.razorpay_key_secret)


def get_webhook_dispatcher(store: PaymentStore = Depends(get_store),
                           settings: Settings = Depends(get_settings)) -> WebhookDispatcher:
    return WebhookDispatcher(store, settings.razorpay_webhook_secret)
