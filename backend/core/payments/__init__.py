# Payment gateway adapters. Each module exposes the same functions:
# create_order, get_order_id, verify_payment, create_refund, get_refund_id, verify_webhook_signature.

from types import ModuleType

from backend.models.enums import PaymentMethod
from . import razorpay_service, cashfree_service

_GATEWAYS = {
    PaymentMethod.RAZORPAY: razorpay_service,
    PaymentMethod.CASHFREE: cashfree_service,
}

def get_gateway(method: PaymentMethod) -> ModuleType:
    try:
        return _GATEWAYS[PaymentMethod(method)]
    except (KeyError, ValueError):
        raise ValueError(f"Unsupported payment method: {method}")

__all__ = ["get_gateway", "razorpay_service", "cashfree_service"]
