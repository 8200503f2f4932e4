import razorpay # Razorpay Python SDK
import hmac
import hashlib
import time
import logging
from decimal import Decimal
from typing import Optional, Dict, Any, Mapping

from backend.core.config import settings
from backend.core.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

PROVIDER = "razorpay"
SIGNATURE_HEADER = "x-razorpay-signature"

# --- Razorpay API Configuration ---
if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
    logger.warning("RAZORPAY_KEY_ID/RAZORPAY_KEY_SECRET not set. Razorpay functionality will be disabled.")
if not settings.RAZORPAY_WEBHOOK_SECRET:
    logger.warning("RAZORPAY_WEBHOOK_SECRET not set. Razorpay webhooks will be rejected.")

def _get_client() -> razorpay.Client:
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        logger.error("Razorpay API keys not configured.")
        raise PaymentGatewayError("Razorpay is not configured.", provider=PROVIDER)
    return razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))

def to_paise(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))

def create_order(
    amount: Decimal,
    currency: str,
    customer: Optional[Dict[str, Any]] = None,
    notes: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Opens a Razorpay order for `amount` (in major units). Returns the order as sent back by Razorpay."""
    client = _get_client()
    order_data = {
        "amount": to_paise(amount),
        "currency": currency,
        "receipt": f"receipt_{int(time.time() * 1000)}",
        "notes": {str(k): str(v) for k, v in (notes or {}).items()},
    }
    try:
        order = client.order.create(data=order_data)
    except Exception as e:
        logger.error(f"Razorpay order creation failed: {e}", exc_info=True)
        raise PaymentGatewayError(f"Payment gateway error: {e}", provider=PROVIDER) from e
    logger.info(f"Razorpay order {order.get('id')} created. Amount: {order_data['amount']} paise {currency}.")
    return order

def get_order_id(order: Dict[str, Any]) -> str:
    return order["id"]

def compute_payment_signature(order_id: str, payment_id: str, secret: Optional[str] = None) -> str:
    key = (secret or settings.RAZORPAY_KEY_SECRET or "").encode()
    return hmac.new(key, f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()

def verify_payment(order_id: str, payment_id: str, signature: Optional[str] = None) -> Dict[str, Any]:
    """
    Checks the checkout signature: HMAC-SHA256 of "order_id|payment_id" keyed with the key secret.
    No remote call is made.
    """
    if not settings.RAZORPAY_KEY_SECRET:
        raise PaymentGatewayError("Razorpay is not configured.", provider=PROVIDER)
    if not signature:
        logger.warning(f"Razorpay verification for order {order_id} attempted without a signature.")
        return {"verified": False, "payment_id": payment_id}

    expected = compute_payment_signature(order_id, payment_id)
    verified = hmac.compare_digest(expected, signature)
    if not verified:
        logger.warning(f"Razorpay signature mismatch for order {order_id}.")
    return {"verified": verified, "payment_id": payment_id}

def create_refund(
    order_id: str, payment_id: str, amount: Decimal, currency: str, reason: Optional[str] = None
) -> Dict[str, Any]:
    client = _get_client()
    try:
        refund = client.payment.refund(payment_id, {
            "amount": to_paise(amount),
            "notes": {"reason": reason or ""},
        })
    except Exception as e:
        logger.error(f"Razorpay refund for payment {payment_id} failed: {e}", exc_info=True)
        raise PaymentGatewayError(f"Payment gateway error: {e}", provider=PROVIDER) from e
    logger.info(f"Razorpay refund {refund.get('id')} created for payment {payment_id}.")
    return refund

def get_refund_id(refund: Dict[str, Any]) -> Optional[str]:
    return refund.get("id")

def verify_webhook_signature(raw_body: bytes, headers: Mapping[str, str]) -> bool:
    """HMAC-SHA256 hex of the raw request body keyed with RAZORPAY_WEBHOOK_SECRET."""
    signature = headers.get(SIGNATURE_HEADER)
    if not settings.RAZORPAY_WEBHOOK_SECRET or not signature:
        return False
    expected = hmac.new(settings.RAZORPAY_WEBHOOK_SECRET.encode(), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)
