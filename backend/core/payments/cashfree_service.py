import requests # Cashfree PG is called over its REST API
import hmac
import hashlib
import base64
import time
import logging
from decimal import Decimal
from typing import Optional, Dict, Any, Mapping

from backend.core.config import settings
from backend.core.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

PROVIDER = "cashfree"
SIGNATURE_HEADER = "x-webhook-signature"
TIMESTAMP_HEADER = "x-webhook-timestamp"

# --- Cashfree API Configuration ---
if not settings.CASHFREE_APP_ID or not settings.CASHFREE_SECRET_KEY:
    logger.warning("CASHFREE_APP_ID/CASHFREE_SECRET_KEY not set. Cashfree functionality will be disabled.")

def _headers() -> Dict[str, str]:
    if not settings.CASHFREE_APP_ID or not settings.CASHFREE_SECRET_KEY:
        logger.error("Cashfree credentials not configured.")
        raise PaymentGatewayError("Cashfree is not configured.", provider=PROVIDER)
    return {
        "x-client-id": settings.CASHFREE_APP_ID,
        "x-client-secret": settings.CASHFREE_SECRET_KEY,
        "x-api-version": settings.CASHFREE_API_VERSION,
        "Content-Type": "application/json",
        "Accept": "application/json",
    }

def _request(method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> Any:
    url = f"{settings.CASHFREE_BASE_URL}{path}"
    try:
        response = requests.request(
            method, url, headers=_headers(), json=json_body, timeout=settings.HTTP_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.HTTPError as e:
        body = e.response.text if e.response is not None else ""
        logger.error(f"Cashfree {method} {path} failed: {e}. Body: {body[:500]}")
        raise PaymentGatewayError(f"Payment gateway error: {body or e}", provider=PROVIDER) from e
    except requests.exceptions.RequestException as e:
        logger.error(f"Cashfree {method} {path} request error: {e}", exc_info=True)
        raise PaymentGatewayError(f"Payment gateway unreachable: {e}", provider=PROVIDER) from e

def create_order(
    amount: Decimal,
    currency: str,
    customer: Optional[Dict[str, Any]] = None,
    notes: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    customer = customer or {}
    order_request = {
        "order_amount": float(amount),
        "order_currency": currency,
        "order_id": f"order_{int(time.time() * 1000)}",
        "customer_details": {
            "customer_id": str(customer.get("id", "guest")),
            "customer_name": customer.get("name") or "User",
            "customer_email": customer.get("email") or "user@example.com",
            "customer_phone": customer.get("phone") or "9999999999",
        },
        "order_meta": {
            "notify_url": f"{settings.APP_URL}/api/webhooks/cashfree",
            "return_url": f"{settings.APP_URL}/payment/success",
        },
        "order_tags": {str(k): str(v) for k, v in (notes or {}).items()},
    }
    order = _request("POST", "/orders", order_request)
    logger.info(f"Cashfree order {order.get('order_id')} created. Amount: {amount} {currency}.")
    return order

def get_order_id(order: Dict[str, Any]) -> str:
    return order["order_id"]

def fetch_order_payments(order_id: str) -> list:
    return _request("GET", f"/orders/{order_id}/payments") or []

def verify_payment(order_id: str, payment_id: str, signature: Optional[str] = None) -> Dict[str, Any]:
    """The order is paid when the first payment Cashfree reports for it has payment_status SUCCESS."""
    payments = fetch_order_payments(order_id)
    if not payments:
        logger.warning(f"Cashfree reports no payments for order {order_id}.")
        return {"verified": False, "payment_id": payment_id}
    first = payments[0]
    verified = first.get("payment_status") == "SUCCESS"
    if not verified:
        logger.warning(f"Cashfree payment for order {order_id} has status {first.get('payment_status')}.")
    return {
        "verified": verified,
        "payment_id": str(first.get("cf_payment_id") or payment_id),
        "data": first,
    }

def create_refund(
    order_id: str, payment_id: str, amount: Decimal, currency: str, reason: Optional[str] = None
) -> Dict[str, Any]:
    refund_request = {
        "refund_amount": float(amount),
        "refund_id": f"refund_{int(time.time() * 1000)}",
        "refund_note": reason or "",
    }
    refund = _request("POST", f"/orders/{order_id}/refunds", refund_request)
    logger.info(f"Cashfree refund {refund.get('refund_id')} created for order {order_id}.")
    return refund

def get_refund_id(refund: Dict[str, Any]) -> Optional[str]:
    return refund.get("refund_id") or refund.get("cf_refund_id")

def verify_webhook_signature(raw_body: bytes, headers: Mapping[str, str]) -> bool:
    """Base64 HMAC-SHA256 of "<timestamp>.<raw body>" keyed with CASHFREE_WEBHOOK_SECRET."""
    signature = headers.get(SIGNATURE_HEADER)
    timestamp = headers.get(TIMESTAMP_HEADER)
    if not settings.CASHFREE_WEBHOOK_SECRET or not signature or not timestamp:
        return False
    signed_payload = f"{timestamp}.".encode() + raw_body
    digest = hmac.new(settings.CASHFREE_WEBHOOK_SECRET.encode(), signed_payload, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return hmac.compare_digest(expected, signature)
