from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import json
import logging

from backend.core.database import get_db
from backend.core.payments import get_gateway
from backend.models.enums import PaymentMethod
from backend.schemas.payment_schema import WebhookAck
from backend.services import payment_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Payment Webhooks"])

RAZORPAY_EVENT_ID_HEADER = "x-razorpay-event-id"

async def _receive_webhook(request: Request, db: Session, provider: PaymentMethod, event_id_header: str = None):
    """
    Verifies the signature over the raw body, then records and applies the event.
    Processing errors answer 500 so the gateway retries the delivery.
    """
    raw_body = await request.body()
    if not get_gateway(provider).verify_webhook_signature(raw_body, request.headers):
        logger.warning(f"Rejected {provider.value} webhook with an invalid signature.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    header_event_id = request.headers.get(event_id_header) if event_id_header else None
    try:
        result = payment_service.handle_webhook(db, provider, payload, header_event_id=header_event_id)
    except Exception as e:
        logger.error(f"{provider.value} webhook processing failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Webhook processing failed"},
        )
    return WebhookAck(**result)

@router.post("/razorpay", response_model=WebhookAck)
async def razorpay_webhook(request: Request, db: Session = Depends(get_db)):
    return await _receive_webhook(request, db, PaymentMethod.RAZORPAY, RAZORPAY_EVENT_ID_HEADER)

@router.post("/cashfree", response_model=WebhookAck)
async def cashfree_webhook(request: Request, db: Session = Depends(get_db)):
    return await _receive_webhook(request, db, PaymentMethod.CASHFREE)
