"""
Payment orchestration: invoices, gateway orders, verification, refunds, webhook intake
and subscriptions. Persistence lives in crud.payment_crud / crud.subscription_crud; the
gateway adapters live in core.payments.
"""
import calendar
import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.config import settings
from backend.core.exceptions import (
    CourseNotFoundError, PaymentNotFoundError, PaymentVerificationError, SubscriptionNotFoundError
)
from backend.core.payments import get_gateway
from backend.crud import course_crud, notification_crud, payment_crud, subscription_crud
from backend.models.enums import (
    NotificationCategory, PaymentMethod, PaymentStatus, PlanInterval, EmailTemplateType, WebhookStatus
)
from backend.models.payment_model import Invoice, Payment, Refund
from backend.models.subscription_model import Subscription
from backend.models.user_model import User
from backend.schemas.analytics_schema import NotificationCreate
from backend.schemas.payment_schema import PaymentCreate, PaymentVerify, RefundCreate
from backend.services import email_service

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
INVOICE_NUMBER_ATTEMPTS = 3
REFUNDABLE_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)

# Cashfree names its events differently; map them onto the Razorpay-style names handled below
EVENT_ALIASES = {
    "PAYMENT_SUCCESS_WEBHOOK": "payment.success",
    "PAYMENT_FAILED_WEBHOOK": "payment.failed",
    "REFUND_STATUS_WEBHOOK": "refund.processed",
}
PAYMENT_SUCCESS_EVENTS = {"payment.captured", "payment.success"}
PAYMENT_FAILED_EVENTS = {"payment.failed"}
REFUND_PROCESSED_EVENTS = {"refund.processed"}

# --- Money & numbering ---
def calculate_tax(subtotal: Decimal, rate: Optional[Decimal] = None) -> Tuple[Decimal, Decimal]:
    """Returns (tax, total) for a subtotal, both rounded to 2 places."""
    rate = settings.TAX_RATE if rate is None else rate
    subtotal = Decimal(subtotal).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    tax = (subtotal * rate).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return tax, subtotal + tax

def generate_invoice_number(db: Session, now: Optional[datetime] = None) -> str:
    """INV-YYYYMM-NNNN, continuing the current month's sequence."""
    now = now or datetime.now(timezone.utc)
    prefix = f"INV-{now:%Y%m}-"
    last = payment_crud.get_last_invoice_number(db, prefix)
    sequence = 1
    if last:
        try:
            sequence = int(last.rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            logger.warning(f"Unparseable invoice number '{last}'; restarting sequence for {prefix}.")
    return f"{prefix}{sequence:04d}"

def _draft_invoice(db: Session, user_id: int, subtotal: Decimal, tax: Decimal, total: Decimal, payment_in: PaymentCreate) -> Invoice:
    for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
        invoice_number = generate_invoice_number(db)
        try:
            return payment_crud.create_invoice(
                db,
                invoice_number=invoice_number,
                user_id=user_id,
                subtotal=subtotal,
                tax_amount=tax,
                total_amount=total,
                currency=payment_in.currency,
                course_id=payment_in.course_id,
                subscription_id=payment_in.subscription_id,
            )
        except IntegrityError:
            # Another request took this number between the read and the insert
            logger.warning(f"Invoice number {invoice_number} already taken (attempt {attempt}).")
    raise ValueError("Could not allocate an invoice number. Please retry.")

# --- Orders ---
def create_payment(db: Session, user: User, payment_in: PaymentCreate) -> Dict[str, Any]:
    """
    Drafts an invoice, opens a gateway order for the taxed total and records a pending payment.

    When the gateway call or the payment insert fails, the draft invoice is cancelled with a note
    and the original error is re-raised, so no orphaned draft or invoice-less payment is left behind.
    """
    if payment_in.course_id is not None and course_crud.get_course(db, payment_in.course_id) is None:
        raise CourseNotFoundError(f"Course {payment_in.course_id} not found.")
    if payment_in.subscription_id is not None and subscription_crud.get_subscription(db, payment_in.subscription_id) is None:
        raise SubscriptionNotFoundError(f"Subscription {payment_in.subscription_id} not found.")

    gateway = get_gateway(payment_in.payment_method)
    subtotal = Decimal(payment_in.amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    tax, total = calculate_tax(subtotal)
    invoice = _draft_invoice(db, user.id, subtotal, tax, total, payment_in)

    notes = {"invoice_number": invoice.invoice_number, "user_id": user.id}
    if payment_in.course_id is not None:
        notes["course_id"] = payment_in.course_id
    if payment_in.subscription_id is not None:
        notes["subscription_id"] = payment_in.subscription_id

    try:
        order = gateway.create_order(
            amount=total,
            currency=payment_in.currency,
            customer={"id": user.id, "name": user.name, "email": user.email},
            notes=notes,
        )
        order_id = gateway.get_order_id(order)
    except Exception as e:
        payment_crud.cancel_invoice(db, invoice, f"Gateway order could not be created: {e}")
        raise

    try:
        payment = payment_crud.create_payment_record(
            db,
            user_id=user.id,
            amount=total,
            currency=payment_in.currency,
            payment_method=payment_in.payment_method,
            order_id=order_id,
            invoice_id=invoice.id,
            payment_data=order,
            course_id=payment_in.course_id,
            subscription_id=payment_in.subscription_id,
        )
    except Exception as e:
        payment_crud.cancel_invoice(db, invoice, f"Payment record could not be saved for order {order_id}: {e}")
        raise

    return {
        "payment": payment,
        "order": order,
        "invoice": invoice,
        "key_id": settings.RAZORPAY_KEY_ID if payment_in.payment_method == PaymentMethod.RAZORPAY else None,
    }

def _notify_payment_success(db: Session, payment: Payment) -> None:
    user = payment.user
    if user is None:
        return
    course_title = payment.course.title if payment.course else None
    invoice_number = payment.invoice.invoice_number if payment.invoice else None
    email_service.send_templated_email(
        to_email=user.email,
        subject=f"Payment received - {invoice_number or payment.order_id}",
        html_template_name="payment_success.html",
        context={
            "user_name": user.name,
            "amount": str(payment.amount),
            "currency": payment.currency,
            "invoice_number": invoice_number,
            "course_title": course_title,
            "order_id": payment.order_id,
        },
        template_type=EmailTemplateType.PAYMENT,
        tenant_id=user.tenant_id,
        db=db,
    )
    notification_crud.create_notification(db, NotificationCreate(
        user_id=user.id,
        title="Payment successful",
        message=f"We received your payment of {payment.amount} {payment.currency}"
                + (f" for {course_title}." if course_title else "."),
        type="success",
        category=NotificationCategory.PAYMENT,
        action_url="/dashboard/payments",
    ))

def _grant_course_access(db: Session, payment: Payment) -> None:
    """Enrolls the payer in the purchased course; safe to repeat for an already completed payment."""
    if payment.course_id is not None and payment.status == PaymentStatus.COMPLETED:
        course_crud.create_enrollment(db, payment.user_id, payment.course_id)

def _complete_payment(db: Session, payment: Payment, gateway_payment_id: Optional[str], data: Optional[Dict[str, Any]]) -> Payment:
    if data:
        payment.payment_data = data
    payment = payment_crud.mark_payment_completed(db, payment, gateway_payment_id)
    _grant_course_access(db, payment)
    try:
        _notify_payment_success(db, payment)
    except Exception as e:
        # Notification failures leave the payment completed
        logger.error(f"Failed to send payment notifications for payment {payment.id}: {e}", exc_info=True)
    return payment

def verify_payment(db: Session, verify_in: PaymentVerify, user: Optional[User] = None) -> Payment:
    """
    Confirms a checkout with the gateway. Raises PaymentVerificationError when the gateway does
    not confirm it; the payment is left untouched in that case.
    """
    payment = payment_crud.get_payment_by_order_id(db, verify_in.order_id)
    if payment is None:
        raise PaymentNotFoundError(f"Payment for order {verify_in.order_id} not found.")
    if user is not None and payment.user_id != user.id:
        raise PaymentNotFoundError(f"Payment for order {verify_in.order_id} not found.")
    if payment.status in REFUNDABLE_STATUSES or payment.status == PaymentStatus.REFUNDED:
        logger.info(f"Payment {payment.id} for order {payment.order_id} already completed; skipping verification.")
        _grant_course_access(db, payment)
        return payment

    method = verify_in.payment_method or payment.payment_method
    gateway = get_gateway(method)
    result = gateway.verify_payment(verify_in.order_id, verify_in.payment_id, verify_in.signature)
    if not result.get("verified"):
        logger.warning(f"Verification failed for payment {payment.id} (order {payment.order_id}) via {PaymentMethod(method).value}.")
        raise PaymentVerificationError("Payment verification failed.")

    return _complete_payment(db, payment, result.get("payment_id"), result.get("data"))

# --- Refunds ---
def create_refund(db: Session, refund_in: RefundCreate) -> Refund:
    payment = payment_crud.get_payment_by_id(db, refund_in.payment_id)
    if payment is None:
        raise PaymentNotFoundError(f"Payment {refund_in.payment_id} not found.")
    if payment.status not in REFUNDABLE_STATUSES:
        raise ValueError(f"Cannot refund a payment with status '{payment.status.value}'.")

    amount = Decimal(refund_in.amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    remaining = Decimal(payment.amount) - Decimal(payment.refunded_amount or 0)
    if amount > remaining:
        raise ValueError(f"Refund amount {amount} exceeds the refundable balance of {remaining}.")

    gateway = get_gateway(payment.payment_method)
    refund_response = gateway.create_refund(
        order_id=payment.order_id,
        payment_id=payment.payment_id,
        amount=amount,
        currency=payment.currency,
        reason=refund_in.reason.value,
    )
    return payment_crud.create_refund_record(
        db,
        payment,
        amount=amount,
        reason=refund_in.reason,
        provider_refund_id=gateway.get_refund_id(refund_response),
        refund_data=refund_response,
        notes=refund_in.notes,
    )

# --- Webhooks ---
def _nested(payload: Dict[str, Any], *path: str) -> Any:
    value: Any = payload
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value

def extract_event_type(payload: Dict[str, Any]) -> str:
    event_type = payload.get("event") or payload.get("type") or "unknown"
    return EVENT_ALIASES.get(event_type, event_type)

def extract_event_id(payload: Dict[str, Any], header_event_id: Optional[str] = None) -> str:
    """Provider event id, else a digest of the canonical payload so replays still collapse."""
    event_id = header_event_id or payload.get("event_id") or payload.get("id")
    if event_id:
        return str(event_id)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return "sha256:" + hashlib.sha256(canonical.encode()).hexdigest()

def extract_order_id(payload: Dict[str, Any]) -> Optional[str]:
    return (
        payload.get("order_id")
        or _nested(payload, "order", "id")
        or _nested(payload, "payload", "payment", "entity", "order_id")
        or _nested(payload, "data", "order", "order_id")
    )

def extract_gateway_payment_id(payload: Dict[str, Any]) -> Optional[str]:
    payment_id = (
        _nested(payload, "payload", "payment", "entity", "id")
        or _nested(payload, "data", "payment", "cf_payment_id")
        or payload.get("payment_id")
    )
    return str(payment_id) if payment_id else None

def extract_refund_id(payload: Dict[str, Any]) -> Optional[str]:
    return (
        payload.get("refund_id")
        or _nested(payload, "payload", "refund", "entity", "id")
        or _nested(payload, "data", "refund", "refund_id")
        or payload.get("id")
    )

def _apply_payment_success(db: Session, payload: Dict[str, Any]) -> None:
    order_id = extract_order_id(payload)
    payment = payment_crud.get_payment_by_order_id(db, order_id) if order_id else None
    if payment is None:
        logger.warning(f"Webhook payment success for unknown order {order_id}; nothing to update.")
        return
    if payment.status != PaymentStatus.PENDING and payment.status != PaymentStatus.FAILED:
        logger.info(f"Payment {payment.id} already {payment.status.value}; webhook success ignored.")
        _grant_course_access(db, payment)
        return
    _complete_payment(db, payment, extract_gateway_payment_id(payload), payload)

def _apply_payment_failed(db: Session, payload: Dict[str, Any]) -> None:
    order_id = extract_order_id(payload)
    payment = payment_crud.get_payment_by_order_id(db, order_id) if order_id else None
    if payment is None:
        logger.warning(f"Webhook payment failure for unknown order {order_id}; nothing to update.")
        return
    if payment.status != PaymentStatus.PENDING:
        logger.info(f"Payment {payment.id} already {payment.status.value}; webhook failure ignored.")
        return
    payment.payment_data = payload
    error = _nested(payload, "payload", "payment", "entity", "error_description") or "Payment failed at gateway"
    payment_crud.mark_payment_failed(db, payment, error)

def _apply_refund_processed(db: Session, payload: Dict[str, Any]) -> None:
    refund_id = extract_refund_id(payload)
    refund = payment_crud.get_refund_by_provider_id(db, str(refund_id)) if refund_id else None
    if refund is None:
        logger.warning(f"Webhook refund.processed for unknown refund {refund_id}; nothing to update.")
        return
    refund.refund_data = payload
    payment_crud.mark_refund_succeeded(db, refund)

def handle_webhook(
    db: Session, provider: PaymentMethod, payload: Dict[str, Any], header_event_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Records the event, then applies it. Returns {"success": True, "duplicate": bool}.

    An event already marked processed is acknowledged without being applied again. When
    applying fails, the record is marked failed and the error propagates to the caller.
    """
    provider = PaymentMethod(provider)
    event_type = extract_event_type(payload)
    event_id = extract_event_id(payload, header_event_id)

    existing = payment_crud.get_webhook_record(db, provider, event_id)
    if existing is not None and existing.status == WebhookStatus.PROCESSED:
        logger.info(f"Duplicate webhook {provider.value}/{event_type} ({event_id}) acknowledged without reprocessing.")
        return {"success": True, "duplicate": True}

    record = payment_crud.create_webhook_record(db, provider, event_type, event_id, payload)
    try:
        if event_type in PAYMENT_SUCCESS_EVENTS:
            _apply_payment_success(db, payload)
        elif event_type in PAYMENT_FAILED_EVENTS:
            _apply_payment_failed(db, payload)
        elif event_type in REFUND_PROCESSED_EVENTS:
            _apply_refund_processed(db, payload)
        else:
            logger.info(f"Unhandled webhook event '{event_type}' from {provider.value}.")
    except Exception as e:
        logger.error(f"Webhook {record.id} ({event_type}) processing failed: {e}", exc_info=True)
        db.rollback()
        payment_crud.mark_webhook_failed(db, record, str(e))
        raise

    payment_crud.mark_webhook_processed(db, record)
    return {"success": True, "duplicate": False}

# --- History & invoices ---
def get_payment_history(db: Session, user_id: int, skip: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
    rows = payment_crud.get_payment_history(db, user_id, skip=skip, limit=limit)
    history = []
    for payment, course_title, invoice_number in rows:
        history.append({
            **{column.name: getattr(payment, column.name) for column in Payment.__table__.columns if column.name != "payment_data"},
            "course_title": course_title,
            "invoice_number": invoice_number,
        })
    return history

def get_invoice(db: Session, invoice_id: int, user: Optional[User] = None) -> Invoice:
    invoice = payment_crud.get_invoice_by_id(db, invoice_id)
    if invoice is None or (user is not None and invoice.user_id != user.id):
        raise PaymentNotFoundError(f"Invoice {invoice_id} not found.")
    return invoice

# --- Subscriptions ---
def add_months(start: datetime, months: int) -> datetime:
    """Calendar-month arithmetic; the day is clamped to the target month's last day."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)

def calculate_period_end(start: datetime, interval: PlanInterval, interval_count: int) -> datetime:
    if interval == PlanInterval.MONTHLY:
        return add_months(start, interval_count)
    if interval == PlanInterval.QUARTERLY:
        return add_months(start, 3 * interval_count)
    if interval == PlanInterval.YEARLY:
        return add_months(start, 12 * interval_count)
    raise ValueError(f"Unsupported plan interval: {interval}")

def create_subscription(db: Session, user: User, plan_id: int, payment_method: PaymentMethod) -> Dict[str, Any]:
    """
    Starts a subscription on an active plan. Plans with a trial start without a payment; otherwise
    the first period is ordered through create_payment. If that order cannot be opened, the new
    subscription is cancelled before the error propagates.
    """
    plan = subscription_crud.get_subscription_plan(db, plan_id)
    if plan is None or not plan.is_active:
        raise SubscriptionNotFoundError(f"Subscription plan {plan_id} not found.")

    now = datetime.now(timezone.utc)
    period_end = calculate_period_end(now, plan.interval, plan.interval_count)
    trial_start = trial_end = None
    if plan.trial_period_days and plan.trial_period_days > 0:
        trial_start = now
        trial_end = now + timedelta(days=plan.trial_period_days)

    subscription = subscription_crud.create_subscription(
        db,
        user_id=user.id,
        plan_id=plan.id,
        current_period_start=now,
        current_period_end=period_end,
        trial_start=trial_start,
        trial_end=trial_end,
    )

    payment_order = None
    if trial_end is None:
        try:
            payment_order = create_payment(db, user, PaymentCreate(
                subscription_id=subscription.id,
                amount=plan.price,
                currency=plan.currency,
                payment_method=payment_method,
            ))
        except Exception:
            subscription_crud.cancel_subscription(db, subscription)
            raise

    return {"subscription": subscription, "payment_order": payment_order}

def cancel_subscription(db: Session, subscription_id: int, user: Optional[User] = None) -> Subscription:
    subscription = subscription_crud.get_subscription(db, subscription_id)
    if subscription is None or (user is not None and subscription.user_id != user.id):
        raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found.")
    return subscription_crud.cancel_subscription(db, subscription)
