from sqlalchemy.orm import Session
from sqlalchemy import func # For count
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Dict, Any, Tuple # For filters
from decimal import Decimal
from datetime import datetime, timezone
import logging

from backend.core.database import commit_or_rollback
from backend.models.payment_model import Invoice, Payment, Refund, PaymentWebhook
from backend.models.course_model import Course
from backend.models.enums import (
    PaymentStatus, PaymentMethod, InvoiceStatus, RefundReason, RefundStatus, WebhookStatus
)

logger = logging.getLogger(__name__)


# Helper for applying filters to Payment list queries
def _apply_payment_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query
    if filters.get("user_id") is not None:
        query = query.filter(Payment.user_id == filters["user_id"])
    if filters.get("status") is not None:
        try:
            query = query.filter(Payment.status == PaymentStatus(filters["status"]))
        except ValueError:
            logger.warning(f"Invalid status value '{filters['status']}' for filtering Payments. Ignoring status filter.")
    if filters.get("payment_method") is not None:
        try:
            query = query.filter(Payment.payment_method == PaymentMethod(filters["payment_method"]))
        except ValueError:
            logger.warning(f"Invalid method value '{filters['payment_method']}' for filtering Payments. Ignoring method filter.")
    if filters.get("course_id") is not None:
        query = query.filter(Payment.course_id == filters["course_id"])
    return query

# --- Invoices ---
def get_last_invoice_number(db: Session, prefix: str) -> Optional[str]:
    """Highest invoice number starting with `prefix` (e.g. 'INV-202405-')."""
    # Longer suffixes sort first so 10000 ranks above 9999
    row = (
        db.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
        .first()
    )
    return row[0] if row else None

def create_invoice(
    db: Session,
    invoice_number: str,
    user_id: int,
    subtotal: Decimal,
    tax_amount: Decimal,
    total_amount: Decimal,
    currency: str,
    course_id: Optional[int] = None,
    subscription_id: Optional[int] = None,
) -> Invoice:
    db_invoice = Invoice(
        invoice_number=invoice_number,
        user_id=user_id,
        course_id=course_id,
        subscription_id=subscription_id,
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=Decimal("0.00"),
        total_amount=total_amount,
        currency=currency,
        status=InvoiceStatus.DRAFT,
    )
    db.add(db_invoice)
    commit_or_rollback(db, db_invoice)
    logger.info(f"Invoice {db_invoice.invoice_number} (ID: {db_invoice.id}) drafted for user {user_id}: total {total_amount} {currency}.")
    return db_invoice

def get_invoice_by_id(db: Session, invoice_id: int) -> Optional[Invoice]:
    return db.query(Invoice).filter(Invoice.id == invoice_id).first()

def get_invoice_by_number(db: Session, invoice_number: str) -> Optional[Invoice]:
    return db.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()

def get_invoices_for_user(db: Session, user_id: int) -> List[Invoice]:
    return db.query(Invoice).filter(Invoice.user_id == user_id).order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()

def cancel_invoice(db: Session, db_invoice: Invoice, note: str) -> Invoice:
    db_invoice.status = InvoiceStatus.CANCELLED
    db_invoice.notes = note
    commit_or_rollback(db, db_invoice)
    logger.info(f"Invoice {db_invoice.invoice_number} cancelled: {note}")
    return db_invoice

# --- Payments ---
def create_payment_record(
    db: Session,
    user_id: int,
    amount: Decimal,
    currency: str,
    payment_method: PaymentMethod,
    order_id: str,
    invoice_id: int,
    payment_data: Optional[Dict[str, Any]] = None,
    course_id: Optional[int] = None,
    subscription_id: Optional[int] = None,
) -> Payment:
    """Inserts a pending payment; payment_id starts out as the gateway order id."""
    db_payment = Payment(
        user_id=user_id,
        course_id=course_id,
        subscription_id=subscription_id,
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        payment_id=order_id,
        order_id=order_id,
        status=PaymentStatus.PENDING,
        payment_data=payment_data,
        transaction_fee=Decimal("0.00"),
        net_amount=amount,
        refunded_amount=Decimal("0.00"),
        invoice_id=invoice_id,
    )
    db.add(db_payment)
    commit_or_rollback(db, db_payment)
    logger.info(f"Payment record (ID: {db_payment.id}) created for user {user_id}, order {order_id} via {payment_method.value}.")
    return db_payment

def get_payment_by_id(db: Session, payment_id: int) -> Optional[Payment]:
    logger.debug(f"Fetching payment by ID: {payment_id}")
    return db.query(Payment).filter(Payment.id == payment_id).first()

def get_payment_by_order_id(db: Session, order_id: str) -> Optional[Payment]:
    logger.debug(f"Fetching payment by order_id: {order_id}")
    return db.query(Payment).filter(Payment.order_id == order_id).first()

def get_payment_history(db: Session, user_id: int, skip: int = 0, limit: int = 50) -> List[Tuple[Payment, Optional[str], Optional[str]]]:
    """(payment, course title, invoice number) rows for the user, most recent first."""
    return (
        db.query(Payment, Course.title, Invoice.invoice_number)
        .outerjoin(Course, Payment.course_id == Course.id)
        .outerjoin(Invoice, Payment.invoice_id == Invoice.id)
        .filter(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def get_payments(db: Session, skip: int = 0, limit: int = 50, filters: Optional[Dict[str, Any]] = None) -> List[Payment]:
    query = _apply_payment_filters(db.query(Payment), filters)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).offset(skip).limit(limit).all()

def count_payments(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    query = _apply_payment_filters(db.query(func.count(Payment.id)), filters)
    return query.scalar() or 0

def mark_payment_completed(db: Session, db_payment: Payment, gateway_payment_id: Optional[str] = None) -> Payment:
    """Payment -> completed and its invoice -> paid, in one commit."""
    now = datetime.now(timezone.utc)
    db_payment.status = PaymentStatus.COMPLETED
    db_payment.paid_at = db_payment.paid_at or now
    db_payment.error_message = None
    if gateway_payment_id:
        db_payment.payment_id = gateway_payment_id
    if db_payment.invoice is not None:
        db_payment.invoice.status = InvoiceStatus.PAID
        db_payment.invoice.paid_at = db_payment.invoice.paid_at or now
    commit_or_rollback(db, db_payment)
    logger.info(f"Payment {db_payment.id} (order {db_payment.order_id}) marked completed.")
    return db_payment

def mark_payment_failed(db: Session, db_payment: Payment, error_message: Optional[str] = None) -> Payment:
    db_payment.status = PaymentStatus.FAILED
    db_payment.error_message = error_message
    commit_or_rollback(db, db_payment)
    logger.info(f"Payment {db_payment.id} (order {db_payment.order_id}) marked failed: {error_message}")
    return db_payment

# --- Refunds ---
def create_refund_record(
    db: Session,
    db_payment: Payment,
    amount: Decimal,
    reason: RefundReason,
    provider_refund_id: Optional[str],
    refund_data: Optional[Dict[str, Any]] = None,
    notes: Optional[str] = None,
) -> Refund:
    """
    Inserts a pending refund and recomputes the payment's cumulative refunded amount
    and derived status in the same commit.
    """
    db_refund = Refund(
        payment_id=db_payment.id,
        user_id=db_payment.user_id,
        amount=amount,
        currency=db_payment.currency,
        reason=reason,
        notes=notes,
        status=RefundStatus.PENDING,
        provider_refund_id=provider_refund_id,
        refund_data=refund_data,
    )
    db.add(db_refund)

    refunded = Decimal(db_payment.refunded_amount or 0) + amount
    db_payment.refunded_amount = refunded
    db_payment.status = PaymentStatus.REFUNDED if refunded >= Decimal(db_payment.amount) else PaymentStatus.PARTIALLY_REFUNDED

    commit_or_rollback(db, db_refund, db_payment)
    logger.info(f"Refund {db_refund.id} of {amount} recorded for payment {db_payment.id}. Payment status: {db_payment.status.value}.")
    return db_refund

def get_refund_by_provider_id(db: Session, provider_refund_id: str) -> Optional[Refund]:
    return db.query(Refund).filter(Refund.provider_refund_id == provider_refund_id).first()

def get_refunds_for_payment(db: Session, payment_id: int) -> List[Refund]:
    return db.query(Refund).filter(Refund.payment_id == payment_id).order_by(Refund.id).all()

def mark_refund_succeeded(db: Session, db_refund: Refund) -> Refund:
    db_refund.status = RefundStatus.SUCCEEDED
    db_refund.processed_at = db_refund.processed_at or datetime.now(timezone.utc)
    commit_or_rollback(db, db_refund)
    logger.info(f"Refund {db_refund.id} (provider id {db_refund.provider_refund_id}) succeeded.")
    return db_refund

# --- Webhook audit records ---
def get_webhook_record(db: Session, provider: PaymentMethod, event_id: str) -> Optional[PaymentWebhook]:
    return db.query(PaymentWebhook).filter(
        PaymentWebhook.provider == provider, PaymentWebhook.event_id == event_id
    ).first()

def create_webhook_record(
    db: Session, provider: PaymentMethod, event_type: str, event_id: str, payload: Dict[str, Any]
) -> PaymentWebhook:
    """
    Stores the inbound callback before it is applied. A replay of an unprocessed event
    reuses the existing row.
    """
    existing = get_webhook_record(db, provider, event_id)
    if existing:
        return existing
    record = PaymentWebhook(
        provider=provider,
        event_type=event_type,
        event_id=event_id,
        payload=payload,
        status=WebhookStatus.PENDING,
        retry_count=0,
    )
    db.add(record)
    try:
        commit_or_rollback(db, record)
    except IntegrityError:
        # Concurrent delivery of the same event inserted it first
        existing = get_webhook_record(db, provider, event_id)
        if existing is None:
            raise
        return existing
    logger.info(f"Webhook {provider.value}/{event_type} ({event_id}) recorded as ID {record.id}.")
    return record

def mark_webhook_processed(db: Session, record: PaymentWebhook) -> PaymentWebhook:
    record.status = WebhookStatus.PROCESSED
    record.processed_at = datetime.now(timezone.utc)
    record.error_message = None
    commit_or_rollback(db, record)
    return record

def mark_webhook_failed(db: Session, record: PaymentWebhook, error_message: str) -> PaymentWebhook:
    record.status = WebhookStatus.FAILED
    record.error_message = error_message
    record.retry_count = (record.retry_count or 0) + 1
    commit_or_rollback(db, record)
    logger.warning(f"Webhook {record.id} failed (attempt {record.retry_count}): {error_message}")
    return record

def get_webhook_records(db: Session, status: Optional[WebhookStatus] = None, skip: int = 0, limit: int = 50) -> List[PaymentWebhook]:
    query = db.query(PaymentWebhook)
    if status is not None:
        query = query.filter(PaymentWebhook.status == status)
    return query.order_by(PaymentWebhook.id.desc()).offset(skip).limit(limit).all()
