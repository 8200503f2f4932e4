from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from backend.core.database import get_db
from backend.core.dependencies import get_current_active_user, get_current_admin_user
from backend.crud import payment_crud
from backend.models.enums import PaymentMethod, PaymentStatus, UserRole
from backend.models.user_model import User
from backend.schemas import payment_schema as schemas
from backend.services import payment_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["Payments"])

@router.post("/create-order", response_model=schemas.CreateOrderResponse, status_code=status.HTTP_201_CREATED)
def create_payment_order(
    payment_in: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Open an order with the chosen gateway. A draft invoice and a pending payment are
    stored locally; the returned order is handed to the gateway's checkout on the client.
    """
    logger.info(
        f"User {current_user.email} creating {payment_in.payment_method.value} order "
        f"for {payment_in.amount} {payment_in.currency}"
    )
    return payment_service.create_payment(db, current_user, payment_in)

@router.post("/verify", response_model=schemas.PaymentVerifyResponse)
def verify_payment_checkout(
    verify_in: schemas.PaymentVerify,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Confirm a completed checkout. Course purchases enroll the payer on success."""
    payment = payment_service.verify_payment(db, verify_in, user=current_user)
    return schemas.PaymentVerifyResponse(
        success=True,
        message="Payment verified successfully.",
        payment=schemas.PaymentDisplay.model_validate(payment),
    )

@router.post("/refund", response_model=schemas.RefundDisplay, status_code=status.HTTP_201_CREATED)
def refund_payment(
    refund_in: schemas.RefundCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Refund all or part of a completed payment. (Admin only)"""
    logger.info(f"Admin {current_admin.email} refunding {refund_in.amount} of payment {refund_in.payment_id}")
    return payment_service.create_refund(db, refund_in)

@router.get("/history", response_model=List[schemas.PaymentHistoryItem])
def read_payment_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return payment_service.get_payment_history(db, current_user.id, skip=skip, limit=limit)

@router.get("/invoices", response_model=List[schemas.InvoiceDisplay])
def read_my_invoices(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    return payment_crud.get_invoices_for_user(db, current_user.id)

@router.get("/invoices/{invoice_id}", response_model=schemas.InvoiceDisplay)
def read_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Invoice by id. Users see their own invoices; admins see any."""
    owner = None if current_user.role == UserRole.ADMIN else current_user
    return payment_service.get_invoice(db, invoice_id, user=owner)

@router.get("/{payment_id}/refunds", response_model=List[schemas.RefundDisplay])
def read_payment_refunds(
    payment_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return payment_crud.get_refunds_for_payment(db, payment_id)

@router.get("/", response_model=schemas.PaginatedPayments)
def admin_list_payments(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    user_id: Optional[int] = Query(None),
    course_id: Optional[int] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    payment_method: Optional[PaymentMethod] = Query(None),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: all payments, newest first, with optional filters."""
    filters = {
        "user_id": user_id,
        "course_id": course_id,
        "status": payment_status.value if payment_status else None,
        "payment_method": payment_method.value if payment_method else None,
    }
    active_filters = {k: v for k, v in filters.items() if v is not None}
    total = payment_crud.count_payments(db, filters=active_filters)
    payments = payment_crud.get_payments(db, skip=(page - 1) * size, limit=size, filters=active_filters)
    return schemas.PaginatedPayments(
        total=total,
        items=[schemas.PaymentDisplay.model_validate(p) for p in payments],
        page=page,
        size=size,
    )
