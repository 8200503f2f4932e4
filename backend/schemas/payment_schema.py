from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List # Any for raw gateway payloads
from datetime import datetime
from decimal import Decimal

from backend.models.enums import (
    PaymentStatus, PaymentMethod, InvoiceStatus, RefundReason, RefundStatus, WebhookStatus
)

# --- Invoice Schemas ---
class InvoiceDisplay(BaseModel):
    id: int
    invoice_number: str
    user_id: int
    course_id: Optional[int] = None
    subscription_id: Optional[int] = None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str
    status: InvoiceStatus
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

# --- Payment Schemas ---
class PaymentCreate(BaseModel):
    """Body of POST /payments/create-order. The payer is the authenticated user."""
    course_id: Optional[int] = Field(None, description="Course being purchased, if any")
    subscription_id: Optional[int] = Field(None, description="Subscription being paid for, if any")
    amount: Decimal = Field(..., gt=0, description="Subtotal before tax")
    currency: str = Field("INR", min_length=3, max_length=10, description="Currency code")
    payment_method: PaymentMethod = Field(..., description="Gateway that should open the order")

class PaymentVerify(BaseModel):
    order_id: str = Field(..., min_length=1, description="Gateway order id returned by create-order")
    payment_id: str = Field(..., min_length=1, description="Gateway payment id reported by the checkout")
    signature: Optional[str] = Field(None, description="Checkout signature (Razorpay only)")
    payment_method: Optional[PaymentMethod] = Field(None, description="Defaults to the method stored on the payment")

class PaymentDisplay(BaseModel):
    id: int
    user_id: int
    course_id: Optional[int] = None
    subscription_id: Optional[int] = None
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_id: str
    order_id: str
    status: PaymentStatus
    transaction_fee: Decimal
    net_amount: Decimal
    refunded_amount: Decimal
    invoice_id: Optional[int] = None
    error_message: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PaymentHistoryItem(PaymentDisplay):
    course_title: Optional[str] = None
    invoice_number: Optional[str] = None

class CreateOrderResponse(BaseModel):
    payment: PaymentDisplay
    order: Dict[str, Any] = Field(..., description="Order object as returned by the gateway")
    invoice: InvoiceDisplay
    key_id: Optional[str] = Field(None, description="Public checkout key (Razorpay)")

class PaymentVerifyResponse(BaseModel):
    success: bool
    message: str
    payment: Optional[PaymentDisplay] = None

# --- Refund Schemas ---
class RefundCreate(BaseModel):
    payment_id: int = Field(..., description="Local id of the payment to refund")
    amount: Decimal = Field(..., gt=0, description="Amount to refund")
    reason: RefundReason = Field(RefundReason.REQUESTED_BY_CUSTOMER)
    notes: Optional[str] = Field(None, max_length=1000)

class RefundDisplay(BaseModel):
    id: int
    payment_id: int
    user_id: int
    amount: Decimal
    currency: str
    reason: RefundReason
    notes: Optional[str] = None
    status: RefundStatus
    provider_refund_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

# --- Webhook Schemas ---
class WebhookAck(BaseModel):
    success: bool = True
    duplicate: bool = Field(False, description="True when the event had already been processed")

class PaymentWebhookDisplay(BaseModel):
    id: int
    provider: PaymentMethod
    event_type: str
    event_id: str
    status: WebhookStatus
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int
    created_at: datetime

    class Config:
        from_attributes = True

class PaginatedPayments(BaseModel):
    total: int
    items: List[PaymentDisplay]
    page: int
    size: int
