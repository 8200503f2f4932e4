from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, TIMESTAMP, DECIMAL, JSON,
    Enum as SAEnum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.core.database import Base
from backend.models.enums import (
    PaymentStatus, PaymentMethod, InvoiceStatus, RefundReason, RefundStatus, WebhookStatus
)

class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(32), unique=True, nullable=False, index=True) # INV-YYYYMM-NNNN
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)

    subtotal = Column(DECIMAL(10, 2), nullable=False)
    tax_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    discount_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    total_amount = Column(DECIMAL(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="INR")

    status = Column(SAEnum(InvoiceStatus, name="invoice_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=InvoiceStatus.DRAFT, index=True)
    due_date = Column(TIMESTAMP(timezone=True), nullable=True)
    paid_at = Column(TIMESTAMP(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    billing_address = Column(JSON, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    payment = relationship("Payment", back_populates="invoice", uselist=False)

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', total={self.total_amount}, status='{self.status}')>"

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True, index=True)

    amount = Column(DECIMAL(10, 2), nullable=False) # Invoice total, tax included
    currency = Column(String(10), nullable=False, default="INR")

    payment_method = Column(SAEnum(PaymentMethod, name="payment_method_enum", values_callable=lambda obj: [e.value for e in obj]),
                            nullable=False, index=True)

    # Gateway identifiers. payment_id starts as the order id and is replaced by the
    # gateway's payment id once the payment is verified.
    payment_id = Column(String(255), nullable=False, index=True)
    order_id = Column(String(255), nullable=False, unique=True, index=True)

    status = Column(SAEnum(PaymentStatus, name="payment_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=PaymentStatus.PENDING, index=True)
    payment_data = Column(JSON, nullable=True) # Raw gateway order payload

    transaction_fee = Column(DECIMAL(10, 2), nullable=False, default=0)
    net_amount = Column(DECIMAL(10, 2), nullable=False)
    refunded_amount = Column(DECIMAL(10, 2), nullable=False, default=0)

    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, unique=True)
    error_message = Column(Text, nullable=True)
    paid_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="payments")
    course = relationship("Course")
    subscription = relationship("Subscription", back_populates="payments")
    invoice = relationship("Invoice", back_populates="payment")
    refunds = relationship("Refund", back_populates="payment", cascade="all, delete-orphan", order_by="Refund.created_at")

    def __repr__(self):
        return f"<Payment(id={self.id}, user_id={self.user_id}, amount={self.amount} {self.currency}, status='{self.status}')>"

class Refund(Base):
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(DECIMAL(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="INR")
    reason = Column(SAEnum(RefundReason, name="refund_reason_enum", values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(SAEnum(RefundStatus, name="refund_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=RefundStatus.PENDING, index=True)
    provider_refund_id = Column(String(255), nullable=True, index=True)
    refund_data = Column(JSON, nullable=True)
    processed_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    payment = relationship("Payment", back_populates="refunds")

    def __repr__(self):
        return f"<Refund(id={self.id}, payment_id={self.payment_id}, amount={self.amount}, status='{self.status}')>"

class PaymentWebhook(Base):
    """Audit log of inbound gateway callbacks. (provider, event_id) is unique so replays are detected."""
    __tablename__ = "payment_webhooks"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(SAEnum(PaymentMethod, name="payment_method_enum", values_callable=lambda obj: [e.value for e in obj]),
                      nullable=False)
    event_type = Column(String(100), nullable=False, index=True)
    event_id = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(SAEnum(WebhookStatus, name="webhook_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=WebhookStatus.PENDING)
    processed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('provider', 'event_id', name='uq_webhook_provider_event'),)

    def __repr__(self):
        return f"<PaymentWebhook(id={self.id}, provider='{self.provider}', event='{self.event_type}', status='{self.status}')>"
