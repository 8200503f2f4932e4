from datetime import datetime, timezone
from decimal import Decimal

import pytest

from backend.core.config import settings
from backend.core.exceptions import PaymentGatewayError
from backend.core.payments import razorpay_service
from backend.crud import course_crud, payment_crud
from backend.models.analytics_model import Notification
from backend.models.enums import InvoiceStatus, PaymentStatus
from backend.models.payment_model import Invoice, Payment
from backend.services import payment_service


@pytest.fixture
def razorpay_order(mocker):
    return mocker.patch.object(
        razorpay_service,
        "create_order",
        return_value={"id": "order_test_001", "amount": 11800, "currency": "INR", "status": "created"},
    )


@pytest.fixture
def razorpay_secret(monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", "rzp_key_secret_test")
    monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", "rzp_test_key")


@pytest.fixture
def paid_course(instructor, make_course):
    return make_course(instructor, title="Financial Modelling", price="100")


def _create_order(client, headers, course):
    return client.post(
        "/api/payments/create-order",
        json={"course_id": course.id, "amount": "100.00", "payment_method": "razorpay"},
        headers=headers,
    )


def _verify(client, headers, order_id="order_test_001", payment_id="pay_test_001", signature=None):
    signature = signature or razorpay_service.compute_payment_signature(order_id, payment_id)
    return client.post(
        "/api/payments/verify",
        json={"order_id": order_id, "payment_id": payment_id, "signature": signature},
        headers=headers,
    )


# --- Money & numbering ---
def test_calculate_tax_rounds_to_two_places():
    assert payment_service.calculate_tax(Decimal("100")) == (Decimal("18.00"), Decimal("118.00"))
    assert payment_service.calculate_tax(Decimal("99.99")) == (Decimal("18.00"), Decimal("117.99"))
    assert payment_service.calculate_tax(Decimal("10"), rate=Decimal("0.05")) == (Decimal("0.50"), Decimal("10.50"))


def test_invoice_numbers_continue_the_monthly_sequence(db_session, student):
    may = datetime(2024, 5, 3, tzinfo=timezone.utc)
    assert payment_service.generate_invoice_number(db_session, now=may) == "INV-202405-0001"

    payment_crud.create_invoice(
        db_session, invoice_number="INV-202405-0007", user_id=student.id,
        subtotal=Decimal("10.00"), tax_amount=Decimal("1.80"), total_amount=Decimal("11.80"), currency="INR",
    )
    assert payment_service.generate_invoice_number(db_session, now=may) == "INV-202405-0008"
    # A new month starts over
    june = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert payment_service.generate_invoice_number(db_session, now=june) == "INV-202406-0001"


def test_invoice_sequence_grows_past_four_digits(db_session, student):
    may = datetime(2024, 5, 3, tzinfo=timezone.utc)
    for number in ("INV-202405-10000", "INV-202405-9999"):
        payment_crud.create_invoice(
            db_session, invoice_number=number, user_id=student.id,
            subtotal=Decimal("10.00"), tax_amount=Decimal("1.80"), total_amount=Decimal("11.80"), currency="INR",
        )
    assert payment_service.generate_invoice_number(db_session, now=may) == "INV-202405-10001"


# --- Orders ---
def test_create_order_drafts_invoice_and_pending_payment(client, student, paid_course, get_auth_headers_for, razorpay_order, razorpay_secret):
    response = _create_order(client, get_auth_headers_for(student), paid_course)

    assert response.status_code == 201
    body = response.json()
    assert body["order"]["id"] == "order_test_001"
    assert body["key_id"] == "rzp_test_key"
    assert body["payment"]["status"] == "pending"
    assert Decimal(body["payment"]["amount"]) == Decimal("118.00")
    assert body["invoice"]["status"] == "draft"
    assert body["invoice"]["invoice_number"].startswith("INV-")
    assert Decimal(body["invoice"]["tax_amount"]) == Decimal("18.00")

    kwargs = razorpay_order.call_args.kwargs
    assert kwargs["amount"] == Decimal("118.00")
    assert kwargs["notes"]["course_id"] == paid_course.id
    assert kwargs["customer"]["email"] == student.email


def test_gateway_failure_cancels_the_draft_invoice(client, db_session, student, paid_course, get_auth_headers_for, mocker):
    mocker.patch.object(
        razorpay_service, "create_order", side_effect=PaymentGatewayError("Payment gateway error: timeout", provider="razorpay")
    )

    response = _create_order(client, get_auth_headers_for(student), paid_course)

    assert response.status_code == 502
    assert response.json() == {"detail": "Payment gateway error: timeout", "provider": "razorpay"}
    invoice = db_session.query(Invoice).one()
    assert invoice.status == InvoiceStatus.CANCELLED
    assert "Gateway order could not be created" in invoice.notes
    assert db_session.query(Payment).count() == 0


def test_create_order_for_unknown_course(client, student, get_auth_headers_for, razorpay_order):
    response = client.post(
        "/api/payments/create-order",
        json={"course_id": 404, "amount": "10", "payment_method": "razorpay"},
        headers=get_auth_headers_for(student),
    )
    assert response.status_code == 404
    razorpay_order.assert_not_called()


# --- Verification ---
def test_verify_payment_completes_and_enrolls(client, db_session, student, paid_course, get_auth_headers_for, razorpay_order, razorpay_secret, mock_send_email):
    headers = get_auth_headers_for(student)
    _create_order(client, headers, paid_course)

    response = _verify(client, headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["payment"]["status"] == "completed"
    assert body["payment"]["payment_id"] == "pay_test_001"
    assert body["payment"]["paid_at"] is not None

    assert course_crud.get_enrollment(db_session, student.id, paid_course.id) is not None
    invoice = db_session.query(Invoice).one()
    assert invoice.status == InvoiceStatus.PAID
    assert db_session.query(Notification).filter(Notification.user_id == student.id).count() == 1
    mock_send_email.assert_called_once()

    # Verifying again is a no-op
    again = _verify(client, headers)
    assert again.status_code == 200
    assert db_session.query(Notification).count() == 1


def test_verify_with_bad_signature_leaves_payment_pending(client, db_session, student, paid_course, get_auth_headers_for, razorpay_order, razorpay_secret):
    headers = get_auth_headers_for(student)
    _create_order(client, headers, paid_course)

    response = _verify(client, headers, signature="0" * 64)

    assert response.status_code == 400
    assert response.json()["detail"] == "Payment verification failed."
    assert db_session.query(Payment).one().status == PaymentStatus.PENDING


def test_cannot_verify_another_users_order(client, student, make_user, paid_course, get_auth_headers_for, razorpay_order, razorpay_secret):
    _create_order(client, get_auth_headers_for(student), paid_course)
    stranger = make_user()
    response = _verify(client, get_auth_headers_for(stranger))
    assert response.status_code == 404


# --- Refunds ---
@pytest.fixture
def completed_payment(client, db_session, student, paid_course, get_auth_headers_for, razorpay_order, razorpay_secret):
    headers = get_auth_headers_for(student)
    _create_order(client, headers, paid_course)
    _verify(client, headers)
    return db_session.query(Payment).one()


def test_partial_then_full_refund(client, db_session, admin, completed_payment, get_auth_headers_for, mocker):
    gateway_refund = mocker.patch.object(
        razorpay_service, "create_refund", side_effect=[{"id": "rfnd_001"}, {"id": "rfnd_002"}]
    )
    headers = get_auth_headers_for(admin)

    first = client.post("/api/payments/refund", json={"payment_id": completed_payment.id, "amount": "18.00"}, headers=headers)
    assert first.status_code == 201
    assert first.json()["provider_refund_id"] == "rfnd_001"
    assert first.json()["status"] == "pending"
    db_session.refresh(completed_payment)
    assert completed_payment.status == PaymentStatus.PARTIALLY_REFUNDED

    too_much = client.post("/api/payments/refund", json={"payment_id": completed_payment.id, "amount": "200"}, headers=headers)
    assert too_much.status_code == 400
    assert "exceeds the refundable balance" in too_much.json()["detail"]

    rest = client.post("/api/payments/refund", json={"payment_id": completed_payment.id, "amount": "100.00"}, headers=headers)
    assert rest.status_code == 201
    db_session.refresh(completed_payment)
    assert completed_payment.status == PaymentStatus.REFUNDED
    assert Decimal(completed_payment.refunded_amount) == Decimal("118.00")
    assert gateway_refund.call_count == 2

    listed = client.get(f"/api/payments/{completed_payment.id}/refunds", headers=headers)
    assert len(listed.json()) == 2


def test_refund_of_pending_payment_is_rejected(client, student, admin, paid_course, get_auth_headers_for, razorpay_order, razorpay_secret, db_session):
    _create_order(client, get_auth_headers_for(student), paid_course)
    payment = db_session.query(Payment).one()
    response = client.post(
        "/api/payments/refund", json={"payment_id": payment.id, "amount": "10"}, headers=get_auth_headers_for(admin)
    )
    assert response.status_code == 400


def test_students_cannot_refund(client, student, completed_payment, get_auth_headers_for):
    response = client.post(
        "/api/payments/refund", json={"payment_id": completed_payment.id, "amount": "10"}, headers=get_auth_headers_for(student)
    )
    assert response.status_code == 403


# --- History & invoices ---
def test_history_and_invoices(client, student, make_user, completed_payment, paid_course, get_auth_headers_for):
    headers = get_auth_headers_for(student)

    history = client.get("/api/payments/history", headers=headers).json()
    assert len(history) == 1
    assert history[0]["course_title"] == paid_course.title
    assert history[0]["invoice_number"].startswith("INV-")

    invoices = client.get("/api/payments/invoices", headers=headers).json()
    assert len(invoices) == 1
    invoice_id = invoices[0]["id"]
    assert client.get(f"/api/payments/invoices/{invoice_id}", headers=headers).status_code == 200

    stranger = make_user()
    assert client.get(f"/api/payments/invoices/{invoice_id}", headers=get_auth_headers_for(stranger)).status_code == 404


def test_admin_lists_payments_with_filters(client, admin, completed_payment, get_auth_headers_for):
    headers = get_auth_headers_for(admin)
    completed = client.get("/api/payments/", params={"status": "completed"}, headers=headers).json()
    failed = client.get("/api/payments/", params={"status": "failed"}, headers=headers).json()
    assert completed["total"] == 1
    assert failed["total"] == 0
