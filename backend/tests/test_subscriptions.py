from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from backend.core.exceptions import PaymentGatewayError
from backend.core.payments import razorpay_service
from backend.models.enums import PlanInterval, SubscriptionStatus
from backend.models.subscription_model import Subscription
from backend.services import payment_service


PLAN_PAYLOAD = {
    "name": "Pro Monthly",
    "description": "Every course, every live class.",
    "price": "100",
    "interval": "monthly",
    "features": ["All courses", "Live classes"],
}


# --- Period arithmetic ---
@pytest.mark.parametrize("start, months, expected", [
    (datetime(2024, 1, 31), 1, datetime(2024, 2, 29)),
    (datetime(2023, 1, 31), 1, datetime(2023, 2, 28)),
    (datetime(2024, 11, 15), 3, datetime(2025, 2, 15)),
    (datetime(2024, 3, 31), 12, datetime(2025, 3, 31)),
])
def test_add_months_clamps_to_month_end(start, months, expected):
    assert payment_service.add_months(start, months) == expected


def test_period_end_per_interval():
    start = datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert payment_service.calculate_period_end(start, PlanInterval.MONTHLY, 1) == datetime(2024, 2, 15, tzinfo=timezone.utc)
    assert payment_service.calculate_period_end(start, PlanInterval.QUARTERLY, 2) == datetime(2024, 7, 15, tzinfo=timezone.utc)
    assert payment_service.calculate_period_end(start, PlanInterval.YEARLY, 1) == datetime(2025, 1, 15, tzinfo=timezone.utc)


# --- Plans ---
@pytest.fixture
def create_plan(client, admin, get_auth_headers_for):
    def _create_plan(**overrides):
        response = client.post("/api/subscriptions/plans", json={**PLAN_PAYLOAD, **overrides}, headers=get_auth_headers_for(admin))
        assert response.status_code == 201
        return response.json()

    return _create_plan


def test_only_admins_create_plans(client, student, get_auth_headers_for):
    response = client.post("/api/subscriptions/plans", json=PLAN_PAYLOAD, headers=get_auth_headers_for(student))
    assert response.status_code == 403


def test_inactive_plans_are_not_listed(client, student, admin, create_plan, get_auth_headers_for):
    plan = create_plan()
    create_plan(name="Legacy Plan", is_active=False)

    listed = client.get("/api/subscriptions/plans", headers=get_auth_headers_for(student)).json()
    assert [p["id"] for p in listed] == [plan["id"]]

    update = client.put(f"/api/subscriptions/plans/{plan['id']}", json={"is_active": False}, headers=get_auth_headers_for(admin))
    assert update.status_code == 200
    assert client.get("/api/subscriptions/plans", headers=get_auth_headers_for(student)).json() == []


# --- Subscribing ---
def test_trial_plan_starts_without_payment(client, student, create_plan, get_auth_headers_for, mocker):
    gateway = mocker.patch.object(razorpay_service, "create_order")
    plan = create_plan(trial_period_days=7)
    headers = get_auth_headers_for(student)

    response = client.post("/api/subscriptions/", json={"plan_id": plan["id"], "payment_method": "razorpay"}, headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["payment_order"] is None
    assert body["subscription"]["status"] == "active"
    trial_start = datetime.fromisoformat(body["subscription"]["trial_start"])
    trial_end = datetime.fromisoformat(body["subscription"]["trial_end"])
    assert trial_end - trial_start == timedelta(days=7)
    gateway.assert_not_called()

    duplicate = client.post("/api/subscriptions/", json={"plan_id": plan["id"], "payment_method": "razorpay"}, headers=headers)
    assert duplicate.status_code == 409


def test_paid_plan_opens_first_payment_order(client, student, create_plan, get_auth_headers_for, mocker):
    mocker.patch.object(razorpay_service, "create_order", return_value={"id": "order_sub_001", "amount": 11800})
    plan = create_plan()

    response = client.post(
        "/api/subscriptions/", json={"plan_id": plan["id"], "payment_method": "razorpay"}, headers=get_auth_headers_for(student)
    )

    assert response.status_code == 201
    body = response.json()
    order = body["payment_order"]
    assert order["order"]["id"] == "order_sub_001"
    assert Decimal(order["payment"]["amount"]) == Decimal("118.00")
    assert order["payment"]["subscription_id"] == body["subscription"]["id"]


def test_failed_first_order_cancels_the_subscription(client, db_session, student, create_plan, get_auth_headers_for, mocker):
    mocker.patch.object(razorpay_service, "create_order", side_effect=PaymentGatewayError("Razorpay is not configured.", provider="razorpay"))
    plan = create_plan()

    response = client.post(
        "/api/subscriptions/", json={"plan_id": plan["id"], "payment_method": "razorpay"}, headers=get_auth_headers_for(student)
    )

    assert response.status_code == 502
    subscription = db_session.query(Subscription).one()
    assert subscription.status == SubscriptionStatus.CANCELLED


def test_subscribing_to_unknown_plan(client, student, get_auth_headers_for):
    response = client.post("/api/subscriptions/", json={"plan_id": 123, "payment_method": "razorpay"}, headers=get_auth_headers_for(student))
    assert response.status_code == 404


# --- Cancelling ---
def test_cancel_keeps_access_until_period_end(client, student, make_user, create_plan, get_auth_headers_for):
    plan = create_plan(trial_period_days=14)
    headers = get_auth_headers_for(student)
    subscription = client.post(
        "/api/subscriptions/", json={"plan_id": plan["id"], "payment_method": "razorpay"}, headers=headers
    ).json()["subscription"]

    stranger = make_user()
    assert client.post(f"/api/subscriptions/{subscription['id']}/cancel", headers=get_auth_headers_for(stranger)).status_code == 404

    response = client.post(f"/api/subscriptions/{subscription['id']}/cancel", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["cancel_at_period_end"] is True
    assert body["current_period_end"] == subscription["current_period_end"]

    assert client.get("/api/subscriptions/me/active", headers=headers).json() is None
    assert len(client.get("/api/subscriptions/me", headers=headers).json()) == 1


def test_admin_lists_subscriptions_by_status(client, student, admin, create_plan, get_auth_headers_for):
    plan = create_plan(trial_period_days=3)
    client.post("/api/subscriptions/", json={"plan_id": plan["id"], "payment_method": "cashfree"}, headers=get_auth_headers_for(student))

    active = client.get("/api/subscriptions/", params={"status": "active"}, headers=get_auth_headers_for(admin)).json()
    cancelled = client.get("/api/subscriptions/", params={"status": "cancelled"}, headers=get_auth_headers_for(admin)).json()
    assert len(active) == 1
    assert cancelled == []
