from datetime import date, timedelta
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import User
from bookings.models import Booking
from properties.models import Property

PASSWORD = "Pass12345"


@pytest.fixture
def user_factory(db):
    def create_user(email: str, role: str = "tenant", name: str = "", password: str = PASSWORD, **extra):
        first_name, _, last_name = (name or "").strip().partition(" ")
        return User.objects.create_user(
            email=email,
            password=password,
            role=role,
            first_name=first_name,
            last_name=last_name,
            **extra,
        )
    return create_user


@pytest.fixture
def owner(user_factory):
    return user_factory("owner@example.com", role="owner", name="Olfa Owner")


@pytest.fixture
def tenant(user_factory):
    return user_factory("tenant@example.com", role="tenant", name="Tarek Tenant")


@pytest.fixture
def other_tenant(user_factory):
    return user_factory("tenant2@example.com", role="tenant")


@pytest.fixture
def agent(user_factory):
    return user_factory("agent@example.com", role="agent")


@pytest.fixture
def admin_user(user_factory):
    return user_factory("admin@example.com", role="admin")


@pytest.fixture
def property_factory(owner):
    def create_property(approval_state=Property.ApprovalState.APPROVED, monthly_price="1000.00", **extra):
        data = dict(
            title="Sea view apartment",
            description="Two rooms, close to the beach",
            property_type=Property.PropertyType.APARTMENT,
            city="Sousse",
            owner=owner,
            monthly_price=Decimal(monthly_price),
            approval_state=approval_state,
        )
        data.update(extra)
        return Property.objects.create(**data)
    return create_property


@pytest.fixture
def pending_property(property_factory):
    return property_factory(approval_state=Property.ApprovalState.PENDING)


@pytest.fixture
def approved_property(property_factory):
    return property_factory()


@pytest.fixture
def booking_factory(approved_property, tenant):
    """Plain ORM rows, bypassing the engine (no conversation is bound)."""
    def create_booking(status=Booking.Status.PENDING, prop=None, booking_tenant=None, **extra):
        prop = prop or approved_property
        start = extra.pop("start_date", date.today() + timedelta(days=10))
        end = extra.pop("end_date", start + timedelta(days=90))
        months = extra.pop("duration_months", 3)
        return Booking.objects.create(
            property=prop,
            tenant=booking_tenant or tenant,
            owner=prop.owner,
            start_date=start,
            end_date=end,
            duration_months=months,
            monthly_price=prop.monthly_price,
            total_price=prop.monthly_price * months,
            status=status,
            **extra,
        )
    return create_booking


def _auth(client: APIClient, user, password: str = PASSWORD) -> APIClient:
    resp = client.post("/api/token/", {"email": user.email, "password": password}, format="json")
    assert resp.status_code == 200, f"Token failed: {resp.status_code} {resp.content[:400]}"
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.json()['access']}")
    return client


@pytest.fixture
def api_client_for(db):
    """Returns a JWT-authenticated APIClient for the given user."""
    def make(user):
        return _auth(APIClient(), user)
    return make


class RecordingHandle:
    """Connection handle that keeps every payload pushed to it."""

    def __init__(self):
        self.sent = []

    def send(self, payload):
        self.sent.append(payload)


class BrokenHandle:
    def send(self, payload):
        raise ConnectionError("socket closed")


@pytest.fixture
def recording_handle():
    return RecordingHandle()


@pytest.fixture
def broken_handle():
    return BrokenHandle()
