import pytest
from django.apps import apps

from bookings.models import Booking, BookingIdempotencyKey
from messaging.models import Conversation, Message
from properties.models import Property


def test_all_models_are_registered():
    for model in (Property, Booking, BookingIdempotencyKey, Conversation, Message):
        assert apps.get_model(model._meta.label) is model


def test_booking_property_is_a_relation():
    field = Booking._meta.get_field("property")
    assert field.related_model is Property


@pytest.mark.django_db
def test_booking_participants(booking_factory, tenant, owner, agent, other_tenant):
    booking = booking_factory(agent=agent)

    assert booking.is_participant(tenant)
    assert booking.is_participant(owner)
    assert booking.is_participant(agent)
    assert not booking.is_participant(other_tenant)
    assert str(booking).startswith(f"Booking #{booking.id}")


@pytest.mark.django_db
def test_property_is_bookable(property_factory):
    assert property_factory().is_bookable
    assert not property_factory(is_available=False).is_bookable
    assert not property_factory(approval_state=Property.ApprovalState.PENDING).is_bookable
