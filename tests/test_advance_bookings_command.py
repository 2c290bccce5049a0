from datetime import date, timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from bookings.models import Booking


@pytest.mark.django_db
def test_command_advances_bookings(booking_factory):
    today = date(2026, 3, 1)
    starting = booking_factory(status=Booking.Status.CONFIRMED, start_date=today, end_date=today + timedelta(days=60))
    ended = booking_factory(
        status=Booking.Status.ACTIVE,
        start_date=today - timedelta(days=60),
        end_date=today - timedelta(days=1),
    )

    out = StringIO()
    call_command("advance_bookings", "--today", today.isoformat(), stdout=out)

    starting.refresh_from_db()
    ended.refresh_from_db()
    assert starting.status == Booking.Status.ACTIVE
    assert ended.status == Booking.Status.COMPLETED
    assert "Activated 1, completed 1" in out.getvalue()


@pytest.mark.django_db
def test_command_dry_run_writes_nothing(booking_factory):
    today = date(2026, 3, 1)
    booking = booking_factory(status=Booking.Status.CONFIRMED, start_date=today, end_date=today + timedelta(days=60))

    out = StringIO()
    call_command("advance_bookings", "--today", today.isoformat(), "--dry-run", stdout=out)

    booking.refresh_from_db()
    assert booking.status == Booking.Status.CONFIRMED
    assert "Would activate 1 and complete 0" in out.getvalue()
    assert "no updates performed" in out.getvalue()


@pytest.mark.django_db
def test_command_rejects_bad_date():
    with pytest.raises(CommandError):
        call_command("advance_bookings", "--today", "2026-13-45", stdout=StringIO())
