"""Booking lifecycle.

    pending --owner confirm--> confirmed --(start_date reached)--> active --(end_date passed)--> completed
    pending --owner refuse---> refused
    pending --tenant cancel--> cancelled

Each transition re-reads the booking, checks who is acting, then writes with a
conditional UPDATE on (id, expected status). Losing that race is reported as
ConcurrentModification, never as success. System messages are posted after the
write and cannot undo it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from messaging import binder
from properties.models import Property
from rental_marketplace.exceptions import (
    BookingNotFound,
    ConcurrentModification,
    Forbidden,
    InvalidTransition,
    PropertyNotFound,
    PropertyUnavailable,
    ValidationError,
)
from .models import Booking, BookingIdempotencyKey

logger = logging.getLogger(__name__)

User = get_user_model()

MAX_DURATION_MONTHS = 120
# Booking.total_price is DecimalField(max_digits=12, decimal_places=2)
MAX_TOTAL_PRICE = Decimal("9999999999.99")


@dataclass
class BookingOutcome:
    booking: Booking
    created: bool = False
    warnings: List[str] = field(default_factory=list)


def _get_booking(booking_id) -> Booking:
    try:
        return Booking.objects.select_related("property").get(pk=booking_id)
    except (Booking.DoesNotExist, ValueError, TypeError):
        raise BookingNotFound()


def _compare_and_set(booking: Booking, expected_status: str, **changes) -> Booking:
    changes["updated_at"] = timezone.now()
    updated = Booking.objects.filter(pk=booking.pk, status=expected_status).update(**changes)
    if not updated:
        logger.info(
            "Booking transition lost the race booking_id=%s expected_status=%s target=%s",
            booking.pk,
            expected_status,
            changes.get("status"),
        )
        raise ConcurrentModification()
    booking.refresh_from_db()
    return booking


def _require_pending(booking: Booking, action: str) -> None:
    if booking.status != Booking.Status.PENDING:
        logger.info(
            "Transition to %s not allowed booking_id=%s status=%s",
            action,
            booking.id,
            booking.status,
        )
        raise InvalidTransition(f"Only pending bookings can be {action}; this one is {booking.status}.")


def _validate_terms(start_date, end_date, duration_months) -> None:
    if not isinstance(start_date, date) or not isinstance(end_date, date):
        raise ValidationError("start_date and end_date are required.")
    if start_date >= end_date:
        raise ValidationError("start_date should be earlier than end_date.")
    if not isinstance(duration_months, int) or duration_months < 1:
        raise ValidationError("duration_months must be a positive integer.")
    if duration_months > MAX_DURATION_MONTHS:
        raise ValidationError(f"duration_months cannot exceed {MAX_DURATION_MONTHS}.")


def _total_price(monthly_price, duration_months) -> Decimal:
    total = monthly_price * duration_months
    if total > MAX_TOTAL_PRICE:
        raise ValidationError("The total price of this booking is too large.")
    return total


def _resolve_agent(agent_id):
    if not agent_id:
        return None
    agent = User.objects.filter(pk=agent_id, role="agent").first()
    if agent is None:
        raise ValidationError("agent must reference a user with the agent role.")
    return agent


def _replay(actor, key: str, property_id) -> Optional[Booking]:
    record = (
        BookingIdempotencyKey.objects.select_related("booking", "booking__property")
        .filter(tenant=actor, key=key)
        .first()
    )
    if record is None:
        return None
    if str(record.booking.property_id) != str(property_id):
        raise ValidationError("This idempotency key was already used for a different booking request.")
    logger.info(
        "Booking create replayed booking_id=%s tenant_id=%s key=%s",
        record.booking_id,
        actor.id,
        key,
    )
    return record.booking


def _lock_bookable_property(property_id, actor) -> Property:
    try:
        prop = Property.objects.select_for_update().get(pk=property_id)
    except (Property.DoesNotExist, ValueError, TypeError):
        raise PropertyNotFound()
    if prop.approval_state != Property.ApprovalState.APPROVED:
        raise PropertyUnavailable("Property is not approved for booking.")
    if not prop.is_available:
        raise PropertyUnavailable("Property is not available.")
    if prop.owner_id == actor.id:
        raise Forbidden("The owner cannot book their own property.")
    return prop


def create_booking(
    actor,
    property_id,
    start_date,
    end_date,
    duration_months=1,
    agent_id=None,
    idempotency_key=None,
    fanout=None,
) -> BookingOutcome:
    """
    Request a booking as `actor` (a tenant).

    The price is taken from the listing, never from the request, and the owner is
    snapshotted from it. With an idempotency key, a retry of the same request
    returns the booking the first attempt produced.
    No overlap check against other bookings of the property is made.
    """
    if getattr(actor, "role", None) != "tenant":
        logger.warning(
            "Booking create forbidden user_id=%s role=%s (not tenant)",
            getattr(actor, "id", None),
            getattr(actor, "role", None),
        )
        raise Forbidden("Only tenants can request bookings.")
    _validate_terms(start_date, end_date, duration_months)

    key = (idempotency_key or "").strip() or None
    if key:
        original = _replay(actor, key, property_id)
        if original is not None:
            return BookingOutcome(booking=original, created=False)

    agent = _resolve_agent(agent_id)

    try:
        with transaction.atomic():
            prop = _lock_bookable_property(property_id, actor)
            monthly_price = prop.monthly_price
            total_price = _total_price(monthly_price, duration_months)
            booking = Booking.objects.create(
                property=prop,
                tenant=actor,
                owner_id=prop.owner_id,
                agent=agent,
                start_date=start_date,
                end_date=end_date,
                duration_months=duration_months,
                monthly_price=monthly_price,
                total_price=total_price,
                status=Booking.Status.PENDING,
            )
            if key:
                BookingIdempotencyKey.objects.create(key=key, tenant=actor, booking=booking)
    except IntegrityError:
        # two retries with the same key raced; the one that committed wins
        original = _replay(actor, key, property_id) if key else None
        if original is None:
            raise
        return BookingOutcome(booking=original, created=False)

    logger.info(
        "Booking created booking_id=%s property_id=%s tenant_id=%s owner_id=%s start=%s end=%s months=%s total=%s",
        booking.id,
        booking.property_id,
        booking.tenant_id,
        booking.owner_id,
        booking.start_date,
        booking.end_date,
        booking.duration_months,
        booking.total_price,
    )
    warnings = binder.narrate_booking_event(booking, binder.BOOKING_CREATED, fanout=fanout)
    return BookingOutcome(booking=booking, created=True, warnings=warnings)


def confirm_booking(booking_id, actor, fanout=None) -> BookingOutcome:
    booking = _get_booking(booking_id)
    if getattr(actor, "id", None) != booking.owner_id:
        logger.warning(
            "Confirm forbidden booking_id=%s by user_id=%s (not owner)",
            booking.id,
            getattr(actor, "id", None),
        )
        raise Forbidden("Only the property owner can confirm this booking.")
    _require_pending(booking, "confirmed")

    booking = _compare_and_set(
        booking,
        Booking.Status.PENDING,
        status=Booking.Status.CONFIRMED,
        confirmed_at=timezone.now(),
    )
    logger.info(
        "Booking confirmed booking_id=%s owner_id=%s tenant_id=%s",
        booking.id,
        actor.id,
        booking.tenant_id,
    )
    warnings = binder.narrate_booking_event(booking, binder.BOOKING_CONFIRMED, fanout=fanout)
    return BookingOutcome(booking=booking, warnings=warnings)


def refuse_booking(booking_id, actor, reason=None, fanout=None) -> BookingOutcome:
    """
    An omitted reason falls back to MESSAGING["BOOKING_REFUSAL_DEFAULT_REASON"];
    an explicitly blank one is rejected.
    """
    booking = _get_booking(booking_id)
    if getattr(actor, "id", None) != booking.owner_id:
        logger.warning(
            "Refuse forbidden booking_id=%s by user_id=%s (not owner)",
            booking.id,
            getattr(actor, "id", None),
        )
        raise Forbidden("Only the property owner can refuse this booking.")

    if reason is None:
        reason = settings.MESSAGING["BOOKING_REFUSAL_DEFAULT_REASON"]
    reason = str(reason).strip()
    if not reason:
        raise ValidationError("A refusal reason is required.")
    _require_pending(booking, "refused")

    booking = _compare_and_set(
        booking,
        Booking.Status.PENDING,
        status=Booking.Status.REFUSED,
        decision_reason=reason,
    )
    logger.info(
        "Booking refused booking_id=%s owner_id=%s tenant_id=%s",
        booking.id,
        actor.id,
        booking.tenant_id,
    )
    warnings = binder.narrate_booking_event(booking, binder.BOOKING_REFUSED, fanout=fanout)
    return BookingOutcome(booking=booking, warnings=warnings)


def cancel_booking(booking_id, actor, fanout=None) -> BookingOutcome:
    booking = _get_booking(booking_id)
    if getattr(actor, "id", None) != booking.tenant_id:
        logger.warning(
            "Cancel forbidden booking_id=%s by user_id=%s (not tenant)",
            booking.id,
            getattr(actor, "id", None),
        )
        raise Forbidden("Only the tenant who requested the booking can cancel it.")
    _require_pending(booking, "cancelled")

    booking = _compare_and_set(
        booking,
        Booking.Status.PENDING,
        status=Booking.Status.CANCELLED,
        cancelled_at=timezone.now(),
    )
    logger.info("Booking cancelled booking_id=%s tenant_id=%s", booking.id, actor.id)
    warnings = binder.narrate_booking_event(booking, binder.BOOKING_CANCELLED, fanout=fanout)
    return BookingOutcome(booking=booking, warnings=warnings)


def advance_bookings(today=None, batch_size=500, dry_run=False) -> dict:
    """
    Time-driven transitions: confirmed -> active once start_date is reached,
    active -> completed once end_date has passed. Same conditional update as the
    user-driven transitions, applied in batches.
    """
    today = today or timezone.now().date()
    steps = (
        ("activated", Booking.Status.CONFIRMED, Booking.Status.ACTIVE, {"start_date__lte": today}, "activated_at"),
        ("completed", Booking.Status.ACTIVE, Booking.Status.COMPLETED, {"end_date__lt": today}, "completed_at"),
    )
    result = {}
    for label, source, target, date_filter, stamp_field in steps:
        qs = Booking.objects.filter(status=source, **date_filter).order_by("id")
        if dry_run:
            result[label] = qs.count()
            continue
        done = 0
        while True:
            ids = list(qs.values_list("id", flat=True)[:batch_size])
            if not ids:
                break
            now = timezone.now()
            done += Booking.objects.filter(id__in=ids, status=source).update(
                status=target, updated_at=now, **{stamp_field: now}
            )
        result[label] = done
        if done:
            logger.info("Bookings %s count=%s today=%s", label, done, today)
    return result
