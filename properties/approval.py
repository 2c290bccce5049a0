"""
Moderation of listings.

    pending --approve--> approved
    pending --reject---> rejected
    approved <--------> rejected   (re-decision)

Nothing goes back to pending. Each decision reads the current state and then
writes with a conditional UPDATE keyed on (id, observed state), so two admins
racing on the same listing cannot both win.
"""
from __future__ import annotations

import logging

from django.db.models import Count
from django.utils import timezone

from rental_marketplace.exceptions import (
    AlreadyInState,
    ConcurrentModification,
    Forbidden,
    PropertyNotFound,
    ValidationError,
)
from .models import Property

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def _require_admin(actor, action: str) -> None:
    if getattr(actor, "role", None) != ADMIN_ROLE:
        logger.warning(
            "Property %s forbidden user_id=%s role=%s (not admin)",
            action,
            getattr(actor, "id", None),
            getattr(actor, "role", None),
        )
        raise Forbidden("Admin access required.")


def _get_property(property_id) -> Property:
    try:
        return Property.objects.get(pk=property_id)
    except (Property.DoesNotExist, ValueError, TypeError):
        raise PropertyNotFound()


def _compare_and_set(prop: Property, **changes) -> Property:
    """
    Write `changes` only if the row still carries the approval state we read.
    Zero rows updated means another request decided first.
    """
    changes["updated_at"] = timezone.now()
    updated = Property.objects.filter(pk=prop.pk, approval_state=prop.approval_state).update(**changes)
    if not updated:
        logger.info(
            "Property decision lost the race property_id=%s expected_state=%s",
            prop.pk,
            prop.approval_state,
        )
        raise ConcurrentModification()
    prop.refresh_from_db()
    return prop


def approve_property(property_id, actor) -> Property:
    _require_admin(actor, "approve")
    prop = _get_property(property_id)
    if prop.approval_state == Property.ApprovalState.APPROVED:
        raise AlreadyInState("Property already approved.")

    prop = _compare_and_set(
        prop,
        approval_state=Property.ApprovalState.APPROVED,
        rejection_reason=None,
        approved_by_id=actor.id,
        approval_decided_at=timezone.now(),
    )
    logger.info("Property approved property_id=%s admin_id=%s", prop.pk, actor.id)
    return prop


def reject_property(property_id, actor, reason) -> Property:
    _require_admin(actor, "reject")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required.")

    prop = _get_property(property_id)
    if prop.approval_state == Property.ApprovalState.REJECTED:
        raise AlreadyInState("Property already rejected.")

    prop = _compare_and_set(
        prop,
        approval_state=Property.ApprovalState.REJECTED,
        rejection_reason=reason,
        is_active=False,
        approved_by_id=actor.id,
        approval_decided_at=timezone.now(),
    )
    logger.info(
        "Property rejected property_id=%s admin_id=%s reason_len=%s",
        prop.pk,
        actor.id,
        len(reason),
    )
    return prop


def approval_stats(actor) -> dict:
    _require_admin(actor, "stats")
    counts = dict(
        Property.objects.order_by().values_list("approval_state").annotate(n=Count("id"))
    )
    stats = {state: counts.get(state, 0) for state in Property.ApprovalState.values}
    stats["total"] = sum(stats.values())
    return stats
