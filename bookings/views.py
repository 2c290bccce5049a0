import logging

from rest_framework import viewsets, permissions, decorators, response, status

from rental_marketplace.exceptions import BookingNotFound, Forbidden
from rental_marketplace.permissions import IsTenant
from . import services
from .models import Booking
from .serializers import BookingCreateSerializer, BookingSerializer, RefuseBookingSerializer

logger = logging.getLogger(__name__)


class BookingViewSet(viewsets.GenericViewSet):
    """
    Booking API.

    Access rules:
    - create (POST /api/bookings/):
      tenant only. Price and owner come from the approved listing.
      An `Idempotency-Key` header (or `idempotency_key` field) makes retries safe:
      a replay returns the original booking with 200 instead of 201.
    - retrieve (GET /api/bookings/{id}/):
      the booking's tenant, owner or agent, or an admin.
    - confirm / refuse (POST /api/bookings/{id}/confirm|refuse/):
      only the booking's owner and only while pending.
    - cancel (POST /api/bookings/{id}/cancel/):
      only the booking's tenant and only while pending.

    Transition responses carry a `warnings` list when the booking was saved but its
    conversation could not be updated or notified.
    """
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    queryset = Booking.objects.select_related("property", "tenant", "owner", "agent")
    lookup_value_regex = r"\d+"  # accept only numeric ids

    def get_permissions(self):
        if self.action == "create":
            return [permissions.IsAuthenticated(), IsTenant()]
        return super().get_permissions()

    def _render(self, outcome, http_status=status.HTTP_200_OK):
        data = dict(BookingSerializer(outcome.booking).data)
        if outcome.warnings:
            data["warnings"] = outcome.warnings
        return response.Response(data, status=http_status)

    def create(self, request, *args, **kwargs):
        payload = BookingCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        key = request.headers.get("Idempotency-Key") or data.get("idempotency_key")

        outcome = services.create_booking(
            request.user,
            data["property_id"],
            data["start_date"],
            data["end_date"],
            duration_months=data.get("duration_months", 1),
            agent_id=data.get("agent_id"),
            idempotency_key=key,
        )
        return self._render(outcome, status.HTTP_201_CREATED if outcome.created else status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        try:
            booking = self.queryset.get(pk=pk)
        except Booking.DoesNotExist:
            raise BookingNotFound()
        if not (booking.is_participant(request.user) or getattr(request.user, "role", None) == "admin"):
            logger.warning(
                "Booking access forbidden booking_id=%s user_id=%s",
                booking.id,
                request.user.id,
            )
            raise Forbidden("No access.")
        return response.Response(BookingSerializer(booking).data)

    @decorators.action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        return self._render(services.confirm_booking(pk, request.user))

    @decorators.action(detail=True, methods=["post"], serializer_class=RefuseBookingSerializer)
    def refuse(self, request, pk=None):
        payload = RefuseBookingSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        return self._render(services.refuse_booking(pk, request.user, payload.validated_data.get("reason")))

    @decorators.action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self._render(services.cancel_booking(pk, request.user))
