import logging

from rest_framework import mixins, viewsets, permissions, decorators, response

from rental_marketplace.exceptions import Forbidden
from rental_marketplace.permissions import IsOwnerOrReadOnly, IsPropertyOwner
from . import approval
from .models import Property
from .serializers import PropertySerializer, RejectPropertySerializer

logger = logging.getLogger(__name__)


class PropertyViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Listings and their moderation.

    Access rules:
    - create (POST /api/properties/): owner role only; the listing starts in `pending`.
    - retrieve (GET /api/properties/{id}/): the listing owner or an admin.
    - update / partial_update: the listing owner; moderation fields are read-only.
    - approve / reject (POST /api/properties/{id}/approve|reject/): admin only,
      enforced by properties.approval so that the same guard applies outside HTTP.
    - approval-stats (GET /api/properties/approval-stats/): admin only.
    """
    serializer_class = PropertySerializer
    queryset = Property.objects.select_related("owner", "approved_by")
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action == "create":
            return [permissions.IsAuthenticated(), IsPropertyOwner()]
        if self.action in ("update", "partial_update"):
            return [permissions.IsAuthenticated(), IsPropertyOwner(), IsOwnerOrReadOnly()]
        return [permissions.IsAuthenticated()]

    def retrieve(self, request, *args, **kwargs):
        prop = self.get_object()
        role = getattr(request.user, "role", None)
        if role != "admin" and prop.owner_id != request.user.id:
            raise Forbidden("No access.")
        return response.Response(self.get_serializer(prop).data)

    def perform_create(self, serializer):
        prop = serializer.save()  # owner is set in serializer.create
        logger.info(
            "Property created property_id=%s owner_id=%s approval_state=%s",
            prop.id,
            prop.owner_id,
            prop.approval_state,
        )

    def perform_update(self, serializer):
        prop = serializer.save()
        logger.info("Property updated property_id=%s owner_id=%s", prop.id, prop.owner_id)

    @decorators.action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        prop = approval.approve_property(pk, request.user)
        return response.Response(self.get_serializer(prop).data)

    @decorators.action(detail=True, methods=["post"], serializer_class=RejectPropertySerializer)
    def reject(self, request, pk=None):
        payload = RejectPropertySerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        prop = approval.reject_property(pk, request.user, payload.validated_data["reason"])
        return response.Response(PropertySerializer(prop, context=self.get_serializer_context()).data)

    @decorators.action(detail=False, methods=["get"], url_path="approval-stats")
    def approval_stats(self, request):
        return response.Response(approval.approval_stats(request.user))
