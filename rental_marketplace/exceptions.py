"""
Error taxonomy shared by the approval, booking and messaging services.

Services raise these directly; DRF turns them into responses through
api_exception_handler, so every failure leaves the API as
{"code": "<kind>", "detail": "<message>"}.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class NotFound(exceptions.APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class PropertyNotFound(NotFound):
    default_detail = "Property not found."
    default_code = "property_not_found"


class BookingNotFound(NotFound):
    default_detail = "Booking not found."
    default_code = "booking_not_found"


class ConversationNotFound(NotFound):
    default_detail = "Conversation not found."
    default_code = "conversation_not_found"


class Forbidden(exceptions.APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action."
    default_code = "forbidden"


class ValidationError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "validation_error"


class AlreadyInState(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The object is already in the requested state."
    default_code = "already_in_state"


class PropertyUnavailable(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Property is not available for booking."
    default_code = "property_unavailable"


class InvalidTransition(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This transition is not allowed from the current state."
    default_code = "invalid_transition"


class ConcurrentModification(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The object was modified by another request. Re-fetch it and try again."
    default_code = "concurrent_modification"


class NotificationDeliveryFailed(Exception):
    """Soft failure: the message is stored, only the real-time push did not go out."""


TAXONOMY = (
    NotFound,
    Forbidden,
    ValidationError,
    AlreadyInState,
    PropertyUnavailable,
    InvalidTransition,
    ConcurrentModification,
)

# DRF and Django errors outside the taxonomy are reported under the same kinds
STATUS_KINDS = {
    status.HTTP_400_BAD_REQUEST: "validation_error",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
}


def _error_code(exc, status_code):
    if isinstance(exc, TAXONOMY):
        return exc.default_code
    if status_code in STATUS_KINDS:
        return STATUS_KINDS[status_code]
    return getattr(exc, "default_code", "error")


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return None

    code = _error_code(exc, response.status_code)

    if isinstance(response.data, dict) and set(response.data) == {"detail"}:
        response.data = {"code": code, "detail": response.data["detail"]}
    else:
        # field errors from serializers keep their shape under "errors"
        response.data = {"code": code, "detail": "Invalid input.", "errors": response.data}

    if response.status_code >= 500:
        logger.error("API error view=%s exc=%r", context.get("view").__class__.__name__, exc)
    return response
