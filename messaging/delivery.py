import logging

from rental_marketplace.exceptions import NotificationDeliveryFailed
from .presence import get_presence
from .serializers import MessageSerializer

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message-received"


class NotificationFanout:
    """
    Pushes a stored message to its receiver if they are connected.
    Offline receivers are not an error: the persisted row is what they will read.
    """

    def __init__(self, presence=None):
        self.presence = presence if presence is not None else get_presence()

    def deliver(self, message) -> bool:
        handle = self.presence.lookup(message.receiver_id)
        if handle is None:
            logger.debug(
                "Receiver offline, message stored only message_id=%s receiver_id=%s",
                message.id,
                message.receiver_id,
            )
            return False

        payload = {"type": MESSAGE_EVENT, "message": MessageSerializer(message).data}
        try:
            handle.send(payload)
        except Exception as exc:
            raise NotificationDeliveryFailed(
                f"Push to user {message.receiver_id} failed for message {message.id}: {exc}"
            ) from exc

        logger.info("Message pushed message_id=%s receiver_id=%s", message.id, message.receiver_id)
        return True
