"""
Who is connected right now, and how to reach them.

The real-time transport (websocket server, push gateway, ...) lives outside this
project. It registers live connections with a PresenceLookup and the messaging
code only ever asks `lookup(user_id)`. A handle is any object with
`send(payload: dict)`.
"""
import logging
import threading
from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PresenceLookup:
    def lookup(self, user_id):
        """Return the live connection handle for `user_id`, or None if offline."""
        raise NotImplementedError


class NullPresence(PresenceLookup):
    """Nobody is ever online; stored messages are picked up on the next fetch."""

    def lookup(self, user_id):
        return None


class InMemoryPresence(PresenceLookup):
    """Single-process registry. Each instance owns its own table."""

    def __init__(self):
        self._connections = {}
        self._lock = threading.Lock()

    def register(self, user_id, handle):
        with self._lock:
            self._connections[user_id] = handle
        logger.debug("Presence registered user_id=%s", user_id)

    def unregister(self, user_id, handle=None):
        # a stale disconnect must not drop a newer connection of the same user
        with self._lock:
            current = self._connections.get(user_id)
            if current is None or (handle is not None and current is not handle):
                return False
            del self._connections[user_id]
        logger.debug("Presence unregistered user_id=%s", user_id)
        return True

    def lookup(self, user_id):
        with self._lock:
            return self._connections.get(user_id)

    def __len__(self):
        with self._lock:
            return len(self._connections)


@lru_cache(maxsize=None)
def _build_presence(path):
    return import_string(path)()


def get_presence():
    """The configured backend (settings.MESSAGING["PRESENCE_BACKEND"]), built once per path."""
    return _build_presence(settings.MESSAGING["PRESENCE_BACKEND"])
