import pytest

from messaging import presence as presence_mod
from messaging.delivery import MESSAGE_EVENT, NotificationFanout
from messaging.presence import InMemoryPresence, NullPresence
from rental_marketplace.exceptions import NotificationDeliveryFailed


class FakeMessage:
    id = 7
    receiver_id = 42


def test_in_memory_register_lookup_unregister(recording_handle):
    presence = InMemoryPresence()
    assert presence.lookup(42) is None

    presence.register(42, recording_handle)
    assert presence.lookup(42) is recording_handle
    assert len(presence) == 1

    assert presence.unregister(42) is True
    assert presence.lookup(42) is None
    assert presence.unregister(42) is False


def test_stale_unregister_keeps_newer_connection(recording_handle, broken_handle):
    presence = InMemoryPresence()
    presence.register(42, broken_handle)
    presence.register(42, recording_handle)  # reconnect

    assert presence.unregister(42, handle=broken_handle) is False
    assert presence.lookup(42) is recording_handle


def test_instances_do_not_share_state(recording_handle):
    a, b = InMemoryPresence(), InMemoryPresence()
    a.register(1, recording_handle)
    assert b.lookup(1) is None


def test_null_presence_is_always_offline():
    assert NullPresence().lookup(1) is None


def test_offline_receiver_is_not_delivered():
    assert NotificationFanout(presence=InMemoryPresence()).deliver(FakeMessage()) is False


def test_failing_handle_raises_soft_error(broken_handle, monkeypatch):
    monkeypatch.setattr("messaging.delivery.MessageSerializer", lambda message: type("S", (), {"data": {}})())
    presence = InMemoryPresence()
    presence.register(42, broken_handle)

    with pytest.raises(NotificationDeliveryFailed):
        NotificationFanout(presence=presence).deliver(FakeMessage())


def test_delivered_payload_shape(recording_handle, monkeypatch):
    monkeypatch.setattr("messaging.delivery.MessageSerializer", lambda message: type("S", (), {"data": {"id": 7}})())
    presence = InMemoryPresence()
    presence.register(42, recording_handle)

    assert NotificationFanout(presence=presence).deliver(FakeMessage()) is True
    assert recording_handle.sent == [{"type": MESSAGE_EVENT, "message": {"id": 7}}]


def test_backend_is_configured_by_dotted_path(settings):
    settings.MESSAGING = {**settings.MESSAGING, "PRESENCE_BACKEND": "messaging.presence.InMemoryPresence"}
    backend = presence_mod.get_presence()

    assert isinstance(backend, InMemoryPresence)
    # built once per path, so registrations are visible to later fan-outs
    assert presence_mod.get_presence() is backend
    assert NotificationFanout().presence is backend
