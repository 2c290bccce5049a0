import pytest

from messaging import binder
from messaging.models import Message


def _bind_body(booking, **overrides):
    body = {
        "booking_id": booking.id,
        "tenant_id": booking.tenant_id,
        "owner_id": booking.owner_id,
        "property_id": booking.property_id,
    }
    body.update(overrides)
    return body


@pytest.mark.django_db
class TestConversationApi:
    url = "/api/messaging/conversations/booking/"

    def test_bind_is_idempotent(self, booking_factory, tenant, owner, api_client_for):
        booking = booking_factory()

        first = api_client_for(tenant).post(self.url, _bind_body(booking), format="json")
        second = api_client_for(owner).post(self.url, _bind_body(booking), format="json")

        assert first.status_code == 201
        assert first.json()["created"] is True
        assert second.status_code == 201
        assert second.json() == {"conversation_id": first.json()["conversation_id"], "created": False}

    def test_bind_missing_fields_is_400(self, booking_factory, tenant, api_client_for):
        booking = booking_factory()
        resp = api_client_for(tenant).post(self.url, {"booking_id": booking.id}, format="json")

        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert "owner_id" in resp.json()["detail"]

    def test_bind_mismatched_participants_is_400(self, booking_factory, tenant, other_tenant, api_client_for):
        booking = booking_factory()
        resp = api_client_for(tenant).post(
            self.url, _bind_body(booking, tenant_id=other_tenant.id), format="json"
        )
        assert resp.status_code == 400

    def test_bind_by_outsider_is_403(self, booking_factory, other_tenant, api_client_for):
        booking = booking_factory()
        resp = api_client_for(other_tenant).post(self.url, _bind_body(booking), format="json")
        assert resp.status_code == 403

    def test_bind_unknown_booking_is_404(self, booking_factory, tenant, api_client_for):
        booking = booking_factory()
        resp = api_client_for(tenant).post(self.url, _bind_body(booking, booking_id=999999), format="json")
        assert resp.status_code == 404
        assert resp.json()["code"] == "booking_not_found"

    def test_messages_visible_to_participants_only(self, booking_factory, tenant, other_tenant, api_client_for):
        booking = booking_factory()
        conversation, _ = binder.find_or_create_for_booking(
            booking.id, booking.tenant_id, booking.owner_id, booking.property_id
        )
        url = f"/api/messaging/conversations/{conversation.id}/messages/"

        resp = api_client_for(tenant).get(url)
        assert resp.status_code == 200
        assert [m["body"] for m in resp.json()] == [binder.CONVERSATION_STARTED_BODY]

        assert api_client_for(other_tenant).get(url).status_code == 403
        assert api_client_for(tenant).get(f"/api/messaging/conversations/{conversation.id}/").status_code == 200

    def test_unknown_conversation_is_404(self, tenant, api_client_for):
        resp = api_client_for(tenant).get("/api/messaging/conversations/999999/messages/")
        assert resp.status_code == 404
        assert resp.json()["code"] == "conversation_not_found"


@pytest.mark.django_db
class TestSystemMessageApi:
    url = "/api/messaging/conversations/system/"

    def test_admin_posts_system_message(self, booking_factory, owner, admin_user, api_client_for):
        booking = booking_factory()
        conversation, _ = binder.find_or_create_for_booking(
            booking.id, booking.tenant_id, booking.owner_id, booking.property_id
        )

        resp = api_client_for(admin_user).post(
            self.url, {"conversation_id": conversation.id, "body": "Visit at 10:00"}, format="json"
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["is_system_generated"] is True
        assert data["sender_id"] is None
        assert data["receiver_id"] == owner.id
        assert data["is_read"] is False

    def test_participants_cannot_forge_system_messages(self, booking_factory, owner, tenant, api_client_for):
        booking = booking_factory()
        conversation, _ = binder.find_or_create_for_booking(
            booking.id, booking.tenant_id, booking.owner_id, booking.property_id
        )

        for user in (owner, tenant):
            resp = api_client_for(user).post(
                self.url, {"conversation_id": conversation.id, "body": "Booking confirmed"}, format="json"
            )
            assert resp.status_code == 403
        assert conversation.messages.count() == 1

    def test_unknown_conversation_is_404(self, admin_user, api_client_for):
        resp = api_client_for(admin_user).post(self.url, {"conversation_id": 999999, "body": "x"}, format="json")
        assert resp.status_code == 404

    def test_missing_body_is_400(self, admin_user, api_client_for):
        resp = api_client_for(admin_user).post(self.url, {"conversation_id": 1}, format="json")
        assert resp.status_code == 400


@pytest.mark.django_db
class TestSendMessageApi:
    def _conversation(self, booking):
        conversation, _ = binder.find_or_create_for_booking(
            booking.id, booking.tenant_id, booking.owner_id, booking.property_id
        )
        return conversation

    def test_tenant_writes_to_owner(self, booking_factory, tenant, owner, api_client_for):
        conversation = self._conversation(booking_factory())

        resp = api_client_for(tenant).post(
            f"/api/messaging/conversations/{conversation.id}/messages/",
            {"body": "  Is the parking included?  "},
            format="json",
        )

        assert resp.status_code == 201, resp.content
        data = resp.json()
        assert data["sender_id"] == tenant.id
        assert data["receiver_id"] == owner.id
        assert data["body"] == "Is the parking included?"
        assert data["is_system_generated"] is False
        assert "warnings" not in data

    def test_owner_reply_goes_to_tenant(self, booking_factory, tenant, owner, api_client_for):
        conversation = self._conversation(booking_factory())
        url = f"/api/messaging/conversations/{conversation.id}/messages/"

        resp = api_client_for(owner).post(url, {"body": "Yes, one spot."}, format="json")
        assert resp.json()["receiver_id"] == tenant.id

        thread = api_client_for(tenant).get(url).json()
        assert [m["body"] for m in thread][-1] == "Yes, one spot."
        assert api_client_for(tenant).get("/api/messaging/messages/unread/").json() == {"unread_count": 1}

    def test_outsider_is_403(self, booking_factory, other_tenant, api_client_for):
        conversation = self._conversation(booking_factory())
        resp = api_client_for(other_tenant).post(
            f"/api/messaging/conversations/{conversation.id}/messages/", {"body": "hi"}, format="json"
        )
        assert resp.status_code == 403
        assert conversation.messages.count() == 1

    def test_admin_can_read_but_not_write(self, booking_factory, admin_user, api_client_for):
        conversation = self._conversation(booking_factory())
        url = f"/api/messaging/conversations/{conversation.id}/messages/"
        client = api_client_for(admin_user)

        assert client.get(url).status_code == 200
        assert client.post(url, {"body": "hi"}, format="json").status_code == 403

    @pytest.mark.parametrize("payload", [{}, {"body": ""}, {"body": "   "}])
    def test_blank_body_is_400(self, booking_factory, tenant, api_client_for, payload):
        conversation = self._conversation(booking_factory())
        resp = api_client_for(tenant).post(
            f"/api/messaging/conversations/{conversation.id}/messages/", payload, format="json"
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert conversation.messages.count() == 1


@pytest.mark.django_db
class TestMessageReadApi:
    def _opening(self, booking):
        conversation, _ = binder.find_or_create_for_booking(
            booking.id, booking.tenant_id, booking.owner_id, booking.property_id
        )
        return conversation.messages.get()

    def test_receiver_marks_read_once(self, booking_factory, owner, api_client_for):
        msg = self._opening(booking_factory())
        client = api_client_for(owner)

        assert client.get("/api/messaging/messages/unread/").json() == {"unread_count": 1}

        resp = client.post(f"/api/messaging/messages/{msg.id}/read/")
        assert resp.status_code == 200
        assert resp.json()["is_read"] is True
        read_at = resp.json()["read_at"]
        assert read_at is not None

        again = client.post(f"/api/messaging/messages/{msg.id}/read/")
        assert again.json()["read_at"] == read_at
        assert client.get("/api/messaging/messages/unread/").json() == {"unread_count": 0}

    def test_only_receiver_can_mark_read(self, booking_factory, tenant, api_client_for):
        msg = self._opening(booking_factory())
        resp = api_client_for(tenant).post(f"/api/messaging/messages/{msg.id}/read/")

        assert resp.status_code == 403
        assert Message.objects.get(pk=msg.pk).is_read is False

    def test_unknown_message_is_404(self, owner, api_client_for):
        assert api_client_for(owner).post("/api/messaging/messages/999999/read/").status_code == 404
