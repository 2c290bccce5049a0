import pytest

from properties.models import Property


@pytest.mark.django_db
class TestPropertyApi:
    def test_owner_creates_pending_listing(self, owner, api_client_for):
        client = api_client_for(owner)
        payload = {
            "title": "Studio downtown",
            "city": "Tunis",
            "monthly_price": "650.00",
            "property_type": "studio",
            # moderation fields are ignored on input
            "approval_state": "approved",
        }
        resp = client.post("/api/properties/", payload, format="json")

        assert resp.status_code == 201, resp.content
        data = resp.json()
        assert data["approval_state"] == "pending"
        assert data["owner_id"] == owner.id
        assert Property.objects.get(pk=data["id"]).approval_state == Property.ApprovalState.PENDING

    def test_tenant_cannot_create_listing(self, tenant, api_client_for):
        resp = api_client_for(tenant).post(
            "/api/properties/",
            {"title": "x", "city": "Tunis", "monthly_price": "100.00"},
            format="json",
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"

    def test_price_must_be_positive(self, owner, api_client_for):
        resp = api_client_for(owner).post(
            "/api/properties/",
            {"title": "x", "city": "Tunis", "monthly_price": "0"},
            format="json",
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert "monthly_price" in body["errors"]

    def test_retrieve_limited_to_owner_and_admin(self, pending_property, owner, tenant, admin_user, api_client_for):
        url = f"/api/properties/{pending_property.id}/"
        assert api_client_for(owner).get(url).status_code == 200
        assert api_client_for(admin_user).get(url).status_code == 200
        assert api_client_for(tenant).get(url).status_code == 403

    def test_admin_approves_then_second_approve_is_400(self, pending_property, admin_user, api_client_for):
        client = api_client_for(admin_user)
        url = f"/api/properties/{pending_property.id}/approve/"

        first = client.post(url)
        assert first.status_code == 200, first.content
        assert first.json()["approval_state"] == "approved"
        assert first.json()["approved_by_id"] == admin_user.id

        second = client.post(url)
        assert second.status_code == 400
        assert second.json() == {"code": "already_in_state", "detail": "Property already approved."}

    def test_reject_without_reason_is_400_and_state_unchanged(self, pending_property, admin_user, api_client_for):
        resp = api_client_for(admin_user).post(
            f"/api/properties/{pending_property.id}/reject/", {}, format="json"
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

        pending_property.refresh_from_db()
        assert pending_property.approval_state == Property.ApprovalState.PENDING

    def test_reject_with_reason(self, pending_property, admin_user, api_client_for):
        resp = api_client_for(admin_user).post(
            f"/api/properties/{pending_property.id}/reject/",
            {"reason": "Address could not be verified"},
            format="json",
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["approval_state"] == "rejected"
        assert data["rejection_reason"] == "Address could not be verified"
        assert data["is_active"] is False

    def test_owner_cannot_approve_own_listing(self, pending_property, owner, api_client_for):
        resp = api_client_for(owner).post(f"/api/properties/{pending_property.id}/approve/")
        assert resp.status_code == 403
        pending_property.refresh_from_db()
        assert pending_property.approval_state == Property.ApprovalState.PENDING

    def test_approve_unknown_property_is_404(self, admin_user, api_client_for):
        resp = api_client_for(admin_user).post("/api/properties/999999/approve/")
        assert resp.status_code == 404
        assert resp.json()["code"] == "property_not_found"

    def test_owner_cannot_reactivate_rejected_listing(self, pending_property, owner, admin_user, api_client_for):
        api_client_for(admin_user).post(
            f"/api/properties/{pending_property.id}/reject/", {"reason": "Fake photos"}, format="json"
        )

        resp = api_client_for(owner).patch(
            f"/api/properties/{pending_property.id}/", {"is_active": True}, format="json"
        )
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        pending_property.refresh_from_db()
        assert pending_property.is_active is False

    def test_owner_update_cannot_touch_moderation(self, pending_property, owner, api_client_for):
        resp = api_client_for(owner).patch(
            f"/api/properties/{pending_property.id}/",
            {"title": "Renamed", "approval_state": "approved", "rejection_reason": "x"},
            format="json",
        )
        assert resp.status_code == 200
        pending_property.refresh_from_db()
        assert pending_property.title == "Renamed"
        assert pending_property.approval_state == Property.ApprovalState.PENDING
        assert pending_property.rejection_reason is None

    def test_approval_stats_endpoint(self, pending_property, admin_user, owner, api_client_for):
        resp = api_client_for(admin_user).get("/api/properties/approval-stats/")
        assert resp.status_code == 200
        assert resp.json() == {"pending": 1, "approved": 0, "rejected": 0, "total": 1}

        assert api_client_for(owner).get("/api/properties/approval-stats/").status_code == 403

    def test_anonymous_is_rejected(self, client):
        resp = client.post("/api/properties/", {"title": "x"})
        assert resp.status_code == 401
