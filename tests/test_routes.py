from datetime import datetime, timedelta

from models import Notification


def test_health_is_public(app):
    response = app.test_client().get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_api_requires_login(app):
    response = app.test_client().get("/api/dashboard/overview")
    assert response.status_code == 401
    assert response.get_json() == {"error": "Authentication required"}


def test_cron_rejects_missing_or_wrong_secret(app):
    client = app.test_client()
    assert client.post("/cron/notifications").status_code == 401
    wrong = client.post("/cron/notifications", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401


def test_cron_without_configured_secret_is_server_error(app):
    app.config["CRON_SECRET"] = ""
    response = app.test_client().post("/cron/notifications", headers={"Authorization": "Bearer anything"})
    assert response.status_code == 500


def test_cron_runs_the_sweep(app, make, user):
    prop = make.property(user)
    make.certificate(prop, datetime.utcnow() + timedelta(days=20))

    response = app.test_client().post("/cron/notifications", headers={"Authorization": "Bearer test-cron-secret"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["details"]["certificates"]["notifications_created"] == 1
    assert Notification.query.filter_by(user_id=user.id).count() == 1


def test_overview_for_signed_in_user(client):
    response = client.get("/api/dashboard/overview")
    assert response.status_code == 200
    assert response.get_json()["overview"]["score"] == 100


def test_deadlines_reject_out_of_range_days(client):
    response = client.get("/api/dashboard/deadlines?days=400")
    assert response.status_code == 400
    assert "days" in response.get_json()["error"]


def test_security_headers_are_applied(client):
    response = client.get("/api/notifications/unread-count")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_notification_create_and_read_flow(client):
    created = client.post(
        "/api/notifications",
        json={"type": "system", "title": "Welcome", "message": "Your portfolio is ready", "metadata": {"source": "test"}},
    )
    assert created.status_code == 201
    notification = created.get_json()["notification"]
    assert notification["metadata"] == {"source": "test"}
    assert created.get_json()["email"]["attempted"] is False

    assert client.get("/api/notifications/unread-count").get_json() == {"count": 1}
    assert client.post(f"/api/notifications/{notification['id']}/read").status_code == 200
    assert client.get("/api/notifications/unread-count").get_json() == {"count": 0}
    assert client.delete("/api/notifications/read").get_json() == {"deleted": 1}


def test_notification_create_validates_type(client):
    response = client.post("/api/notifications", json={"type": "gossip", "title": "x", "message": "y"})
    assert response.status_code == 400


def test_unknown_notification_is_404(client):
    response = client.post("/api/notifications/does-not-exist/read")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Notification not found"}


def test_preferences_patch(client):
    response = client.patch("/api/notifications/preferences", json={"certificate_expiry_enabled": False})
    assert response.status_code == 200
    assert response.get_json()["certificate_expiry_enabled"] is False


def test_aml_screening_flow(client):
    created = client.post("/api/aml/screenings", json={"subject_type": "INDIVIDUAL", "subject_name": "Jane Doe"})
    assert created.status_code == 201
    screening_id = created.get_json()["id"]

    screened = client.post(f"/api/aml/screenings/{screening_id}/screen")
    assert screened.status_code == 200
    assert screened.get_json()["status"] == "COMPLETED"

    again = client.post(f"/api/aml/screenings/{screening_id}/screen")
    assert again.status_code == 409

    edd = client.post(f"/api/aml/screenings/{screening_id}/edd", json={"edd_notes": "Verified with passport copy"})
    assert edd.status_code == 409
    assert edd.get_json() == {"error": "EDD not required for this screening"}


def test_aml_short_edd_notes_rejected(client):
    created = client.post("/api/aml/screenings", json={"subject_type": "COMPANY", "subject_name": "Acme Ltd"})
    response = client.post(f"/api/aml/screenings/{created.get_json()['id']}/edd", json={"edd_notes": "short"})
    assert response.status_code == 400


def test_annual_review_requires_iso_date(client):
    created = client.post("/api/aml/screenings", json={"subject_type": "COMPANY", "subject_name": "Acme Ltd"})
    screening_id = created.get_json()["id"]
    bad = client.post(f"/api/aml/screenings/{screening_id}/annual-review", json={"review_date": "next year"})
    assert bad.status_code == 400
    ok = client.post(f"/api/aml/screenings/{screening_id}/annual-review", json={"review_date": "2026-01-15T00:00:00"})
    assert ok.status_code == 200
    assert ok.get_json()["next_review_date"] == "2026-01-15T00:00:00"


def test_assessment_flow(client, make, user):
    prop = make.property(user)
    created = client.post("/api/assessments", json={"property_id": prop.id})
    assert created.status_code == 201
    body = created.get_json()
    assert len(body["items"]) == 21

    item_id = body["items"][0]["id"]
    updated = client.patch(f"/api/assessments/items/{item_id}", json={"status": "compliant"})
    assert updated.status_code == 200
    assert updated.get_json()["assessment"]["score"] == 5

    score = client.get(f"/api/assessments/{body['id']}/score").get_json()
    assert score["compliant_items"] == 1

    added = client.post(
        f"/api/assessments/{body['id']}/items", json={"category": "HEATING", "description": "Thermostat faulty"}
    )
    assert added.status_code == 201


def test_assessment_for_foreign_property_is_404(client, make):
    stranger_property = make.property(make.user())
    response = client.post("/api/assessments", json={"property_id": stranger_property.id})
    assert response.status_code == 404


def test_screening_provider_failure_returns_failed_status(client, monkeypatch):
    from utils import aml_service
    from utils.errors import ExternalServiceFailure

    class DownProvider:
        def screen(self, subject):
            raise ExternalServiceFailure("Screening provider unavailable")

    monkeypatch.setattr(aml_service, "get_screening_provider", lambda: DownProvider())
    created = client.post("/api/aml/screenings", json={"subject_type": "INDIVIDUAL", "subject_name": "Jane Doe"})

    response = client.post(f"/api/aml/screenings/{created.get_json()['id']}/screen")

    assert response.status_code == 200
    assert response.get_json()["status"] == "FAILED"
