from retailhub.db import models


def test_email_routes_are_admin_only(client, retailer_headers):
    assert client.get("/api/email/config", headers=retailer_headers).status_code == 403
    assert client.post("/api/email/send", json={}, headers=retailer_headers).status_code == 403
    assert client.get("/api/email/templates").status_code == 401


def test_send_validates_input(client, admin_headers):
    r = client.post("/api/email/send", json={"to": "a@b.nl"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Missing required fields: to, subject"

    r = client.post("/api/email/send", json={"to": "a@b.nl", "subject": "Hoi"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Either text or html content is required"


def test_send_in_development_mode_is_logged(client, db_session, admin_headers):
    r = client.post(
        "/api/email/send",
        json={"to": "klant@example.nl", "subject": "Hoi", "text": "Tot <snel>", "from": "info@retailhub.test"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["development"] is True
    assert body["messageId"].startswith("dev-")

    log = db_session.query(models.EmailLog).filter_by(recipient="klant@example.nl").one()
    assert log.subject == "Hoi"
    assert log.status == "sent"


def test_config_and_templates(client, admin_headers):
    body = client.get("/api/email/config", headers=admin_headers).json()
    assert body["developmentMode"] is True
    assert body["config"]["apiKey"] is None

    templates = client.get("/api/email/templates", headers=admin_headers).json()["templates"]
    assert "retailer-approved" in templates
    assert "_layout" not in templates

    diagnostics = client.get("/api/email/diagnostics", headers=admin_headers).json()
    assert diagnostics["connectivity"] is None
    assert diagnostics["templates"] == templates


def test_config_test_and_template_preview(client, db_session, admin_headers):
    assert client.post("/api/email/config/test", json={}, headers=admin_headers).status_code == 400
    r = client.post("/api/email/config/test", json={"to": "ops@retailhub.test"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Test email sent to ops@retailhub.test"

    r = client.post("/api/email/test-template", json={"to": "ops@retailhub.test"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post("/api/email/test-template", json={"template": "bestaat-niet", "to": "ops@retailhub.test"}, headers=admin_headers)
    assert r.status_code == 404

    r = client.post(
        "/api/email/test-template",
        json={"template": "retailer-approved", "to": "ops@retailhub.test", "context": {"contactName": "Anna"}},
        headers=admin_headers,
    )
    assert r.status_code == 200

    templates = [log.template for log in db_session.query(models.EmailLog).filter_by(recipient="ops@retailhub.test")]
    assert sorted(templates) == ["retailer-approved", "test-email"]
