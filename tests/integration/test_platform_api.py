from unittest.mock import MagicMock, patch

from retailhub.api import main as main_module
from retailhub.services import postcode_service


def test_root_health(client):
    assert client.get("/health").json() == {"status": "ok", "service": "retailhub-service"}


def test_api_health_reports_database(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["devMode"] is False


def test_api_health_degraded_without_database(client):
    with patch.object(main_module, "_database_ok", return_value=False):
        r = client.get("/api/health")
    assert r.status_code == 503
    assert r.json()["status"] == "degraded"
    assert r.json()["database"] == "unavailable"


def test_postcode_lookup_validates_before_credentials(client):
    r = client.get("/api/postcode", params={"postcode": "0123AB", "houseNumber": "1"})
    assert r.status_code == 400
    assert r.json()["exceptionId"] == postcode_service.INVALID_POSTCODE

    r = client.get("/api/postcode", params={"postcode": "2012 ES"})
    assert r.status_code == 400
    assert r.json()["exceptionId"] == "MissingParameters"

    r = client.get("/api/postcode", params={"postcode": "2012 ES", "houseNumber": "30"})
    assert r.status_code == 500
    assert r.json()["exceptionId"] == "ConfigurationError"


def test_postcode_lookup_proxies_address(client, monkeypatch):
    monkeypatch.setenv("POSTCODE_API_KEY", "key")
    monkeypatch.setenv("POSTCODE_API_SECRET", "secret")
    response = MagicMock(ok=True, status_code=200)
    response.json.return_value = {"street": "Julianastraat", "city": "Haarlem", "postcode": "2012ES"}

    with patch.object(postcode_service.requests, "get", return_value=response) as get:
        r = client.get("/api/postcode", params={"postcode": "2012 ES", "houseNumber": "30"})

    assert r.status_code == 200
    assert r.json()["street"] == "Julianastraat"
    assert get.call_args.args[0].endswith("/2012es/30/")
    assert get.call_args.kwargs["auth"] == ("key", "secret")


def test_postcode_post_not_allowed(client):
    r = client.post("/api/postcode")
    assert r.status_code == 405
    assert r.json() == {"error": "Method not allowed"}


def test_audit_log_lists_admin_actions(client, admin_headers, retailer_headers):
    client.post("/api/products", json={"name": "Wasstrips", "price": 10}, headers=admin_headers)
    client.post("/api/settings", json={"key": "business_name", "value": "RetailHub"}, headers=admin_headers)

    assert client.get("/api/audits", headers=retailer_headers).status_code == 403

    r = client.get("/api/audits", headers=admin_headers)
    assert r.status_code == 200
    actions = {entry["action_type"] for entry in r.json()}
    assert {"product_create", "setting_update"} <= actions

    r = client.get("/api/audits", params={"target_type": "product"}, headers=admin_headers)
    entries = r.json()
    assert [e["action_type"] for e in entries] == ["product_create"]
    assert entries[0]["status"] == "success"
    assert entries[0]["metadata"] == {"name": "Wasstrips"}


def test_audit_log_filters_by_target_id(client, admin_headers):
    first = client.post("/api/products", json={"name": "Wasstrips", "price": 10}, headers=admin_headers).json()["product"]
    client.post("/api/products", json={"name": "Proefpakket", "price": 0}, headers=admin_headers)

    r = client.get("/api/audits", params={"target_id": first["id"]}, headers=admin_headers)
    entries = r.json()
    assert len(entries) == 1
    assert entries[0]["metadata"] == {"name": "Wasstrips"}

    r = client.get("/api/audits", params={"since": "2999-01-01T00:00:00Z"}, headers=admin_headers)
    assert r.json() == []
