import hashlib
import hmac
import json

import pytest

from retailhub.db import models

SHIPMENT = {
    "shippingProvider": "PostNL",
    "trackingNumber": "3SABCD1234567",
    "recipientName": "Anna Knip",
    "recipientEmail": "anna@knip.nl",
    "shippingAddress": "Oudegracht 10",
    "shippingCity": "Utrecht",
    "shippingPostalCode": "3511AB",
}


@pytest.fixture
def shipment(client, admin_headers):
    r = client.post("/api/fulfillment/orders", json=SHIPMENT, headers=admin_headers)
    assert r.status_code == 201
    return r.json()["order"]


def _webhook(client, provider, payload, signature="sig", header=None):
    body = json.dumps(payload).encode() if not isinstance(payload, bytes) else payload
    headers = {}
    if signature is not None:
        headers[header or f"x-{provider}-signature"] = signature
    return client.post(f"/api/fulfillment/webhook/{provider}", content=body, headers=headers)


def test_create_and_list_orders(client, admin_headers, retailer_headers, shipment):
    assert shipment["shipping_provider"] == "postnl"
    assert shipment["status"] == "shipped"
    assert shipment["shipped_at"] is not None
    assert shipment["package_type"] == "proefpakket"

    r = client.post("/api/fulfillment/orders", json={"recipientName": "X", "shippingProvider": "ups"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post("/api/fulfillment/orders", json=SHIPMENT, headers=admin_headers)
    assert r.json()["error"] == "Tracking number already in use"
    r = client.post("/api/fulfillment/orders", json={"shippingProvider": "dhl", "recipientName": "Bert"}, headers=admin_headers)
    assert r.json()["order"]["status"] == "pending"

    assert client.get("/api/fulfillment/orders", headers=retailer_headers).status_code == 403
    assert client.get("/api/fulfillment/orders", headers=admin_headers).json()["total"] == 2
    assert client.get("/api/fulfillment/orders", params={"status": "pending"}, headers=admin_headers).json()["total"] == 1


def test_webhook_provider_and_signature_checks(client):
    assert _webhook(client, "ups", {}).status_code == 404

    r = _webhook(client, "dhl", {"trackingNumber": "X", "status": "transit"}, signature=None)
    assert r.status_code == 401
    assert r.json()["error"] == "Missing signature"

    r = _webhook(client, "dhl", b"{not json")
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid JSON body"

    r = _webhook(client, "dhl", {"status": "transit"})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing required fields"

    r = _webhook(client, "dhl", {"trackingNumber": "ONBEKEND", "status": "transit"})
    assert r.status_code == 404
    assert r.json()["error"] == "Order not found for tracking number: ONBEKEND"


def test_webhook_hmac_checked_when_secret_set(client, shipment, monkeypatch):
    monkeypatch.setenv("POSTNL_WEBHOOK_SECRET", "geheim")
    payload = {"barcode": shipment["tracking_number"], "status": "7S"}
    body = json.dumps(payload).encode()

    assert _webhook(client, "postnl", body, signature="deadbeef").status_code == 401

    signature = hmac.new(b"geheim", body, hashlib.sha256).hexdigest()
    r = _webhook(client, "postnl", body, signature=signature.upper())
    assert r.status_code == 200
    assert r.json()["tracking_number"] == shipment["tracking_number"]


def test_postnl_delivery_updates_order_and_notifies(client, db_session, admin_headers, shipment):
    payload = {
        "barcode": shipment["tracking_number"],
        "status": "11S",
        "description": "Bezorgd bij de buren",
        "timeStamp": "2026-03-02T14:30:00Z",
        "location": {"city": "Utrecht"},
        "reference": "ref-1",
    }
    r = _webhook(client, "postnl", payload)
    assert r.status_code == 200
    assert r.json()["message"] == "Webhook processed successfully"

    r = client.get(
        "/api/fulfillment/tracking",
        params={"action": "history", "tracking_number": shipment["tracking_number"]},
        headers=admin_headers,
    )
    body = r.json()
    assert body["order"]["status"] == "delivered"
    assert body["order"]["delivered_at"].startswith("2026-03-02T14:30:00")
    assert len(body["events"]) == 1
    event = body["events"][0]
    assert event["event_type"] == "delivered"
    assert event["location"] == "Utrecht"
    assert event["provider_reference"] == "ref-1"

    logs = db_session.query(models.EmailLog).filter_by(recipient="anna@knip.nl").all()
    assert [log.template for log in logs] == ["sample-package-delivered"]

    # A repeated delivery event does not send a second email
    _webhook(client, "postnl", payload)
    db_session.expire_all()
    assert db_session.query(models.EmailLog).filter_by(recipient="anna@knip.nl").count() == 1


def test_dhl_webhook_maps_status(client, admin_headers, shipment):
    payload = {
        "trackingNumber": shipment["tracking_number"],
        "status": "transit",
        "statusDescription": "Onderweg",
        "location": {"address": {"addressLocality": "Amsterdam"}},
    }
    assert _webhook(client, "dhl", payload).status_code == 200
    r = client.get("/api/fulfillment/tracking", params={"action": "history", "order_id": shipment["id"]}, headers=admin_headers)
    assert r.json()["order"]["status"] == "in_transit"
    assert r.json()["events"][0]["event_description"] == "Onderweg"
    assert r.json()["events"][0]["location"] == "Amsterdam"


def test_webhook_liveness(client):
    r = client.get("/api/fulfillment/webhook/dhl")
    assert r.status_code == 200
    assert r.json()["message"] == "DHL webhook endpoint is active"
    assert client.get("/api/fulfillment/webhook/ups").status_code == 404


def test_manual_events_and_metrics(client, admin_headers, shipment):
    r = client.post(
        "/api/fulfillment/tracking",
        json={"action": "record_event", "orderId": shipment["id"], "eventType": "delivered", "eventDescription": "Handmatig"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["event"]["event_type"] == "delivered"

    r = client.post(
        "/api/fulfillment/tracking",
        json={"action": "record_event", "orderId": shipment["id"], "eventType": "teleported", "eventDescription": "?"},
        headers=admin_headers,
    )
    assert r.status_code == 400
    r = client.post("/api/fulfillment/tracking", json={"action": "erase"}, headers=admin_headers)
    assert r.status_code == 400

    metrics = client.get("/api/fulfillment/tracking", params={"action": "delivery_metrics"}, headers=admin_headers).json()["data"]
    assert metrics["total_orders"] == 1
    assert metrics["delivered"] == 1
    assert metrics["delivery_rate"] == 100.0
    assert metrics["average_delivery_hours"] is not None


def test_tracking_query_validation(client, admin_headers):
    assert client.get("/api/fulfillment/tracking", headers=admin_headers).status_code == 400
    r = client.get("/api/fulfillment/tracking", params={"action": "history"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Either order_id or tracking_number is required"
    r = client.get("/api/fulfillment/tracking", params={"action": "history", "tracking_number": "X"}, headers=admin_headers)
    assert r.status_code == 404


def test_dhl_webhook_accepts_string_address(client, admin_headers, shipment):
    payload = {
        "trackingNumber": shipment["tracking_number"],
        "status": "transit",
        "location": {"address": "Sorteercentrum Nieuwegein"},
    }
    assert _webhook(client, "dhl", payload).status_code == 200
    r = client.get("/api/fulfillment/tracking", params={"action": "history", "order_id": shipment["id"]}, headers=admin_headers)
    assert r.json()["events"][0]["location"] == "Sorteercentrum Nieuwegein"
