import json
import uuid

import pytest

from retailhub.db import models
from retailhub.services import stripe_service


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")


def _fake_construct(event):
    def _construct(payload, signature, secret):
        assert secret == "whsec_test"
        assert signature == "t=1,v1=abc"
        return event
    return _construct


def _post_webhook(client, body=b"{}"):
    return client.post("/api/stripe/webhook", content=body, headers={"stripe-signature": "t=1,v1=abc"})


def test_config_reports_publishable_key(client, monkeypatch):
    assert client.get("/api/stripe/config").json() == {"publishableKey": None, "configured": False}

    monkeypatch.setenv("STRIPE_PUBLISHABLE_KEY", "pk_test_123")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    assert client.get("/api/stripe/config").json() == {"publishableKey": "pk_test_123", "configured": True}


def test_endpoints_validate_before_configuration(client, retailer_headers):
    r = client.post("/api/stripe/checkout", json={"items": []}, headers=retailer_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "No items provided"

    r = client.post("/api/stripe/payment-intent", json={"amount": 0}, headers=retailer_headers)
    assert r.status_code == 400

    r = client.post("/api/stripe/wasstrips-payment", json={"applicationId": str(uuid.uuid4())}, headers=retailer_headers)
    assert r.status_code == 400

    r = client.get("/api/stripe/payment-intent", headers=retailer_headers)
    assert r.status_code == 400


def test_unconfigured_stripe_returns_500(client, retailer_headers):
    r = client.post(
        "/api/stripe/checkout",
        json={"items": [{"name": "Wasstrips", "price": 12.5, "quantity": 2}]},
        headers=retailer_headers,
    )
    assert r.status_code == 500
    assert r.json()["error"] == "Stripe is not configured"

    r = client.post("/api/stripe/payment-intent", json={"amount": 25}, headers=retailer_headers)
    assert r.status_code == 500


def test_sync_product_requires_admin_and_product(client, retailer_headers, admin_headers):
    assert client.post("/api/stripe/sync-product", json={}, headers=retailer_headers).status_code == 403
    assert client.post("/api/stripe/sync-product", json={}, headers=admin_headers).status_code == 400
    r = client.post("/api/stripe/sync-product", json={"productId": str(uuid.uuid4())}, headers=admin_headers)
    assert r.status_code == 404


def test_checkout_passes_order_metadata(client, retailer_headers, monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    captured = {}

    class FakeSession:
        url = "https://checkout.stripe.test/c/cs_1"
        id = "cs_1"

    def _create(**params):
        captured.update(params)
        return FakeSession()

    monkeypatch.setattr(stripe_service.stripe.checkout.Session, "create", _create)
    r = client.post(
        "/api/stripe/checkout",
        json={"items": [{"name": "Wasstrips", "price": 12.5, "quantity": 2}], "orderId": "order-1"},
        headers=retailer_headers,
    )
    assert r.status_code == 200
    assert r.json() == {"success": True, "url": FakeSession.url, "sessionId": "cs_1"}
    assert captured["metadata"] == {"type": "order_payment", "orderId": "order-1"}
    assert captured["customer_email"] == "winkel@example.com"
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 1250
    assert captured["line_items"][0]["quantity"] == 2


def test_webhook_requires_signature_and_secret(client):
    r = client.post("/api/stripe/webhook", content=b"{}")
    assert r.status_code == 400
    assert r.json()["error"] == "Missing stripe-signature header"

    r = _post_webhook(client)
    assert r.status_code == 500


def test_webhook_rejects_bad_signature(client, webhook_secret, monkeypatch):
    def _raise(payload, signature, secret):
        raise ValueError("bad payload")

    monkeypatch.setattr(stripe_service.stripe.Webhook, "construct_event", _raise)
    r = _post_webhook(client)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid webhook signature"


def test_webhook_records_wasstrips_deposit(client, db_session, retailer_headers, webhook_secret, monkeypatch):
    application = client.post("/api/wasstrips-applications", json={}, headers=retailer_headers).json()["application"]
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_live_1",
            "metadata": {"type": "wasstrips_payment", "applicationId": application["id"], "paymentType": "deposit"},
        }},
    }
    monkeypatch.setattr(stripe_service.stripe.Webhook, "construct_event", _fake_construct(event))

    r = _post_webhook(client, json.dumps(event).encode())
    assert r.status_code == 200
    assert r.json() == {"success": True, "received": True}

    db_session.expire_all()
    stored = db_session.get(models.WasstripsApplication, uuid.UUID(application["id"]))
    assert stored.deposit_status == "paid"
    assert stored.status == "approved"
    assert stored.metadata_json["deposit_session_id"] == "cs_live_1"


def test_webhook_marks_order_paid(client, db_session, retailer_headers, webhook_secret, monkeypatch):
    order = client.post(
        "/api/orders",
        json={"items": [{"product_id": "p1", "name": "Wasstrips", "price": 10, "quantity": 3}], "totalAmount": 30},
        headers=retailer_headers,
    ).json()["order"]
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_order", "payment_intent": "pi_1", "metadata": {"type": "order_payment", "orderId": order["id"]}}},
    }
    monkeypatch.setattr(stripe_service.stripe.Webhook, "construct_event", _fake_construct(event))

    assert _post_webhook(client).status_code == 200

    db_session.expire_all()
    stored = db_session.get(models.Order, uuid.UUID(order["id"]))
    assert stored.payment_status == "paid"
    assert stored.status == "processing"
    assert stored.payment_method == "stripe"
    assert stored.stripe_session_id == "cs_order"
    assert stored.stripe_payment_intent_id == "pi_1"


def test_webhook_ignores_other_events(client, webhook_secret, monkeypatch):
    event = {"type": "invoice.paid", "data": {"object": {}}}
    monkeypatch.setattr(stripe_service.stripe.Webhook, "construct_event", _fake_construct(event))
    r = _post_webhook(client)
    assert r.status_code == 200
    assert r.json()["received"] is True


def test_wasstrips_payment_limited_to_application_owner(
    client, retailer_headers, admin_headers, profile_factory, auth_headers_for, monkeypatch
):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")

    class FakeSession:
        url = "https://checkout.stripe.test/c/cs_2"
        id = "cs_2"

    monkeypatch.setattr(stripe_service.stripe.checkout.Session, "create", lambda **params: FakeSession())
    r = client.post("/api/wasstrips-applications", json={}, headers=retailer_headers)
    assert r.status_code == 201
    body = {"applicationId": r.json()["application"]["id"], "paymentType": "deposit"}

    stranger = auth_headers_for(profile_factory("ander@example.com"))
    r = client.post("/api/stripe/wasstrips-payment", json=body, headers=stranger)
    assert r.status_code == 403
    assert r.json()["error"] == "You do not have access to this application"

    assert client.post("/api/stripe/wasstrips-payment", json=body, headers=retailer_headers).status_code == 200
    assert client.post("/api/stripe/wasstrips-payment", json=body, headers=admin_headers).status_code == 200
