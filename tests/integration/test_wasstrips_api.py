import uuid

import pytest

from retailhub.db.repositories import wasstrips as wasstrips_repo
from retailhub.services.stripe_service import StripeService

BASE = "/api/wasstrips-applications"


@pytest.fixture
def application(client, retailer_headers):
    r = client.post(BASE, json={"notes": "Graag snel"}, headers=retailer_headers)
    assert r.status_code == 201
    return r.json()["application"]


def _action(client, headers, action, application_id, **extra):
    return client.post(f"{BASE}/{action}", json={"applicationId": application_id, **extra}, headers=headers)


def _pay_deposit(db_session, application_id):
    assert StripeService(db_session).record_wasstrips_payment(application_id, "deposit", session_id="cs_test_1") is True


def test_create_application_permissions(client, retailer_headers, admin_headers, retailer_profile, profile_factory):
    other = profile_factory("ander@example.com")
    r = client.post(BASE, json={"profileId": str(other.id)}, headers=retailer_headers)
    assert r.status_code == 403

    r = client.post(BASE, json={"profileId": str(retailer_profile.id)}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["application"]["metadata"] == {"source": "admin"}

    r = client.post(BASE, json={"profileId": str(uuid.uuid4())}, headers=admin_headers)
    assert r.status_code == 404


def test_get_application_access(client, application, retailer_headers, profile_factory, auth_headers_for, admin_headers):
    r = client.get(f"{BASE}/{application['id']}", headers=retailer_headers)
    assert r.status_code == 200
    assert r.json()["application"]["notes"] == "Graag snel"

    stranger = auth_headers_for(profile_factory("ander@example.com"))
    assert client.get(f"{BASE}/{application['id']}", headers=stranger).status_code == 403
    assert client.get(f"{BASE}/{application['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"{BASE}/{uuid.uuid4()}", headers=admin_headers).status_code == 404


def test_admin_list_is_enriched(client, application, admin_headers, retailer_headers):
    assert client.get(BASE, headers=retailer_headers).status_code == 403

    r = client.get(BASE, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["total"] == 1
    row = r.json()["applications"][0]
    assert row["businessName"] == "Winkel de Vries"
    assert row["contactName"] == "Sanne de Vries"
    assert row["retailerApproved"] is True
    assert row["statusIndicator"] == "approved"
    assert row["canEdit"] is True
    assert row["_profileMissing"] is False


def test_deposit_requires_active_retailer(client, admin_headers, profile_factory, auth_headers_for):
    pending = profile_factory("nieuw@example.com", status="pending")
    r = client.post(BASE, json={}, headers=auth_headers_for(pending))
    application_id = r.json()["application"]["id"]

    r = _action(client, admin_headers, "send-deposit-payment", application_id)
    assert r.status_code == 400
    assert r.json()["error"] == "Retailer must be approved before requesting the deposit"


def test_full_shipping_flow(client, db_session, application, admin_headers):
    app_id = application["id"]

    r = _action(client, admin_headers, "send-deposit-payment", app_id)
    assert r.status_code == 200
    assert r.json()["paymentLink"].startswith(f"deposit-{app_id}-")
    assert r.json()["application"]["deposit_status"] == "sent"
    assert r.json()["emailSent"] is True

    # Shipping needs an approved application, which the paid deposit produces
    assert _action(client, admin_headers, "mark-shipped", app_id).status_code == 400
    assert _action(client, admin_headers, "mark-delivered", app_id).status_code == 400

    _pay_deposit(db_session, app_id)
    r = client.get(f"{BASE}/{app_id}", headers=admin_headers)
    current = r.json()["application"]
    assert current["status"] == "approved"
    assert current["deposit_status"] == "paid"
    assert current["deposit_paid_at"] is not None
    assert current["metadata"]["deposit_session_id"] == "cs_test_1"

    r = _action(client, admin_headers, "send-deposit-payment", app_id)
    assert r.status_code == 400
    assert r.json()["error"] == "Deposit has already been paid"

    r = _action(client, admin_headers, "mark-shipped", app_id, trackingCode="3SABCD1234567")
    assert r.status_code == 200
    assert r.json()["application"]["status"] == "shipped"
    assert r.json()["application"]["tracking_code"] == "3SABCD1234567"
    assert _action(client, admin_headers, "mark-shipped", app_id).status_code == 400

    # Remaining payment waits for delivery
    assert _action(client, admin_headers, "send-remaining-payment", app_id).status_code == 400

    r = _action(client, admin_headers, "mark-delivered", app_id)
    assert r.status_code == 200
    assert r.json()["application"]["status"] == "delivered"
    assert _action(client, admin_headers, "mark-delivered", app_id).status_code == 400

    r = _action(client, admin_headers, "send-remaining-payment", app_id)
    assert r.status_code == 200
    assert r.json()["paymentLink"].startswith(f"remaining-{app_id}-")
    assert r.json()["application"]["remaining_payment_status"] == "sent"

    r = client.put(
        BASE,
        json={"orderNumber": application["order_number"], "paymentStatus": "paid", "sessionId": "cs_test_2"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["application"]["remaining_payment_status"] == "paid"
    assert r.json()["application"]["metadata"]["stripe_session_id"] == "cs_test_2"

    r = _action(client, admin_headers, "send-remaining-payment", app_id)
    assert r.status_code == 400
    assert r.json()["error"] == "Remaining payment has already been paid"


def test_order_ready_and_payment_method(client, db_session, application, admin_headers, retailer_headers):
    app_id = application["id"]

    assert _action(client, admin_headers, "send-order-ready", app_id).status_code == 400
    r = _action(client, retailer_headers, "select-payment-method", app_id, paymentMethod="invoice")
    assert r.status_code == 400
    assert r.json()["error"] == "Payment options have not been sent yet"

    _pay_deposit(db_session, app_id)
    r = _action(client, admin_headers, "send-order-ready", app_id)
    assert r.status_code == 200
    assert r.json()["application"]["status"] == "order_ready"
    assert r.json()["application"]["payment_options_sent"] is True
    assert _action(client, admin_headers, "send-order-ready", app_id).status_code == 400

    r = _action(client, retailer_headers, "select-payment-method", app_id, paymentMethod="crypto")
    assert r.status_code == 400

    r = _action(client, retailer_headers, "select-payment-method", app_id, paymentMethod="invoice")
    assert r.status_code == 200
    assert r.json()["application"]["status"] == "payment_selected"
    assert r.json()["application"]["payment_method_selected"] == "invoice"


def test_select_payment_method_forbidden_for_other_retailer(
    client, db_session, application, admin_headers, profile_factory, auth_headers_for
):
    _pay_deposit(db_session, application["id"])
    _action(client, admin_headers, "send-order-ready", application["id"])
    stranger = auth_headers_for(profile_factory("ander@example.com"))
    r = _action(client, stranger, "select-payment-method", application["id"], paymentMethod="direct")
    assert r.status_code == 403


def test_actions_validate_application_id(client, admin_headers):
    r = client.post(f"{BASE}/mark-delivered", json={}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Application ID is required"
    r = _action(client, admin_headers, "mark-delivered", str(uuid.uuid4()))
    assert r.status_code == 404
    r = client.put(BASE, json={"orderNumber": "WS-19700101-AAAAAA"}, headers=admin_headers)
    assert r.status_code == 404


def test_invoice_requires_valid_type_and_stripe(client, application, admin_headers):
    r = _action(client, admin_headers, "invoice", application["id"], paymentType="bogus")
    assert r.status_code == 400
    r = _action(client, admin_headers, "invoice", application["id"], paymentType="deposit")
    assert r.status_code == 500
    assert r.json()["error"] == "Stripe is not configured"


def test_record_payment_for_unknown_application(db_session):
    service = StripeService(db_session)
    assert service.record_wasstrips_payment("not-a-uuid", "deposit") is False
    assert service.record_wasstrips_payment(str(uuid.uuid4()), "deposit") is False


def test_applications_get_independent_product_details(db_session, retailer_profile, profile_factory):
    details = wasstrips_repo.starter_package()
    details["items"][0]["quantity"] = 5
    details["package_contents"].append("Extra display")
    assert wasstrips_repo.starter_package()["items"][0]["quantity"] == 1
    assert "Extra display" not in wasstrips_repo.starter_package()["package_contents"]

    first = wasstrips_repo.create_application(db_session, profile_id=retailer_profile.id)
    first.product_details["items"][0]["quantity"] = 3
    other = profile_factory("tweede@example.com")
    second = wasstrips_repo.create_application(db_session, profile_id=other.id)
    assert second.product_details["items"][0]["quantity"] == 1
    assert len(second.product_details["package_contents"]) == 4
