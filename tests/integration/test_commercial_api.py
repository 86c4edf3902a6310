import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from retailhub.db import models
from retailhub.db.repositories import commercial as commercial_repo
from retailhub.services.discovery_service import DiscoveryService, enrichment_score

CAMPAIGN = {
    "name": "Kappers voorjaar",
    "businessSegment": "hair_salon",
    "steps": [{"step": 1, "template": "prospect-outreach", "delay_days": 0}],
}


@pytest.fixture
def prospect_factory(db_session):
    def _create(business_name, **fields):
        fields.setdefault("email", f"{business_name.split()[0].lower()}@example.nl")
        fields.setdefault("city", "Utrecht")
        fields.setdefault("business_segment", "hair_salon")
        return commercial_repo.create_prospect(db_session, business_name=business_name, **fields)
    return _create


def _queue(client, headers, *prospects, **extra):
    payload = {"prospectIds": [str(p.id) for p in prospects], **extra}
    return client.post("/api/commercial/email-queue", json=payload, headers=headers)


def _make_due(db_session):
    db_session.expire_all()
    for item in db_session.query(models.CommercialEmailQueueItem).all():
        item.scheduled_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db_session.commit()


def test_commercial_routes_are_admin_only(client, retailer_headers):
    assert client.get("/api/commercial/prospects", headers=retailer_headers).status_code == 403
    assert client.get("/api/commercial/campaigns", headers=retailer_headers).status_code == 403
    assert client.post("/api/commercial/email-queue/process", headers=retailer_headers).status_code == 403


def test_list_prospects_with_filters(client, admin_headers, prospect_factory):
    prospect_factory("Kapsalon Knip")
    prospect_factory("Nagelstudio Glans", business_segment="nail_salon", city="Amsterdam", discovery_source="google_places")

    r = client.get("/api/commercial/prospects", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["pagination"] == {"page": 1, "limit": 50, "total": 2, "totalPages": 1}
    assert body["statistics"]["total"] == 2
    assert body["statistics"]["by_source"] == {"manual": 1, "google_places": 1}

    r = client.get("/api/commercial/prospects", params={"segment": "nail_salon"}, headers=admin_headers)
    assert [p["business_name"] for p in r.json()["prospects"]] == ["Nagelstudio Glans"]
    r = client.get("/api/commercial/prospects", params={"search": "knip"}, headers=admin_headers)
    assert [p["business_name"] for p in r.json()["prospects"]] == ["Kapsalon Knip"]
    r = client.get("/api/commercial/prospects", params={"limit": 1, "page": 2}, headers=admin_headers)
    assert len(r.json()["prospects"]) == 1
    assert r.json()["pagination"]["totalPages"] == 2


def test_bulk_update_status(client, admin_headers, prospect_factory):
    first = prospect_factory("Kapsalon Knip")
    second = prospect_factory("Kapsalon Krul")
    payload = {"action": "bulk_update_status", "prospectIds": [str(first.id), str(second.id)], "newStatus": "qualified"}

    r = client.post("/api/commercial/prospects", json=payload, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["updated"] == 2

    stats = client.get("/api/commercial/prospects/stats", headers=admin_headers).json()["statistics"]
    assert stats["by_status"] == {"qualified": 2}

    r = client.post("/api/commercial/prospects", json={**payload, "newStatus": "vip"}, headers=admin_headers)
    assert r.status_code == 400
    r = client.post("/api/commercial/prospects", json={**payload, "action": "delete"}, headers=admin_headers)
    assert r.json()["error"] == "Unknown action"
    r = client.post("/api/commercial/prospects", json={"action": "bulk_update_status"}, headers=admin_headers)
    assert r.status_code == 400


def test_campaign_crud(client, admin_headers):
    r = client.post("/api/commercial/campaigns", json={"name": "Leeg"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["details"] == {"missing": ["business_segment", "steps"]}

    r = client.post("/api/commercial/campaigns", json=CAMPAIGN, headers=admin_headers)
    assert r.status_code == 201
    campaign = r.json()["campaign"]
    assert campaign["max_emails_per_day"] == 100
    assert campaign["timezone"] == "Europe/Amsterdam"
    assert campaign["active"] is True

    r = client.put(f"/api/commercial/campaigns/{campaign['id']}", json={"maxEmailsPerDay": 25}, headers=admin_headers)
    assert r.json()["campaign"]["max_emails_per_day"] == 25
    r = client.put(f"/api/commercial/campaigns/{campaign['id']}", json={"steps": []}, headers=admin_headers)
    assert r.status_code == 400

    r = client.post(f"/api/commercial/campaigns/{campaign['id']}/toggle", headers=admin_headers)
    assert r.json()["campaign"]["active"] is False

    r = client.get("/api/commercial/campaigns", params={"segment": "hair_salon"}, headers=admin_headers)
    assert r.json()["total"] == 1

    assert client.delete(f"/api/commercial/campaigns/{campaign['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/commercial/campaigns/{campaign['id']}", headers=admin_headers).status_code == 404
    assert client.get("/api/commercial/campaigns/not-a-uuid", headers=admin_headers).status_code == 400


def test_queue_prospects_personalises_and_skips_busy(client, db_session, admin_headers, prospect_factory):
    knip = prospect_factory("Kapsalon Knip")
    no_email = prospect_factory("Kapsalon Zonder", email=None)

    r = _queue(client, admin_headers, knip, no_email)
    assert r.status_code == 200
    body = r.json()
    assert body["queued_count"] == 1
    assert body["skipped_count"] == 0
    statuses = {row["business_name"]: row["status"] for row in body["results"]}
    assert statuses == {"Kapsalon Knip": "queued", "Kapsalon Zonder": "failed"}

    # A default campaign is created when none exists
    campaign = db_session.get(models.CommercialEmailCampaign, uuid.UUID(body["campaign_id"]))
    assert campaign.name == "Re-added Prospects Campaign"
    assert campaign.is_default is True

    emails = client.get("/api/commercial/email-queue", headers=admin_headers).json()["emails"]
    assert len(emails) == 1
    assert emails[0]["personalized_subject"] == "Exclusief voor kappers - gratis proefpakket voor Kapsalon Knip in Utrecht!"
    assert emails[0]["status"] == "pending"
    assert "Kapsalon Knip" in emails[0]["personalized_html"]

    db_session.expire_all()
    assert db_session.get(models.CommercialProspect, knip.id).status == "contacted"

    r = _queue(client, admin_headers, knip)
    assert r.status_code == 400
    assert r.json()["error"] == "All selected prospects already have emails in queue"


def test_queue_prospects_validation(client, admin_headers, prospect_factory):
    assert client.post("/api/commercial/email-queue", json={}, headers=admin_headers).status_code == 400
    r = client.post("/api/commercial/email-queue", json={"prospectIds": [str(uuid.uuid4())]}, headers=admin_headers)
    assert r.status_code == 404
    knip = prospect_factory("Kapsalon Knip")
    r = _queue(client, admin_headers, knip, campaignId=str(uuid.uuid4()))
    assert r.status_code == 404
    assert r.json()["error"] == "Campaign not found"


def test_process_queue_disabled_by_flag(client, admin_headers, monkeypatch):
    monkeypatch.setenv("COMMERCIAL_AUTOMATION_ENABLED", "false")
    from retailhub.utils.feature_flags import reload_flags

    reload_flags()
    r = client.post("/api/commercial/email-queue/process", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["disabled"] is True
    assert r.json()["processed"] == 0


def test_process_queue_sends_with_tracking(client, db_session, admin_headers, prospect_factory, monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "https://api.retailhub.test")
    knip = prospect_factory("Kapsalon Knip")
    _queue(client, admin_headers, knip)

    # Nothing is due yet
    assert client.post("/api/commercial/email-queue/process", json={"limit": 5}, headers=admin_headers).json()["processed"] == 0

    _make_due(db_session)
    r = client.post("/api/commercial/email-queue/process", json={"limit": 5}, headers=admin_headers)
    assert r.json() == {"success": True, "processed": 1, "sent": 1, "failed": 0, "retried": 0}

    db_session.expire_all()
    item = db_session.query(models.CommercialEmailQueueItem).one()
    assert item.status == "sent"
    assert item.sent_at is not None
    assert item.attempts == 1
    assert item.tracking_pixel_id
    assert item.click_tracking_ids

    log = db_session.query(models.EmailLog).filter_by(recipient="kapsalon@example.nl").one()
    assert log.template == "prospect-outreach"


def test_tracking_open_click_and_unsubscribe(client, db_session, admin_headers, prospect_factory):
    knip = prospect_factory("Kapsalon Knip")
    _queue(client, admin_headers, knip)
    _make_due(db_session)
    client.post("/api/commercial/email-queue/process", headers=admin_headers)

    db_session.expire_all()
    item = db_session.query(models.CommercialEmailQueueItem).one()
    pixel_id = item.tracking_pixel_id
    click_id, original_url = next(iter(item.click_tracking_ids.items()))

    iphone = {"user-agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) Mobile"}
    r = client.get(f"/api/track/pixel/{pixel_id}", headers=iphone)
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    client.get(f"/api/track/pixel/{pixel_id}", headers=iphone)

    r = client.get(f"/api/track/click/{click_id}", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == original_url

    db_session.expire_all()
    events = db_session.query(models.CommercialEmailTrackingEvent).order_by(models.CommercialEmailTrackingEvent.created_at).all()
    assert [e.event_type for e in events] == ["opened", "clicked"]
    assert events[0].device_type == "mobile"
    assert db_session.get(models.CommercialEmailQueueItem, item.id).status == "clicked"

    r = client.get(f"/api/track/unsubscribe/{pixel_id}")
    assert r.status_code == 200
    assert "Succesvol Uitgeschreven" in r.text
    assert "kapsalon@example.nl" in r.text
    db_session.expire_all()
    assert db_session.get(models.CommercialProspect, knip.id).status == "unsubscribed"

def test_click_resolves_right_item_among_many_sent(client, db_session, admin_headers, prospect_factory):
    prospects = [prospect_factory(name) for name in ("Kapsalon Knip", "Nagelstudio Glans", "Salon Zon")]
    _queue(client, admin_headers, *prospects)
    _make_due(db_session)
    assert client.post("/api/commercial/email-queue/process", headers=admin_headers).json()["sent"] == 3

    db_session.expire_all()
    items = db_session.query(models.CommercialEmailQueueItem).all()
    links = db_session.query(models.CommercialEmailClickLink).all()
    assert len(links) == sum(len(item.click_tracking_ids) for item in items)
    target = next(item for item in items if item.prospect_id == prospects[1].id)
    link = next(link for link in links if link.queue_item_id == target.id)
    assert target.click_tracking_ids[link.tracking_id] == link.original_url

    # A tampered url parameter does not change the redirect
    r = client.get(f"/api/track/click/{link.tracking_id}", params={"url": "https://elders.example/"}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == link.original_url

    db_session.expire_all()
    statuses = {item.prospect_id: item.status for item in db_session.query(models.CommercialEmailQueueItem)}
    assert statuses[prospects[1].id] == "clicked"
    assert statuses[prospects[0].id] == "sent"
    assert statuses[prospects[2].id] == "sent"
    event = db_session.query(models.CommercialEmailTrackingEvent).one()
    assert event.queue_item_id == target.id
    assert event.clicked_url == link.original_url


def test_tracking_unknown_ids(client, monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://portal.retailhub.test")
    assert client.get("/api/track/pixel/onbekend").status_code == 200

    r = client.get("/api/track/click/onbekend", params={"url": "https://example.nl/"}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "https://example.nl/"

    r = client.get("/api/track/unsubscribe/onbekend")
    assert r.status_code == 404
    assert r.json() == {"error": "Invalid unsubscribe link"}


def test_discovery_requires_google_key(client, admin_headers):
    r = client.get("/api/commercial/discovery", headers=admin_headers)
    assert r.status_code == 500
    assert r.json()["error"] == "Google Places API key is not configured"

    r = client.get("/api/commercial/discovery", params={"action": "test"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["providers"]["google_places"]["success"] is False

    assert client.get("/api/commercial/discovery", params={"action": "crawl"}, headers=admin_headers).status_code == 400


def test_api_status_reports_configured_keys(client, admin_headers, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-1234")
    body = client.get("/api/commercial/api-status", headers=admin_headers).json()
    assert body["apis"]["openai"] == {
        "configured": True,
        "name": "OpenAI API",
        "description": "AI lead scoring",
        "keyLength": 7,
    }
    assert body["apis"]["google"]["configured"] is False
    assert body["summary"]["configuredCount"] == 1
    assert body["summary"]["systemReadiness"] == "25%"


def test_discovery_saves_and_skips_duplicates(db_session, prospect_factory):
    prospect_factory("Kapsalon Knip")
    places = MagicMock(configured=True)
    places.search_businesses.return_value = [
        {"business_name": "Kapsalon Knip", "city": "Utrecht", "business_quality_score": 0.9, "discovery_source": "google_places"},
        {
            "business_name": "Kapsalon Krul",
            "city": "Utrecht",
            "phone": "+31301234567",
            "website": "https://krul.nl",
            "business_quality_score": 0.7,
            "discovery_source": "google_places",
        },
    ]
    kvk = MagicMock(configured=False)
    scorer = MagicMock(configured=False)

    result = DiscoveryService(db_session, places=places, kvk=kvk, scorer=scorer).discover("hair_salon", "Utrecht", 5)
    assert result["success"] is True
    assert result["metadata"]["saved_to_database"] == 1
    assert result["metadata"]["duplicates_skipped"] == 1
    assert [p["business_name"] for p in result["prospects"]] == ["Kapsalon Knip", "Kapsalon Krul"]
    assert result["prospects"][1]["lead_quality_score"] == 0.7
    assert result["prospects"][1]["enrichment_score"] == 0.5
    places.search_businesses.assert_called_once_with("hair_salon", "Utrecht", limit=5)
    kvk.enrich.assert_not_called()


def test_enrichment_score():
    assert enrichment_score({}) == 0.0
    assert enrichment_score({"email": "a@b.nl", "phone": "1", "website": "w", "address": "a"}) == 1.0


def test_delete_queue_items_by_id_and_body(client, db_session, admin_headers, prospect_factory):
    knip, krul, glans = (prospect_factory(name) for name in ("Kapsalon Knip", "Kapsalon Krul", "Nagelstudio Glans"))
    _queue(client, admin_headers, knip, krul, glans)
    items = {item.prospect_id: item.id for item in db_session.query(models.CommercialEmailQueueItem)}

    r = client.delete("/api/commercial/email-queue", params={"id": str(items[knip.id])}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["deleted_count"] == 1
    assert r.json()["deleted_emails"][0]["recipient_email"] == "kapsalon@example.nl"

    missing = str(uuid.uuid4())
    r = client.request(
        "DELETE",
        "/api/commercial/email-queue",
        json={"emailIds": [str(items[krul.id]), missing]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["deleted_count"] == 1
    assert r.json()["not_found_ids"] == [missing]

    db_session.expire_all()
    remaining = db_session.query(models.CommercialEmailQueueItem).all()
    assert [item.id for item in remaining] == [items[glans.id]]
    entry = db_session.query(models.AuditLog).filter_by(action_type="email_queue_delete").first()
    assert entry is not None


def test_delete_queue_refuses_sent_emails(client, db_session, admin_headers, prospect_factory):
    knip = prospect_factory("Kapsalon Knip")
    _queue(client, admin_headers, knip)
    _make_due(db_session)
    client.post("/api/commercial/email-queue/process", headers=admin_headers)
    item = db_session.query(models.CommercialEmailQueueItem).one()

    r = client.request("DELETE", "/api/commercial/email-queue", json={"emailIds": [str(item.id)]}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"].startswith("Cannot delete 1 email(s).")
    blocked = r.json()["details"]["non_deletable_emails"]
    assert [row["id"] for row in blocked] == [str(item.id)]
    assert blocked[0]["status"] == "sent"
    assert db_session.query(models.CommercialEmailQueueItem).count() == 1


def test_delete_queue_validation(client, admin_headers, retailer_headers):
    assert client.delete("/api/commercial/email-queue", headers=admin_headers).status_code == 400
    r = client.delete("/api/commercial/email-queue", params={"id": str(uuid.uuid4())}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["error"] == "No emails found with the provided IDs"
    r = client.delete("/api/commercial/email-queue", params={"id": str(uuid.uuid4())}, headers=retailer_headers)
    assert r.status_code == 403


def test_campaign_stats_counts_engagement(client, db_session, admin_headers, prospect_factory):
    knip = prospect_factory("Kapsalon Knip")
    glans = prospect_factory("Nagelstudio Glans")
    campaign_id = _queue(client, admin_headers, knip, glans).json()["campaign_id"]
    _make_due(db_session)
    assert client.post("/api/commercial/email-queue/process", headers=admin_headers).json()["sent"] == 2

    db_session.expire_all()
    item = db_session.query(models.CommercialEmailQueueItem).filter_by(prospect_id=knip.id).one()
    click_id = next(iter(item.click_tracking_ids))
    outlook = {"user-agent": "Microsoft Outlook 16.0"}
    client.get(f"/api/track/pixel/{item.tracking_pixel_id}", headers=outlook)
    client.get(f"/api/track/click/{click_id}", headers=outlook, follow_redirects=False)
    db_session.get(models.CommercialProspect, glans.id).status = "converted"
    db_session.commit()

    r = client.get(f"/api/commercial/campaigns/{campaign_id}/stats", params={"period": "all"}, headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["period"] == "all"
    assert body["overview"] == {
        "total_emails": 2,
        "sent_emails": 2,
        "opened_emails": 1,
        "clicked_emails": 1,
        "unsubscribed_emails": 0,
        "conversions": 1,
    }
    assert body["rates"]["delivery_rate"] == 100.0
    assert body["rates"]["open_rate"] == 50.0
    assert body["rates"]["conversion_rate"] == 50.0
    assert body["breakdown"]["by_event_type"] == {"opened": 1, "clicked": 1}
    assert body["breakdown"]["by_email_client"] == {"Outlook": 2}
    assert body["breakdown"]["by_device"] == {"desktop": 2}
    assert sum(day["sent"] for day in body["daily_performance"]) == 2
    assert {event["event_type"] for event in body["recent_events"]} == {"opened", "clicked"}

    r = client.get(f"/api/commercial/campaigns/{campaign_id}/stats", params={"period": "eeuwig"}, headers=admin_headers)
    assert r.json()["period"] == "all"


def test_campaign_stats_unknown_campaign(client, admin_headers):
    r = client.get(f"/api/commercial/campaigns/{uuid.uuid4()}/stats", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["error"] == "Campaign not found"


def test_prospect_invite_marks_first_and_return_visits(client, db_session, admin_headers, prospect_factory):
    knip = prospect_factory("Kapsalon Knip", contact_name="Anna de Vries")
    _queue(client, admin_headers, knip)
    invitation = db_session.query(models.ProspectInvitationCode).one()
    assert invitation.expires_at is not None
    assert invitation.used_at is None

    r = client.get("/api/prospect-invite", params={"code": invitation.code.lower()})
    assert r.status_code == 200
    body = r.json()
    assert body["prospect"]["business_name"] == "Kapsalon Knip"
    assert body["prospect"]["is_return_visitor"] is False
    assert body["prospect"]["already_registered"] is False
    assert body["personalization"]["welcome_message"].startswith("Welkom Anna!")
    assert body["personalization"]["headline"] == "Exclusief voor kappers - gratis proefpakket"

    db_session.expire_all()
    first_use = db_session.get(models.ProspectInvitationCode, invitation.id).used_at
    assert first_use is not None

    body = client.get("/api/prospect-invite", params={"code": invitation.code}).json()
    assert body["prospect"]["is_return_visitor"] is True
    assert body["prospect"]["visits_count"] == 2
    db_session.expire_all()
    again = db_session.get(models.ProspectInvitationCode, invitation.id)
    assert again.used_at == first_use
    assert again.last_visited_at is not None


def test_prospect_invite_rejects_missing_unknown_and_expired(client, db_session, prospect_factory):
    r = client.get("/api/prospect-invite")
    assert r.status_code == 400
    assert r.json()["error"] == "Invitation code is required"
    r = client.get("/api/prospect-invite", params={"code": "ONBEKEND"})
    assert r.status_code == 404

    knip = prospect_factory("Kapsalon Knip")
    invitation = commercial_repo.get_or_create_invitation_code(db_session, knip.id)
    invitation.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
    db_session.commit()

    r = client.get("/api/prospect-invite", params={"code": invitation.code})
    assert r.status_code == 404
    assert r.json()["error"] == "Invalid or expired invitation code"
    db_session.expire_all()
    assert db_session.get(models.ProspectInvitationCode, invitation.id).is_active is False


def test_expired_invitation_code_is_replaced(db_session, prospect_factory):
    knip = prospect_factory("Kapsalon Knip")
    old = commercial_repo.get_or_create_invitation_code(db_session, knip.id)
    assert commercial_repo.get_or_create_invitation_code(db_session, knip.id).id == old.id

    old.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    db_session.commit()
    fresh = commercial_repo.get_or_create_invitation_code(db_session, knip.id)
    db_session.commit()
    assert fresh.id != old.id
    assert models.as_utc(fresh.expires_at) > datetime.now(timezone.utc) + timedelta(days=29)
    db_session.expire_all()
    assert db_session.get(models.ProspectInvitationCode, old.id).is_active is False
