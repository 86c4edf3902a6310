import pytest

from retailhub.db import models
from retailhub.db.repositories import onboarding as onboarding_repo
from retailhub.services.onboarding_service import OnboardingService


@pytest.fixture(autouse=True)
def _steps(onboarding_steps):
    return onboarding_steps


def _complete(client, headers, step_key, **extra):
    return client.post("/api/onboarding/complete-step", json={"stepKey": step_key, **extra}, headers=headers)


def test_steps_are_public_and_ordered(client):
    r = client.get("/api/onboarding/steps")
    assert r.status_code == 200
    keys = [s["step_key"] for s in r.json()["steps"]]
    assert keys == ["welcome", "profile_complete", "website_analysis", "first_advice", "explore_features"]


def test_progress_is_created_on_first_read(client, retailer_headers):
    r = client.get("/api/onboarding/progress", headers=retailer_headers)
    assert r.status_code == 200
    progress = r.json()["progress"]
    assert progress["current_step"] == 1
    assert progress["total_steps"] == 5
    assert progress["steps_completed"] == []
    assert progress["needs_onboarding"] is True


def test_points_are_awarded_once(client, retailer_headers):
    r = _complete(client, retailer_headers, "welcome", stepData={"seen": True})
    assert r.status_code == 200
    body = r.json()
    assert body["points_earned"] == 10
    assert body["total_points"] == 10
    assert body["current_step"] == 2
    assert body["all_required_complete"] is False

    r = _complete(client, retailer_headers, "welcome")
    assert r.json()["points_earned"] == 0
    assert r.json()["total_points"] == 10

    progress = client.get("/api/onboarding/progress", headers=retailer_headers).json()["progress"]
    assert progress["onboarding_data"] == {"welcome": {"seen": True}}


def test_completing_required_steps_finishes_onboarding(client, retailer_headers):
    _complete(client, retailer_headers, "welcome")
    _complete(client, retailer_headers, "profile_complete")
    r = _complete(client, retailer_headers, "explore_features")
    assert r.json()["all_required_complete"] is True
    assert r.json()["onboarding_completed"] is True
    assert r.json()["total_points"] == 55

    progress = client.get("/api/onboarding/progress", headers=retailer_headers).json()["progress"]
    assert progress["is_active"] is False
    assert progress["needs_onboarding"] is False


def test_achievement_notification(client, retailer_headers):
    _complete(client, retailer_headers, "profile_complete")
    r = client.get("/api/notifications/inbox", headers=retailer_headers)
    body = r.json()
    assert body["unread_count"] == 1
    notification = body["notifications"][0]
    assert notification["event_type"] == "onboarding_achievement"
    assert notification["title"] == "+25 punten verdiend!"
    assert notification["metadata"] == {"points_earned": 25, "total_points": 25}


def test_unknown_step_is_rejected(client, retailer_headers):
    r = _complete(client, retailer_headers, "fly_to_moon")
    assert r.status_code == 400
    assert r.json()["error"] == "Unknown onboarding step: fly_to_moon"
    assert client.post("/api/onboarding/complete-step", json={}, headers=retailer_headers).status_code == 400


def test_other_profiles_require_admin(client, retailer_headers, admin_headers, profile_factory):
    other = profile_factory("ander@example.com")
    r = _complete(client, retailer_headers, "welcome", profileId=str(other.id))
    assert r.status_code == 403
    r = client.get("/api/onboarding/progress", params={"profile_id": str(other.id)}, headers=retailer_headers)
    assert r.status_code == 403

    r = _complete(client, admin_headers, "welcome", profileId=str(other.id))
    assert r.status_code == 200
    r = client.get("/api/onboarding/progress", params={"profile_id": str(other.id)}, headers=admin_headers)
    assert r.json()["progress"]["steps_completed"] == ["welcome"]


def test_skip_onboarding(client, retailer_headers):
    r = client.post("/api/onboarding/skip", json={}, headers=retailer_headers)
    assert r.status_code == 200
    assert r.json()["progress"]["skipped_at"] is not None
    assert r.json()["progress"]["needs_onboarding"] is False


def _record_elsewhere(db_session, profile, step_key, points):
    db_session.add(models.OnboardingStepCompletion(profile_id=profile.id, step_key=step_key, points_awarded=points))
    db_session.commit()


def test_step_recorded_by_other_request_earns_nothing(db_session, retailer_profile):
    _record_elsewhere(db_session, retailer_profile, "welcome", 10)

    result = OnboardingService(db_session).complete_step(retailer_profile.id, "welcome")
    assert result["points_earned"] == 0
    assert result["completed_steps"] == ["welcome"]


def test_simultaneous_completion_awards_points_once(db_session, retailer_profile, monkeypatch):
    # Both requests read the completion list before either committed
    real_keys = onboarding_repo.completed_step_keys
    calls = []

    def stale_keys(db, profile_id):
        calls.append(profile_id)
        return [] if len(calls) == 1 else real_keys(db, profile_id)

    _record_elsewhere(db_session, retailer_profile, "profile_complete", 25)
    monkeypatch.setattr(onboarding_repo, "completed_step_keys", stale_keys)

    result = OnboardingService(db_session).complete_step(retailer_profile.id, "profile_complete")
    assert result["success"] is True
    assert result["points_earned"] == 0
    assert "profile_complete" in result["completed_steps"]

    db_session.expire_all()
    rows = db_session.query(models.OnboardingStepCompletion).filter_by(profile_id=retailer_profile.id).all()
    assert [(row.step_key, row.points_awarded) for row in rows] == [("profile_complete", 25)]


def test_repeated_completions_record_one_row(client, db_session, retailer_headers, retailer_profile):
    for _ in range(3):
        assert _complete(client, retailer_headers, "first_advice").status_code == 200

    db_session.expire_all()
    assert db_session.query(models.OnboardingStepCompletion).filter_by(profile_id=retailer_profile.id).count() == 1
    progress = client.get("/api/onboarding/progress", headers=retailer_headers).json()["progress"]
    assert progress["total_points"] == 20
    assert progress["steps_completed"] == ["first_advice"]
