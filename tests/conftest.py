import os

import pytest
from fastapi.testclient import TestClient

# Under pytest the engine binds to a shared in-memory SQLite database unless
# RETAILHUB_TEST_DB / TEST_DATABASE_URL point elsewhere.
os.environ.setdefault("PYTEST_RUNNING", "1")

import retailhub.db.database as db_module
from retailhub.api.main import app
from retailhub.db import models
from retailhub.db.repositories import onboarding as onboarding_repo
from retailhub.db.repositories import profiles as profile_repo
from retailhub.db.repositories import tokens as token_repo
from retailhub.services.transactional_email_service import reset_transactional_email_service
from retailhub.utils.feature_flags import reload_flags

# Environment that changes application behaviour; cleared before every test
# so a developer's shell cannot leak provider credentials into the suite.
_ISOLATED_ENV = (
    "DEV_MODE",
    "ALLOW_DEV_MODE",
    "APP_BASE_URL",
    "APP_HOST",
    "API_BASE_URL",
    "ADMIN_EMAIL",
    "ADMIN_EMAILS",
    "EMAIL_PROVIDER",
    "MANDRILL_API_KEY",
    "SMTP_HOST",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "EMAIL_TEMPLATE_DIR",
    "STRIPE_SECRET_KEY",
    "STRIPE_PUBLISHABLE_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "POSTCODE_API_KEY",
    "POSTCODE_API_SECRET",
    "GOOGLE_PLACES_API_KEY",
    "KVK_API_KEY",
    "OPENAI_API_KEY",
    "DHL_WEBHOOK_SECRET",
    "POSTNL_WEBHOOK_SECRET",
    "KVK_ENRICHMENT_ENABLED",
    "AI_PROSPECT_SCORING_ENABLED",
    "COMMERCIAL_AUTOMATION_ENABLED",
    "EMAIL_TRACKING_ENABLED",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    reset_transactional_email_service()
    reload_flags()
    yield
    reset_transactional_email_service()
    reload_flags()


@pytest.fixture(autouse=True)
def _schema():
    """Fresh tables per test; the in-memory database is shared through StaticPool."""
    models.Base.metadata.create_all(bind=db_module.engine)
    yield
    models.Base.metadata.drop_all(bind=db_module.engine)


@pytest.fixture
def db_session(_schema):
    session = db_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()


# Backwards compatibility: some tests expect a 'db' fixture name
@pytest.fixture
def db(db_session):
    return db_session


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def onboarding_steps(db_session):
    return onboarding_repo.seed_default_steps(db_session)


@pytest.fixture
def profile_factory(db_session):
    def _create(email: str, role: str = "retailer", status: str = "active", **fields):
        fields.setdefault("full_name", email.split("@")[0])
        fields.setdefault("company_name", f"{email.split('@')[0].title()} B.V.")
        return profile_repo.create_profile(db_session, email=email, role=role, status=status, **fields)
    return _create


def _auth_headers(db_session, profile):
    _session, token = token_repo.create_session_token(db_session, profile_id=profile.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_profile(profile_factory):
    return profile_factory("admin@retailhub.test", role="admin", full_name="Admin")


@pytest.fixture
def retailer_profile(profile_factory):
    return profile_factory(
        "winkel@example.com",
        full_name="Sanne de Vries",
        company_name="Winkel de Vries",
        phone="0612345678",
        address="Dorpsstraat 1",
        city="Utrecht",
        postal_code="3511AB",
    )


@pytest.fixture
def admin_headers(db_session, admin_profile):
    return _auth_headers(db_session, admin_profile)


@pytest.fixture
def retailer_headers(db_session, retailer_profile):
    return _auth_headers(db_session, retailer_profile)


@pytest.fixture
def auth_headers_for(db_session):
    def _headers(profile):
        return _auth_headers(db_session, profile)
    return _headers
