import pytest

from retailhub.utils import feature_flags
from retailhub.utils.feature_flags import SWITCHES, describe, enabled, reload_flags


@pytest.fixture(autouse=True)
def clean_switches(monkeypatch):
    for switch in SWITCHES.values():
        monkeypatch.delenv(switch.env_var, raising=False)
    reload_flags()
    yield
    reload_flags()


def test_all_switches_default_on():
    assert all(enabled(name) for name in SWITCHES)


@pytest.mark.parametrize(
    "name,env_var",
    [
        ("kvk_enrichment", "KVK_ENRICHMENT_ENABLED"),
        ("prospect_scoring", "AI_PROSPECT_SCORING_ENABLED"),
        ("outreach_sending", "COMMERCIAL_AUTOMATION_ENABLED"),
        ("email_tracking", "EMAIL_TRACKING_ENABLED"),
    ],
)
def test_switch_disabled_via_env(monkeypatch, name, env_var):
    monkeypatch.setenv(env_var, "off")
    reload_flags()

    assert enabled(name) is False
    assert sum(1 for other in SWITCHES if not enabled(other)) == 1


@pytest.mark.parametrize("raw_value", ["maybe", "junk", "2"])
def test_unrecognised_value_keeps_default(monkeypatch, raw_value):
    monkeypatch.setenv("COMMERCIAL_AUTOMATION_ENABLED", raw_value)
    reload_flags()

    assert enabled("outreach_sending") is True


def test_values_cached_until_reload(monkeypatch):
    monkeypatch.setenv("EMAIL_TRACKING_ENABLED", "no")
    reload_flags()
    assert enabled("email_tracking") is False

    monkeypatch.setenv("EMAIL_TRACKING_ENABLED", "yes")
    assert enabled("email_tracking") is False

    reload_flags()
    assert enabled("email_tracking") is True


def test_unknown_switch_raises():
    with pytest.raises(KeyError):
        feature_flags.enabled("llm_features")


def test_describe_reports_env_and_state(monkeypatch):
    monkeypatch.setenv("KVK_ENRICHMENT_ENABLED", "0")
    reload_flags()

    rows = {row["name"]: row for row in describe()}
    assert set(rows) == set(SWITCHES)
    assert rows["kvk_enrichment"]["enabled"] is False
    assert rows["kvk_enrichment"]["envVar"] == "KVK_ENRICHMENT_ENABLED"
    assert rows["outreach_sending"]["enabled"] is True
