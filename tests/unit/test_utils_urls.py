from retailhub.utils.urls import (
    _add_scheme_if_missing,
    _strip_trailing_slash,
    app_url,
    build_activation_link,
    build_api_url,
    build_registration_link,
    get_app_base_url,
)


def test_add_scheme_if_missing_variants():
    assert _add_scheme_if_missing("https://example.com") == "https://example.com"
    assert _add_scheme_if_missing("http://example.com") == "http://example.com"
    assert _add_scheme_if_missing("localhost:3000") == "http://localhost:3000"
    assert _add_scheme_if_missing("127.0.0.1:8000") == "http://127.0.0.1:8000"
    assert _add_scheme_if_missing("example.com") == "https://example.com"
    assert _add_scheme_if_missing("") == "http://localhost:3000"


def test_strip_trailing_slash():
    assert _strip_trailing_slash("https://x/") == "https://x"
    assert _strip_trailing_slash("https://x") == "https://x"


def test_get_app_base_url_env_precedence(monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://x/")
    monkeypatch.delenv("APP_HOST", raising=False)
    assert get_app_base_url() == "https://x"

    monkeypatch.delenv("APP_BASE_URL", raising=False)
    monkeypatch.setenv("APP_HOST", "example.com/")
    assert get_app_base_url() == "https://example.com"

    monkeypatch.delenv("APP_BASE_URL", raising=False)
    monkeypatch.delenv("APP_HOST", raising=False)
    assert get_app_base_url() == "http://localhost:3000"


def test_app_url_drops_none_params(monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://portal.example.nl")
    assert app_url("register") == "https://portal.example.nl/register"
    assert app_url("/register", invite="AB12", ref=None) == "https://portal.example.nl/register?invite=AB12"


def test_registration_and_activation_links(monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://portal.example.nl")
    assert build_registration_link() == "https://portal.example.nl/register"
    assert build_registration_link("tok123") == "https://portal.example.nl/register?token=tok123"
    assert build_activation_link("abc") == "https://portal.example.nl/retailer-activate/abc"


def test_build_api_url_uses_api_base_when_set(monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://portal.example.nl")
    assert build_api_url("/api/track/pixel/x") == "https://portal.example.nl/api/track/pixel/x"

    monkeypatch.setenv("API_BASE_URL", "https://api.example.nl/")
    url = build_api_url("api/track/click/abc", url="https://shop.nl/a?b=1")
    assert url.startswith("https://api.example.nl/api/track/click/abc?url=")
    assert "https%3A%2F%2Fshop.nl%2Fa%3Fb%3D1" in url
