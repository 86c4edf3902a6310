"""
URL utilities for building absolute links in emails and redirects.

Primary source: APP_BASE_URL (e.g., https://portal.example.nl)
Fallback: APP_HOST (adds scheme heuristically if missing).
"""
from __future__ import annotations

import os
from urllib.parse import urlencode, quote


def _add_scheme_if_missing(host: str) -> str:
    h = host.strip()
    if not h:
        return "http://localhost:3000"
    if h.startswith("http://") or h.startswith("https://"):
        return h
    # http for localhost, otherwise https
    lower = h.lower()
    if lower.startswith("localhost") or lower.startswith("127.0.0.1"):
        return f"http://{h}"
    return f"https://{h}"


def _strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


def get_app_base_url() -> str:
    """Return normalized base URL for the frontend application.

    Precedence:
    1. APP_BASE_URL (recommended)
    2. APP_HOST, with a scheme added if missing
    Defaults to http://localhost:3000 if neither is set.
    """
    base = os.getenv("APP_BASE_URL")
    if base and base.strip():
        return _strip_trailing_slash(base.strip())
    host = os.getenv("APP_HOST")
    if host and host.strip():
        return _strip_trailing_slash(_add_scheme_if_missing(host.strip()))
    return "http://localhost:3000"


def app_url(path: str, **params) -> str:
    """Absolute frontend URL for ``path`` with optional query params."""
    if not path.startswith("/"):
        path = f"/{path}"
    url = f"{get_app_base_url()}{path}"
    clean = {k: v for k, v in params.items() if v is not None}
    if clean:
        url = f"{url}?{urlencode(clean)}"
    return url


def build_activation_link(token: str) -> str:
    return app_url(f"/retailer-activate/{quote(token)}")


def build_registration_link(invitation_token: str | None = None) -> str:
    return app_url("/register", token=invitation_token)


def build_api_url(path: str, **params) -> str:
    """Absolute URL for an endpoint of this API (tracking pixels, click redirects)."""
    base = os.getenv("API_BASE_URL", "").strip()
    root = _strip_trailing_slash(base) if base else get_app_base_url()
    if not path.startswith("/"):
        path = f"/{path}"
    url = f"{root}{path}"
    clean = {k: v for k, v in params.items() if v is not None}
    if clean:
        url = f"{url}?{urlencode(clean)}"
    return url
