"""Runtime environment helpers: DEV_MODE guard and admin allow-list."""

import os
from urllib.parse import urlparse
from typing import Optional, Set

_LOCAL_HOSTS: Set[str] = {"localhost", "127.0.0.1", "::1"}

DEV_PROFILE_EMAIL = "dev@localhost"


def _extract_hostname(url_value: str) -> Optional[str]:
    """Return hostname from a URL or bare host string."""
    if not url_value or not url_value.strip():
        return None
    url_value = url_value.strip()
    candidate = url_value if "://" in url_value else f"http://{url_value}"
    return urlparse(candidate).hostname


def _split_env_list(name: str) -> Set[str]:
    raw = os.getenv(name, "")
    return {item.strip().lower() for item in raw.split(",") if item.strip()}


def dev_mode_requested() -> bool:
    """Return True when DEV_MODE env var is set to a truthy value."""
    return os.getenv("DEV_MODE", "false").lower() == "true"


def dev_mode_active() -> bool:
    """Return True if dev mode is enabled and allowed; raise if misconfigured.

    DEV_MODE only applies when APP_BASE_URL points at a local host (or one
    listed in DEV_MODE_ALLOWED_HOSTS). Anonymous requests are served as the
    development admin, so a deployed instance must never honour the flag.
    """
    if not dev_mode_requested():
        return False

    hostname = _extract_hostname(os.getenv("APP_BASE_URL", ""))
    allowed_hosts = set(_LOCAL_HOSTS) | _split_env_list("DEV_MODE_ALLOWED_HOSTS")

    if hostname:
        if hostname.lower() not in allowed_hosts:
            raise RuntimeError(
                "DEV_MODE=true is not permitted when APP_BASE_URL points to "
                f"'{hostname}'. Allowed hosts: {sorted(allowed_hosts)}"
            )
    elif os.getenv("ALLOW_DEV_MODE", "false").lower() != "true" and not os.getenv("PYTEST_CURRENT_TEST"):
        raise RuntimeError(
            "DEV_MODE=true requires APP_BASE_URL to be set to a localhost URL "
            "or ALLOW_DEV_MODE=true for non-local execution."
        )

    return True


def admin_emails() -> Set[str]:
    """Emails that always resolve to admin (ADMIN_EMAILS, comma separated)."""
    return _split_env_list("ADMIN_EMAILS")


def is_admin_email(email: Optional[str]) -> bool:
    return bool(email) and email.strip().lower() in admin_emails()


def admin_notification_email() -> Optional[str]:
    """Inbox that receives new-registration notifications."""
    explicit = os.getenv("ADMIN_EMAIL", "").strip()
    if explicit:
        return explicit
    listed = sorted(admin_emails())
    return listed[0] if listed else None
