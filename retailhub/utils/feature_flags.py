"""Switches for the automated discovery and outreach pipelines.

Every switch is a boolean environment variable read once per process;
``reload_flags`` re-reads the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"", "0", "false", "no", "off"}


@dataclass(frozen=True)
class Switch:
    env_var: str
    default: bool
    summary: str

    def read(self) -> bool:
        raw = os.getenv(self.env_var)
        if raw is None:
            return self.default
        value = raw.strip().lower()
        if value in _FALSY:
            return False
        if value in _TRUTHY:
            return True
        # Unrecognised spellings keep the default
        return self.default


SWITCHES: Dict[str, Switch] = {
    "kvk_enrichment": Switch(
        "KVK_ENRICHMENT_ENABLED", True, "Enrich discovered businesses with KvK registry data"
    ),
    "prospect_scoring": Switch(
        "AI_PROSPECT_SCORING_ENABLED", True, "Score discovered businesses with the OpenAI model"
    ),
    "outreach_sending": Switch(
        "COMMERCIAL_AUTOMATION_ENABLED", True, "Let the queue processor send outreach emails"
    ),
    "email_tracking": Switch(
        "EMAIL_TRACKING_ENABLED", True, "Embed the open pixel and rewrite links in outreach emails"
    ),
}


@lru_cache(maxsize=None)
def _snapshot() -> Dict[str, bool]:
    return {name: switch.read() for name, switch in SWITCHES.items()}


def enabled(name: str) -> bool:
    """Return the switch state; unknown names are a programming error."""
    if name not in SWITCHES:
        raise KeyError(f"Unknown feature switch: {name}")
    return _snapshot()[name]


def describe() -> List[Dict[str, Any]]:
    """Switch states for the admin API status page."""
    state = _snapshot()
    return [
        {"name": name, "envVar": switch.env_var, "enabled": state[name], "description": switch.summary}
        for name, switch in SWITCHES.items()
    ]


def reload_flags() -> None:
    _snapshot.cache_clear()
