"""Business logic services package with shared result helpers.

Services return plain dicts: ``{'success': True, ...}`` on success and
``{'success': False, 'code': <kind>, 'error': <message>}`` on failure. The
API layer maps ``code`` onto an HTTP status.
"""
from typing import Any, Dict, Optional

NOT_FOUND = "not_found"
INVALID = "invalid"
CONFLICT = "conflict"
FORBIDDEN = "forbidden"
UNAUTHORIZED = "unauthorized"
CONFIGURATION = "configuration"
UPSTREAM = "upstream"


def ok(**payload: Any) -> Dict[str, Any]:
    return {"success": True, **payload}


def failure(code: str, error: str, details: Optional[Any] = None) -> Dict[str, Any]:
    result: Dict[str, Any] = {"success": False, "code": code, "error": error}
    if details is not None:
        result["details"] = details
    return result


__all__ = [
    "NOT_FOUND",
    "INVALID",
    "CONFLICT",
    "FORBIDDEN",
    "UNAUTHORIZED",
    "CONFIGURATION",
    "UPSTREAM",
    "ok",
    "failure",
]
