"""
HTTP error helpers.

Every error body has the shape ``{"error": <message>, "details": <optional>}``.
Services return ``ok(...)`` / ``failure(code, ...)`` dicts; `raise_for_result`
turns a failure into the matching HTTPException.
"""
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException

from retailhub.services import (
    NOT_FOUND,
    INVALID,
    CONFLICT,
    FORBIDDEN,
    UNAUTHORIZED,
    CONFIGURATION,
    UPSTREAM,
)

STATUS_BY_CODE = {
    INVALID: 400,
    UNAUTHORIZED: 401,
    FORBIDDEN: 403,
    NOT_FOUND: 404,
    CONFLICT: 409,
    CONFIGURATION: 500,
    UPSTREAM: 502,
}


def api_error(status_code: int, message: str, details: Any = None) -> HTTPException:
    detail: Dict[str, Any] = {"error": message}
    if details is not None:
        detail["details"] = details
    return HTTPException(status_code=status_code, detail=detail)


def raise_for_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """Return a successful service result unchanged; raise for failures."""
    if result.get("success"):
        return result
    status_code = STATUS_BY_CODE.get(result.get("code"), 500)
    raise api_error(status_code, result.get("error") or "Request failed", result.get("details"))


def error_body(detail: Any) -> Dict[str, Any]:
    """Normalise an HTTPException detail into the error body shape."""
    if isinstance(detail, dict) and "error" in detail:
        return detail
    if isinstance(detail, dict):
        return {"error": detail.get("message") or "Request failed", "details": detail}
    return {"error": str(detail) if detail is not None else "Request failed"}


def parse_uuid(value: Optional[str], field: str = "id") -> uuid.UUID:
    if not value:
        raise api_error(400, f"{field} is required")
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise api_error(400, f"Invalid {field}")
