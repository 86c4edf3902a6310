"""
Dutch address lookup through the Postcode.nl REST API.

Errors are returned as ``(status_code, {"exceptionId", "message"})`` so the
router can pass Postcode.nl-style bodies straight through.
"""

import logging
import os
import re
from typing import Optional, Tuple, Dict, Any
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

POSTCODE_API_URL = "https://api.postcode.nl/rest/addresses"
REQUEST_TIMEOUT = 10
POSTCODE_PATTERN = re.compile(r"^[1-9][0-9]{3}[a-z]{2}$")
HOUSE_NUMBER_PATTERN = re.compile(r"^\d+$")

INVALID_POSTCODE = "PostcodeNl_Controller_Address_InvalidPostcodeException"
INVALID_HOUSE_NUMBER = "PostcodeNl_Controller_Address_InvalidHouseNumberException"


def clean_postcode(postcode: str) -> str:
    """'1234 AB' / '1234-ab' -> '1234ab'."""
    return re.sub(r"\s+|-", "", postcode).lower().strip()


def _credentials() -> Optional[Tuple[str, str]]:
    key = (os.getenv("POSTCODE_API_KEY") or "").strip().strip("\"'")
    secret = (os.getenv("POSTCODE_API_SECRET") or "").strip().strip("\"'")
    if not key or not secret:
        return None
    return key, secret


def _error(status: int, exception_id: str, message: str) -> Tuple[int, Dict[str, Any]]:
    return status, {"exceptionId": exception_id, "message": message}


def lookup_address(
    postcode: Optional[str],
    house_number: Optional[str],
    addition: Optional[str] = None,
) -> Tuple[int, Dict[str, Any]]:
    if not postcode or not house_number:
        return _error(400, "MissingParameters", "Postcode en huisnummer zijn vereist")

    cleaned = clean_postcode(postcode)
    if not POSTCODE_PATTERN.match(cleaned):
        return _error(400, INVALID_POSTCODE, "Ongeldige postcode formaat")
    if not HOUSE_NUMBER_PATTERN.match(house_number.strip()):
        return _error(400, INVALID_HOUSE_NUMBER, "Ongeldig huisnummer")

    credentials = _credentials()
    if not credentials:
        logger.error("Postcode.nl credentials are not configured (POSTCODE_API_KEY/POSTCODE_API_SECRET)")
        return _error(500, "ConfigurationError", "Postcode API credentials not configured correctly")

    url = "/".join([
        POSTCODE_API_URL,
        quote(cleaned),
        quote(house_number.strip()),
        quote((addition or "").strip()),
    ])
    try:
        response = requests.get(
            url,
            auth=credentials,
            headers={"Accept": "application/json", "Cache-Control": "no-cache"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error(f"Postcode.nl request failed: {e}")
        return _error(503, "NetworkError", "Er kon geen verbinding worden gemaakt met de adres-validatie service")

    try:
        data = response.json()
    except ValueError:
        logger.error(f"Postcode.nl returned non-JSON body with status {response.status_code}")
        return _error(502, "ParseError", "Ongeldig response van de adres-validatie service")

    if not response.ok:
        logger.warning(f"Postcode.nl returned {response.status_code} for {cleaned}")
        data = data if isinstance(data, dict) else {}
        return _error(
            response.status_code,
            data.get("exceptionId") or "APIError",
            data.get("exception") or data.get("message") or f"API Error: {response.status_code}",
        )
    return 200, data
