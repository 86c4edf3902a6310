from unittest.mock import MagicMock, patch

import pytest
import requests

from retailhub.services import postcode_service
from retailhub.services.postcode_service import (
    INVALID_HOUSE_NUMBER,
    INVALID_POSTCODE,
    clean_postcode,
    lookup_address,
)


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("POSTCODE_API_KEY", "key")
    monkeypatch.setenv("POSTCODE_API_SECRET", "secret")


def _response(status_code=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload if payload is not None else {}
    return response


@pytest.mark.parametrize("raw", ["1234 AB", "1234-ab", " 1234ab ", "1234 ab"])
def test_clean_postcode(raw):
    assert clean_postcode(raw) == "1234ab"


def test_missing_parameters():
    status, body = lookup_address(None, "1")
    assert status == 400
    assert body["exceptionId"] == "MissingParameters"


@pytest.mark.parametrize("postcode", ["0123AB", "12345", "ABCD12", "1234A"])
def test_invalid_postcode_rejected_before_credentials(postcode):
    status, body = lookup_address(postcode, "1")
    assert status == 400
    assert body["exceptionId"] == INVALID_POSTCODE


def test_invalid_house_number():
    status, body = lookup_address("1234AB", "12a")
    assert status == 400
    assert body["exceptionId"] == INVALID_HOUSE_NUMBER


def test_missing_credentials_is_configuration_error():
    status, body = lookup_address("1234 AB", "1")
    assert status == 500
    assert body["exceptionId"] == "ConfigurationError"


def test_successful_lookup_passes_body_through(credentials):
    address = {"street": "Julianastraat", "houseNumber": 30, "postcode": "2012ES", "city": "Haarlem"}
    with patch.object(postcode_service.requests, "get", return_value=_response(200, address)) as get:
        status, body = lookup_address("2012 ES", "30", "A")
    assert status == 200
    assert body == address
    url = get.call_args.args[0]
    assert url.endswith("/2012es/30/A")
    assert get.call_args.kwargs["auth"] == ("key", "secret")


def test_upstream_error_status_and_exception_are_forwarded(credentials):
    payload = {"exception": "Combination does not exist.", "exceptionId": "PostcodeNl_Service_PostcodeAddress_AddressNotFoundException"}
    with patch.object(postcode_service.requests, "get", return_value=_response(404, payload)):
        status, body = lookup_address("1234AB", "999")
    assert status == 404
    assert body == {"exceptionId": payload["exceptionId"], "message": payload["exception"]}


def test_network_error_maps_to_503(credentials):
    with patch.object(postcode_service.requests, "get", side_effect=requests.ConnectionError("down")):
        status, body = lookup_address("1234AB", "1")
    assert status == 503
    assert body["exceptionId"] == "NetworkError"


def test_non_json_body_maps_to_502(credentials):
    with patch.object(postcode_service.requests, "get", return_value=_response(200, json_error=True)):
        status, body = lookup_address("1234AB", "1")
    assert status == 502
    assert body["exceptionId"] == "ParseError"


def test_quoted_credentials_are_stripped(monkeypatch):
    monkeypatch.setenv("POSTCODE_API_KEY", '"key"')
    monkeypatch.setenv("POSTCODE_API_SECRET", "'secret'")
    with patch.object(postcode_service.requests, "get", return_value=_response(200, {})) as get:
        lookup_address("1234AB", "1")
    assert get.call_args.kwargs["auth"] == ("key", "secret")
