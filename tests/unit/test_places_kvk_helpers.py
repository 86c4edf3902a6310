from unittest.mock import MagicMock, patch

import pytest

from retailhub.services import places_service
from retailhub.services.kvk_service import (
    apply_enrichment,
    clean_business_name,
    find_best_match,
    match_score,
    name_similarity,
)
from retailhub.services.places_service import (
    GooglePlacesClient,
    build_search_query,
    normalize_phone,
    parse_address,
    place_to_prospect,
    places_score,
)

FULL_PLACE = {
    "place_id": "p1",
    "name": "Kapsalon Knip",
    "formatted_address": "Dorpsstraat 1, 3511 AB Utrecht, Netherlands",
    "formatted_phone_number": "030 123 4567",
    "website": "https://knip.nl",
    "business_status": "OPERATIONAL",
    "rating": 5,
    "user_ratings_total": 240,
    "types": ["hair_care"],
    "geometry": {"location": {"lat": 52.09, "lng": 5.12}},
    "photos": [{}, {}],
}


class TestPlacesHelpers:
    def test_build_search_query(self):
        assert build_search_query("restaurant", "Delft") == "restaurant cafe bistro Delft"
        assert build_search_query("bakery", "Delft") == "bakery Delft"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("020 123 4567", "+31201234567"),
            ("+31 6 1234 5678", "+31612345678"),
            ("612345678", "+31612345678"),
            ("---", None),
            (None, None),
        ],
    )
    def test_normalize_phone(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_parse_address(self):
        assert parse_address("Dorpsstraat 1, 3511 AB Utrecht, Netherlands") == {
            "city": "Utrecht",
            "postal_code": "3511 AB",
        }
        assert parse_address("Kerkplein 4, 1234ab Zwolle") == {"city": "Zwolle", "postal_code": "1234 AB"}

    def test_places_score_bounds(self):
        assert places_score({}) == 0.5
        assert places_score(FULL_PLACE) == 1.0
        assert places_score({"rating": 4.0, "user_ratings_total": 50}) == pytest.approx(0.84)

    def test_place_to_prospect(self):
        prospect = place_to_prospect(FULL_PLACE, "hair_salon")
        assert prospect["business_name"] == "Kapsalon Knip"
        assert prospect["phone"] == "+31301234567"
        assert prospect["city"] == "Utrecht"
        assert prospect["postal_code"] == "3511 AB"
        assert prospect["google_place_id"] == "p1"
        assert prospect["discovery_source"] == "google_places"
        assert prospect["raw_data"]["photos"] == 2
        assert prospect["raw_data"]["coordinates"] == {"lat": 52.09, "lng": 5.12}

        assert place_to_prospect({"name": "No address"}, "hair_salon") is None


class TestGooglePlacesClient:
    def test_unconfigured_client(self):
        client = GooglePlacesClient(api_key=None)
        assert client.configured is False
        assert client.test_connection() == {"success": False, "error": "GOOGLE_PLACES_API_KEY is not configured"}

    def test_search_skips_failed_details(self):
        def fake_get(url, params=None, timeout=None):
            response = MagicMock()
            if url.endswith("/textsearch/json"):
                response.json.return_value = {"status": "OK", "results": [{"place_id": "p1"}, {"place_id": "p2"}]}
            elif params["place_id"] == "p1":
                response.json.return_value = {"status": "OK", "result": FULL_PLACE}
            else:
                response.json.return_value = {"status": "NOT_FOUND"}
            return response

        client = GooglePlacesClient(api_key="key", min_interval=0)
        with patch.object(places_service.requests, "get", side_effect=fake_get) as get:
            prospects = client.search_businesses("hair_salon", "Utrecht")

        assert [p["google_place_id"] for p in prospects] == ["p1"]
        text_search_params = get.call_args_list[0].kwargs["params"]
        assert text_search_params["type"] == "hair_care"
        assert text_search_params["key"] == "key"

    def test_text_search_raises_on_api_error(self):
        response = MagicMock()
        response.json.return_value = {"status": "REQUEST_DENIED", "error_message": "bad key"}
        client = GooglePlacesClient(api_key="key", min_interval=0)
        with patch.object(places_service.requests, "get", return_value=response):
            with pytest.raises(places_service.PlacesAPIError):
                client.text_search("q", (52.0, 4.0))


class TestKvkMatching:
    def test_clean_business_name_strips_legal_suffix(self):
        assert clean_business_name("Bakkerij Jansen B.V.") == "bakkerij jansen"
        assert clean_business_name("Knip & Kleur VOF") == "knip kleur"

    def test_name_similarity(self):
        assert name_similarity("Kapsalon Knip", "Kapsalon Knip B.V.") == 1.0
        assert name_similarity("Knip", "Kapsalon Knip") == 0.8
        assert name_similarity("Kapsalon Knip", "Knip en Kleur") == pytest.approx(0.2)
        assert name_similarity("Alpha", "Beta") == 0.0
        assert name_similarity("", "Beta") == 0.0

    def test_match_score_and_best_match(self):
        prospect = {"business_name": "Kapsalon Knip", "city": "Utrecht", "postal_code": "3511 AB"}
        exact = {
            "kvkNumber": "12345678",
            "businessName": "Kapsalon Knip B.V.",
            "addresses": [{"city": "Utrecht", "postalCode": "3511AB"}],
        }
        unrelated = {"kvkNumber": "87654321", "businessName": "Iets Anders", "addresses": []}

        assert match_score(prospect, exact) == pytest.approx(1.0)
        assert match_score(prospect, unrelated) == pytest.approx(0.1)
        assert find_best_match(prospect, [unrelated, exact]) is exact
        assert find_best_match(prospect, [unrelated]) is None

    def test_apply_enrichment_keeps_existing_contact_fields(self):
        prospect = {"business_name": "Knip", "website": "https://knip.nl", "raw_data": {"rating": 4.5}}
        business = {
            "kvkNumber": "12345678",
            "branchNumber": "000012345678",
            "currentTradeNames": ["Knip"],
            "businessActivities": [{"sbiCode": "9602"}, {}],
            "addresses": [
                {"type": "bezoekadres", "street": "Zijstraat", "houseNumber": "9", "postalCode": "3511CD", "city": "Utrecht"},
                {"type": "hoofdvestigingadres", "street": "Dorpsstraat", "houseNumber": "1", "houseNumberAddition": "A", "postalCode": "3511AB", "city": "Utrecht"},
            ],
            "companyProfile": {"website": "https://other.nl", "phoneNumber": "0301234567"},
        }
        enriched = apply_enrichment(prospect, business)

        assert enriched["kvk_number"] == "12345678"
        assert enriched["address"] == "Dorpsstraat 1A, 3511AB Utrecht"
        assert enriched["postal_code"] == "3511AB"
        assert enriched["website"] == "https://knip.nl"
        assert enriched["phone"] == "0301234567"
        assert enriched["raw_data"]["rating"] == 4.5
        assert enriched["raw_data"]["sbi_codes"] == ["9602"]
        assert enriched["raw_data"]["kvk_enriched"] is True
        # Input is not mutated
        assert "kvk_number" not in prospect
