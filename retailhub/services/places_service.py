"""
Google Places client for prospect discovery.

Text search by segment and city, then a details lookup per place,
converted into prospect dicts with a quality score.
"""

import logging
import os
import re
from typing import Optional, Dict, Any, List

import requests

from retailhub.utils.rate_limit import MinIntervalLimiter

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
REQUEST_TIMEOUT = 15
DEFAULT_RADIUS_METERS = 10000
DISCOVERY_SOURCE = "google_places"

DETAIL_FIELDS = (
    "place_id",
    "name",
    "formatted_address",
    "formatted_phone_number",
    "website",
    "business_status",
    "rating",
    "user_ratings_total",
    "types",
    "geometry",
    "photos",
)

CITY_COORDINATES = {
    "amsterdam": (52.3676, 4.9041),
    "rotterdam": (51.9225, 4.47917),
    "den haag": (52.0705, 4.3007),
    "utrecht": (52.0907, 5.1214),
    "eindhoven": (51.4416, 5.4697),
    "tilburg": (51.5555, 5.0913),
    "groningen": (53.2194, 6.5665),
    "almere": (52.3508, 5.2647),
    "breda": (51.5719, 4.7683),
    "nijmegen": (51.8426, 5.8528),
}

SEGMENT_QUERIES = {
    "beauty_salon": "schoonheidssalon beauty salon {city}",
    "hair_salon": "kapsalon hairdresser hair salon {city}",
    "wellness_spa": "spa wellness massage center {city}",
    "hotel_bnb": "hotel bed breakfast accommodation {city}",
    "restaurant": "restaurant cafe bistro {city}",
    "cleaning_service": "schoonmaakbedrijf cleaning service {city}",
    "laundromat": "wasserette laundromat {city}",
    "fashion_retail": "fashion boutique clothing store {city}",
    "home_living": "furniture home decor interior {city}",
    "pharmacy": "apotheek pharmacy {city}",
    "supermarket": "supermarket grocery store {city}",
    "gift_shop": "cadeauwinkel gift shop {city}",
}

SEGMENT_PLACE_TYPES = {
    "beauty_salon": "beauty_salon",
    "hair_salon": "hair_care",
    "wellness_spa": "spa",
    "hotel_bnb": "lodging",
    "restaurant": "restaurant",
    "laundromat": "laundry",
    "fashion_retail": "clothing_store",
    "pharmacy": "pharmacy",
    "supermarket": "supermarket",
}

POSTAL_CODE_PATTERN = re.compile(r"\b(\d{4})\s?([A-Z]{2})\b", re.IGNORECASE)


class PlacesAPIError(Exception):
    pass


def build_search_query(segment: str, city: str) -> str:
    template = SEGMENT_QUERIES.get(segment)
    return template.format(city=city) if template else f"{segment} {city}"


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Dutch numbers to +31 form: '020 123 4567' -> '+31201234567'."""
    if not phone:
        return None
    cleaned = re.sub(r"[^\d+]", "", phone)
    if not cleaned:
        return None
    if cleaned.startswith("0"):
        return "+31" + cleaned[1:]
    if not cleaned.startswith("+"):
        return "+31" + cleaned
    return cleaned


def parse_address(address: str) -> Dict[str, Optional[str]]:
    """Extract postal code ('1234 AB') and city from a formatted Dutch address."""
    postal_code = None
    match = POSTAL_CODE_PATTERN.search(address)
    if match:
        postal_code = f"{match.group(1)} {match.group(2).upper()}"

    parts = [p.strip() for p in address.split(",")]
    parts = [p for p in parts if "netherlands" not in p.lower() and "nederland" not in p.lower()]
    city = None
    if parts:
        city_part = parts[-1]
        if match:
            city_part = city_part.replace(match.group(0), "")
        city = city_part.strip() or None
    return {"city": city, "postal_code": postal_code}


def places_score(place: Dict[str, Any]) -> float:
    score = 0.5
    if place.get("rating"):
        score += (place["rating"] / 5) * 0.3
    if place.get("user_ratings_total"):
        score += min(place["user_ratings_total"] / 100, 1) * 0.2
    if place.get("website"):
        score += 0.1
    if place.get("formatted_phone_number"):
        score += 0.1
    if place.get("business_status") == "OPERATIONAL":
        score += 0.05
    if place.get("photos"):
        score += 0.05
    return round(min(1.0, max(0.0, score)), 3)


def place_to_prospect(place: Dict[str, Any], segment: str) -> Optional[Dict[str, Any]]:
    if not place.get("name") or not place.get("formatted_address"):
        return None
    address = parse_address(place["formatted_address"])
    score = places_score(place)
    location = (place.get("geometry") or {}).get("location") or {}
    return {
        "business_name": place["name"],
        "address": place["formatted_address"],
        "phone": normalize_phone(place.get("formatted_phone_number")),
        "website": place.get("website"),
        "city": address["city"],
        "postal_code": address["postal_code"],
        "business_segment": segment,
        "discovery_source": DISCOVERY_SOURCE,
        "google_place_id": place.get("place_id"),
        "business_quality_score": score,
        "raw_data": {
            "place_id": place.get("place_id"),
            "rating": place.get("rating"),
            "user_ratings_total": place.get("user_ratings_total"),
            "types": place.get("types") or [],
            "business_status": place.get("business_status"),
            "photos": len(place.get("photos") or []),
            "coordinates": {"lat": location.get("lat"), "lng": location.get("lng")},
            "google_places_score": score,
        },
    }


class GooglePlacesClient:
    def __init__(self, api_key: Optional[str] = None, *, language: str = "nl", region: str = "nl", min_interval: float = 1.0):
        self.api_key = api_key or os.getenv("GOOGLE_PLACES_API_KEY")
        self.language = language
        self.region = region
        self.limiter = MinIntervalLimiter(min_interval)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        self.limiter.wait()
        response = requests.get(url, params={**params, "key": self.api_key}, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def geocode_city(self, city: str):
        known = CITY_COORDINATES.get(city.strip().lower())
        if known:
            return known
        try:
            data = self._get(GEOCODE_URL, {"address": f"{city}, Netherlands", "language": self.language, "region": self.region})
            if data.get("status") == "OK" and data.get("results"):
                location = data["results"][0]["geometry"]["location"]
                return location["lat"], location["lng"]
            logger.warning(f"Geocoding {city} returned {data.get('status')}; defaulting to Amsterdam")
        except requests.RequestException as e:
            logger.warning(f"Geocoding {city} failed: {e}")
        return CITY_COORDINATES["amsterdam"]

    def text_search(self, query: str, location, *, place_type: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        params = {
            "query": query,
            "location": f"{location[0]},{location[1]}",
            "radius": DEFAULT_RADIUS_METERS,
            "language": self.language,
            "region": self.region,
        }
        if place_type:
            params["type"] = place_type
        data = self._get(f"{PLACES_BASE_URL}/textsearch/json", params)
        if data.get("status") not in ("OK", "ZERO_RESULTS"):
            raise PlacesAPIError(f"Google Places error: {data.get('status')} - {data.get('error_message', 'Unknown error')}")
        return (data.get("results") or [])[:limit]

    def place_details(self, place_id: str) -> Dict[str, Any]:
        data = self._get(
            f"{PLACES_BASE_URL}/details/json",
            {"place_id": place_id, "language": self.language, "fields": ",".join(DETAIL_FIELDS)},
        )
        if data.get("status") != "OK":
            raise PlacesAPIError(f"Google Places error: {data.get('status')} - {data.get('error_message', 'Unknown error')}")
        return data["result"]

    def search_businesses(self, segment: str, city: str, *, limit: int = 20, min_rating: Optional[float] = None) -> List[Dict[str, Any]]:
        if not self.configured:
            raise PlacesAPIError("GOOGLE_PLACES_API_KEY is not configured")
        location = self.geocode_city(city)
        places = self.text_search(
            build_search_query(segment, city), location, place_type=SEGMENT_PLACE_TYPES.get(segment), limit=limit
        )
        prospects = []
        for place in places:
            try:
                details = self.place_details(place["place_id"])
            except (requests.RequestException, PlacesAPIError, KeyError) as e:
                logger.warning(f"Skipping place {place.get('place_id')}: {e}")
                continue
            if min_rating and (details.get("rating") or 0) < min_rating:
                continue
            prospect = place_to_prospect(details, segment)
            if prospect:
                prospects.append(prospect)
        logger.info(f"Google Places found {len(prospects)} prospects for {segment} in {city}")
        return prospects

    def test_connection(self) -> Dict[str, Any]:
        if not self.configured:
            return {"success": False, "error": "GOOGLE_PLACES_API_KEY is not configured"}
        try:
            self.text_search(build_search_query("restaurant", "Amsterdam"), CITY_COORDINATES["amsterdam"], limit=1)
            return {"success": True}
        except (requests.RequestException, PlacesAPIError) as e:
            return {"success": False, "error": str(e)}
