"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def nearby_search(
    lat: float,
    lng: float,
    radius: float,
    api_key: str,
    keyword: Optional[str] = None,
    pagetoken: Optional[str] = None,
    place_type: str = "restaurant",
    timeout: float = 10,
) -> Dict[str, Any]:
    if pagetoken:
        # Places ignores every other parameter once a page token is supplied.
        params: Dict[str, Any] = {"pagetoken": pagetoken, "key": api_key}
    else:
        params = {
            "location": f"{lat},{lng}",
            "radius": int(round(min(radius, 50000))),
            "type": place_type,
            "key": api_key,
        }
        if keyword:
            params["keyword"] = keyword
    response = _SESSION.get(f"{_BASE_URL}/nearbysearch/json", params=params, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("nearby_search failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload


def place_details(place_id: str, api_key: str, timeout: float = 10) -> Dict[str, Any]:
    fields = "place_id,name,vicinity,formatted_address,geometry,rating,user_ratings_total,price_level,types,opening_hours,photos,business_status"
    params = {"place_id": place_id, "key": api_key, "fields": fields}
    response = _SESSION.get(f"{_BASE_URL}/details/json", params=params, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("place_details failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload.get("result", {})
