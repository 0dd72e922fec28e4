"""SerpAPI Google Maps helpers."""

from __future__ import annotations

import logging
import math
import random
import time
from typing import Any, Dict, Iterable, List, Optional

from serpapi import GoogleSearch

logger = logging.getLogger(__name__)

RETRY_LIMIT = 2
RETRY_DELAY_SECONDS = 1.2


class SerpApiError(RuntimeError):
    """Raised when SerpAPI returns an error payload or cannot be reached."""


def zoom_for_radius(radius_meters: float, latitude: float) -> int:
    """Pick a Google Maps zoom level whose viewport roughly covers the radius."""
    meters_per_pixel_z0 = 156543.03392 * math.cos(math.radians(latitude))
    # viewport is ~640px wide; fit the circle diameter into it
    target = max(radius_meters * 2 / 640.0, 1e-6)
    zoom = int(math.floor(math.log2(max(meters_per_pixel_z0, 1e-6) / target)))
    return max(3, min(21, zoom))


def build_serpapi_params(
    query: str,
    api_key: str,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_meters: Optional[float] = None,
    country_code: Optional[str] = None,
) -> Dict[str, Any]:
    """Construct SerpAPI request parameters for the Google Maps engine."""
    if not query or not query.strip():
        raise ValueError("Query must be provided for SerpAPI lookups.")

    params: Dict[str, Any] = {
        "engine": "google_maps",
        "q": query.strip(),
        "api_key": api_key,
        "type": "search",
    }
    if lat is not None and lng is not None:
        zoom = zoom_for_radius(radius_meters or 5000, lat)
        params["ll"] = f"@{lat},{lng},{zoom}z"
    if country_code:
        params["gl"] = country_code.lower()
    return params


def fetch_from_serpapi(params: Dict[str, Any], retry_limit: int = RETRY_LIMIT) -> Dict[str, Any]:
    """Call SerpAPI Google Maps and return the raw JSON response with retry logic."""
    attempt = 0
    while True:
        attempt += 1
        try:
            logger.info("Calling SerpAPI (attempt %s) for q=%s ll=%s", attempt, params.get("q"), params.get("ll"))
            data = GoogleSearch(params).get_dict()
            if not data:
                raise SerpApiError("SerpAPI returned an empty payload.")
            if "error" in data:
                message = data.get("error") or data
                raise SerpApiError(f"SerpAPI returned an error response: {message}")
            return data
        except Exception as exc:  # noqa: BLE001 - the SDK raises bare requests/ValueError types
            logger.warning("SerpAPI request failed (attempt %s/%s): %s", attempt, retry_limit + 1, exc)
            if attempt > retry_limit:
                logger.error("SerpAPI request exhausted retries for q=%s", params.get("q"))
                if isinstance(exc, SerpApiError):
                    raise
                raise SerpApiError(str(exc)) from exc
            time.sleep(RETRY_DELAY_SECONDS + random.uniform(0, 0.8))


def extract_local_results(data: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return the list of place dicts from a SerpAPI Maps payload."""
    if not data:
        return []

    items = list(_extract_items(data))
    if not items:
        logger.warning(
            "SerpAPI response missing local_results iterable. keys=%s preview=%s",
            list(data.keys())[:10],
            str(data.get("local_results"))[:200],
        )
        place_results = data.get("place_results")
        if isinstance(place_results, list):
            items = place_results
        elif isinstance(place_results, dict):
            items = [place_results]
    return [item for item in items if isinstance(item, dict)]


def _extract_items(data: Dict[str, Any]) -> Iterable[Any]:
    """SerpAPI sometimes returns local_results as a list or nested dict."""
    local_results = data.get("local_results")
    if isinstance(local_results, list):
        return local_results
    if isinstance(local_results, dict):
        logger.debug("local_results is dict with keys: %s", list(local_results.keys())[:10])
        for maybe in (local_results.get("places"), local_results.get("results"), local_results.get("local_results")):
            if isinstance(maybe, list):
                return maybe
    return []
