"""Google Places Nearby Search provider."""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from bitebase.core.errors import ProviderUnavailableError
from bitebase.core.models import Coordinates, RestaurantRecord
from bitebase.etl.transform import from_google_place
from bitebase.providers.base import ExternalProvider, build_records
from bitebase.vendors import google_places

logger = logging.getLogger(__name__)

# next_page_token only becomes valid a couple of seconds after it is issued
PAGE_TOKEN_DELAY_SECONDS = 2.0


class GooglePlacesProvider(ExternalProvider):
    name = "google_places"

    def __init__(self, api_key: str, max_pages: int = 1, request_timeout: float = 10) -> None:
        self.api_key = api_key
        self.max_pages = max(1, max_pages)
        self.request_timeout = request_timeout

    def nearby_search(
        self, center: Coordinates, radius_meters: float, keyword: Optional[str] = None
    ) -> List[RestaurantRecord]:
        if not self.api_key:
            raise ProviderUnavailableError("GOOGLE_PLACES_API_KEY is not configured")

        results: List[Dict[str, Any]] = []
        page_token = None
        pages = 0
        try:
            while pages < self.max_pages:
                payload = google_places.nearby_search(
                    center.latitude,
                    center.longitude,
                    radius_meters,
                    self.api_key,
                    keyword=keyword,
                    pagetoken=page_token,
                    timeout=self.request_timeout,
                )
                results.extend(payload.get("results", []))
                pages += 1
                page_token = payload.get("next_page_token")
                if not page_token:
                    break
                if pages < self.max_pages:
                    time.sleep(PAGE_TOKEN_DELAY_SECONDS)
        except (requests.RequestException, google_places.GooglePlacesError) as exc:
            logger.warning("Google Places nearby search failed: %s", exc)
            raise ProviderUnavailableError(f"google places unavailable: {exc}") from exc

        logger.info("Fetched %d places from Google Places in %d page(s)", len(results), pages)
        return build_records(results, from_google_place, self.name)
