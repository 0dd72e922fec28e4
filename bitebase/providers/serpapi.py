"""SerpAPI Google Maps provider."""

import logging
from typing import List, Optional

from bitebase.core.errors import ProviderUnavailableError
from bitebase.core.models import Coordinates, RestaurantRecord
from bitebase.etl.transform import from_serpapi_item
from bitebase.providers.base import ExternalProvider, build_records
from bitebase.vendors import serpapi_maps

logger = logging.getLogger(__name__)


class SerpApiProvider(ExternalProvider):
    name = "serpapi"

    def __init__(self, api_key: str, country_code: Optional[str] = None, retry_limit: int = 0) -> None:
        self.api_key = api_key
        self.country_code = country_code
        self.retry_limit = retry_limit

    def nearby_search(
        self, center: Coordinates, radius_meters: float, keyword: Optional[str] = None
    ) -> List[RestaurantRecord]:
        if not self.api_key:
            raise ProviderUnavailableError("SERPAPI_API_KEY is not configured")

        query = f"{keyword} restaurant" if keyword else "restaurant"
        try:
            params = serpapi_maps.build_serpapi_params(
                query,
                self.api_key,
                lat=center.latitude,
                lng=center.longitude,
                radius_meters=radius_meters,
                country_code=self.country_code,
            )
            data = serpapi_maps.fetch_from_serpapi(params, retry_limit=self.retry_limit)
        except (serpapi_maps.SerpApiError, ValueError) as exc:
            raise ProviderUnavailableError(f"serpapi unavailable: {exc}") from exc

        items = serpapi_maps.extract_local_results(data)
        logger.info("Parsed %s places from SerpAPI response.", len(items))
        return build_records(items, from_serpapi_item, self.name)
