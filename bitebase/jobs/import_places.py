"""CLI job to import nearby places from the external provider into the local store."""

import argparse
import dataclasses
import logging
import time
from typing import Optional

from bitebase.core.config import get_settings
from bitebase.core.errors import ConfigError, InvalidParameterError, ProviderUnavailableError
from bitebase.core.models import DATA_SOURCE_LOCAL, Coordinates, RestaurantRecord
from bitebase.etl.transform import from_google_place
from bitebase.providers.base import ExternalProvider, NullProvider
from bitebase.providers.factory import build_provider
from bitebase.stores.base import PersistedStore
from bitebase.stores.factory import build_store
from bitebase.vendors import google_places

logger = logging.getLogger(__name__)


def to_local(record: RestaurantRecord) -> RestaurantRecord:
    """Re-tag an external record as locally curated, keeping its external id for dedup."""
    return dataclasses.replace(record, data_source=DATA_SOURCE_LOCAL, distance_meters=None)


def run_import_job(
    *,
    store: PersistedStore,
    provider: ExternalProvider,
    latitude: float,
    longitude: float,
    radius: float,
    keyword: Optional[str],
    min_rating: Optional[float] = None,
    details_api_key: Optional[str] = None,
) -> int:
    """Fetch nearby places and upsert them. Returns the number of restaurants stored."""
    if isinstance(provider, NullProvider):
        raise ConfigError("an external provider with an API key is required to import places")
    if radius <= 0:
        raise InvalidParameterError("radius must be greater than 0")

    center = Coordinates(latitude, longitude)
    logger.info("Importing places around (%s, %s) radius=%sm keyword=%s", latitude, longitude, radius, keyword)
    records = provider.nearby_search(center, radius, keyword)
    logger.info("Fetched %d places", len(records))

    stored = 0
    for record in records:
        if min_rating is not None and record.rating < min_rating:
            logger.debug("Skipping %s due to rating %.2f", record.id, record.rating)
            continue

        if details_api_key and record.external_id:
            try:
                details = google_places.place_details(record.external_id, details_api_key)
                if details:
                    record = from_google_place(details)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to fetch details for %s: %s", record.external_id, exc)
            time.sleep(0.15)

        try:
            store.upsert(to_local(record))
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to upsert %s: %s", record.id, exc)
            continue
        stored += 1

    logger.info("Completed import: stored=%d of %d", stored, len(records))
    return stored


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import nearby restaurants into the local store")
    parser.add_argument("--lat", dest="latitude", type=float, required=True, help="Center latitude")
    parser.add_argument("--lng", dest="longitude", type=float, required=True, help="Center longitude")
    parser.add_argument(
        "--radius",
        dest="radius",
        type=float,
        default=get_settings().default_radius_meters,
        help="Search radius in meters",
    )
    parser.add_argument("--keyword", dest="keyword", help="Optional keyword, e.g. 'thai'")
    parser.add_argument(
        "--max-pages",
        dest="max_pages",
        type=int,
        default=get_settings().external_max_pages,
        help="Maximum number of provider result pages to fetch",
    )
    parser.add_argument("--min-rating", dest="min_rating", type=float, help="Minimum rating to persist")
    parser.add_argument(
        "--with-details",
        dest="with_details",
        action="store_true",
        help="Fetch Google Place Details for each result before storing",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        settings = dataclasses.replace(get_settings(), external_max_pages=args.max_pages, external_cache_ttl_seconds=0)
        store = build_store(settings)
        provider = build_provider(settings)
        run_import_job(
            store=store,
            provider=provider,
            latitude=args.latitude,
            longitude=args.longitude,
            radius=args.radius,
            keyword=args.keyword,
            min_rating=args.min_rating,
            details_api_key=settings.google_places_api_key if args.with_details else None,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except (InvalidParameterError, ProviderUnavailableError) as exc:
        logger.error("Import failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
