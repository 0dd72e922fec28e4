"""Select the external provider once at startup."""

import logging

from bitebase.core.config import Settings
from bitebase.core.errors import ConfigError
from bitebase.providers.base import ExternalProvider, NullProvider
from bitebase.providers.cache import CachedProvider

logger = logging.getLogger(__name__)


def build_provider(settings: Settings) -> ExternalProvider:
    name = settings.external_provider
    if name == "google_places" and settings.google_places_api_key:
        from bitebase.providers.google_places import GooglePlacesProvider

        provider: ExternalProvider = GooglePlacesProvider(
            settings.google_places_api_key,
            max_pages=settings.external_max_pages,
            request_timeout=settings.external_timeout_seconds,
        )
    elif name == "serpapi" and settings.serpapi_api_key:
        from bitebase.providers.serpapi import SerpApiProvider

        provider = SerpApiProvider(settings.serpapi_api_key, country_code=settings.default_country_code)
    elif name in {"google_places", "serpapi", "none"}:
        if name != "none":
            logger.warning("No API key for %s; external search is disabled.", name)
        return NullProvider()
    else:
        raise ConfigError(f"unknown external provider {name!r}")

    if settings.external_cache_ttl_seconds > 0:
        provider = CachedProvider(provider, ttl_seconds=settings.external_cache_ttl_seconds)
    logger.info("Using %s external provider (cache ttl=%ss)", provider.name, settings.external_cache_ttl_seconds)
    return provider
