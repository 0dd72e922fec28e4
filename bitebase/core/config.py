"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from bitebase.core.errors import ConfigError

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "sqlite", "postgis", "d1")
EXTERNAL_PROVIDERS = ("google_places", "serpapi", "none")


@dataclass(frozen=True)
class Settings:
    store_backend: str = "memory"
    database_url: str = ""
    sqlite_path: str = "bitebase.db"
    d1_account_id: str = ""
    d1_database_id: str = ""
    d1_api_token: str = ""
    external_provider: str = "google_places"
    google_places_api_key: str = ""
    serpapi_api_key: str = ""
    external_timeout_seconds: float = 5.0
    external_cache_ttl_seconds: float = 120.0
    external_max_pages: int = 1
    default_radius_meters: float = 5000.0
    seed_sample_data: bool = True
    port: int = 8080
    default_country_code: Optional[str] = None


def _get_choice(name: str, default: str, choices) -> str:
    value = (os.getenv(name) or default).strip().lower()
    if value not in choices:
        raise ConfigError(f"{name}={value!r} is not one of {', '.join(choices)}")
    return value


def _get_number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    store_backend = _get_choice("STORE_BACKEND", "memory", STORE_BACKENDS)
    external_provider = _get_choice("EXTERNAL_PROVIDER", "google_places", EXTERNAL_PROVIDERS)
    database_url = os.getenv("DATABASE_URL", "")
    google_places_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "")
    serpapi_api_key = os.getenv("SERPAPI_API_KEY", "")
    d1_account_id = os.getenv("D1_ACCOUNT_ID", "")
    d1_database_id = os.getenv("D1_DATABASE_ID", "")
    d1_api_token = os.getenv("D1_API_TOKEN", "")
    default_country_code_raw = os.getenv("DEFAULT_COUNTRY_CODE")
    default_country_code = default_country_code_raw.strip().upper() if default_country_code_raw else None

    if store_backend == "postgis" and not database_url:
        logger.warning("DATABASE_URL is not set; PostGIS store operations will fail.")
    if store_backend == "d1" and not (d1_account_id and d1_database_id and d1_api_token):
        logger.warning("D1_ACCOUNT_ID, D1_DATABASE_ID and D1_API_TOKEN are required for the D1 store.")
    if external_provider == "google_places" and not google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; searches will use local data only.")
    if external_provider == "serpapi" and not serpapi_api_key:
        logger.warning("SERPAPI_API_KEY is not configured; searches will use local data only.")

    return Settings(
        store_backend=store_backend,
        database_url=database_url,
        sqlite_path=os.getenv("SQLITE_PATH", "bitebase.db"),
        d1_account_id=d1_account_id,
        d1_database_id=d1_database_id,
        d1_api_token=d1_api_token,
        external_provider=external_provider,
        google_places_api_key=google_places_api_key,
        serpapi_api_key=serpapi_api_key,
        external_timeout_seconds=_get_number("EXTERNAL_TIMEOUT_SECONDS", "5", float),
        external_cache_ttl_seconds=_get_number("EXTERNAL_CACHE_TTL_SECONDS", "120", float),
        external_max_pages=_get_number("EXTERNAL_MAX_PAGES", "1", int),
        default_radius_meters=_get_number("DEFAULT_RADIUS_METERS", "5000", float),
        seed_sample_data=os.getenv("SEED_SAMPLE_DATA", "true").lower() in {"1", "true", "yes"},
        port=_get_number("PORT", "8080", int),
        default_country_code=default_country_code,
    )
