"""Select the persisted store backend once at startup."""

import logging

from bitebase.core.config import Settings
from bitebase.core.errors import ConfigError
from bitebase.stores.base import PersistedStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> PersistedStore:
    backend = settings.store_backend
    if backend == "memory":
        from bitebase.stores.memory import InMemoryStore
        from bitebase.stores.sample_data import sample_restaurants

        store: PersistedStore = InMemoryStore(sample_restaurants() if settings.seed_sample_data else None)
    elif backend == "sqlite":
        from bitebase.stores.sqlite import SqliteStore

        store = SqliteStore(settings.sqlite_path)
        store.ensure_schema()
    elif backend == "d1":
        from bitebase.stores.d1 import D1Store

        store = D1Store(settings.d1_account_id, settings.d1_database_id, settings.d1_api_token)
    elif backend == "postgis":
        from bitebase.core.db import init_pool
        from bitebase.stores.postgis import PostgisStore

        if not settings.database_url:
            raise ConfigError("DATABASE_URL must be set for the postgis store backend")
        store = PostgisStore(init_pool(dsn=settings.database_url))
    else:
        raise ConfigError(f"unknown store backend {backend!r}")

    logger.info("Using %s restaurant store", store.name)
    return store
