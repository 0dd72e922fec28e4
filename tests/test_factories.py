import pytest

from bitebase.core.config import Settings
from bitebase.core.errors import ConfigError
from bitebase.providers.base import NullProvider
from bitebase.providers.cache import CachedProvider
from bitebase.providers.factory import build_provider
from bitebase.providers.google_places import GooglePlacesProvider
from bitebase.providers.serpapi import SerpApiProvider
from bitebase.stores import factory as store_factory
from bitebase.stores.d1 import D1Store
from bitebase.stores.memory import InMemoryStore
from bitebase.stores.sqlite import SqliteStore


def test_build_store_memory_seeds_sample_data():
    store = store_factory.build_store(Settings(store_backend="memory"))
    assert isinstance(store, InMemoryStore)
    assert len(store) == 6

    empty = store_factory.build_store(Settings(store_backend="memory", seed_sample_data=False))
    assert len(empty) == 0


def test_build_store_sqlite_creates_schema(tmp_path):
    path = tmp_path / "bitebase.db"
    store = store_factory.build_store(Settings(store_backend="sqlite", sqlite_path=str(path)))
    assert isinstance(store, SqliteStore)
    assert path.exists()
    assert store.get("anything") is None


def test_build_store_d1():
    store = store_factory.build_store(
        Settings(store_backend="d1", d1_account_id="a", d1_database_id="d", d1_api_token="t")
    )
    assert isinstance(store, D1Store)


def test_build_store_d1_without_credentials():
    with pytest.raises(ConfigError):
        store_factory.build_store(Settings(store_backend="d1"))


def test_build_store_postgis_requires_database_url():
    with pytest.raises(ConfigError):
        store_factory.build_store(Settings(store_backend="postgis"))


def test_build_store_postgis_uses_pool(monkeypatch):
    from bitebase.core import db

    created = {}

    def fake_init_pool(dsn=None):
        created["dsn"] = dsn
        return "pool"

    monkeypatch.setattr(db, "init_pool", fake_init_pool)
    store = store_factory.build_store(Settings(store_backend="postgis", database_url="postgres://h/db"))

    assert store.name == "postgis"
    assert created["dsn"] == "postgres://h/db"


def test_build_store_unknown_backend():
    with pytest.raises(ConfigError):
        store_factory.build_store(Settings(store_backend="mongo"))


def test_build_provider_google_is_cached():
    provider = build_provider(Settings(external_provider="google_places", google_places_api_key="key"))
    assert isinstance(provider, CachedProvider)
    assert isinstance(provider.provider, GooglePlacesProvider)
    assert provider.name == "google_places"
    assert provider.ttl_seconds == 120.0


def test_build_provider_without_cache():
    provider = build_provider(
        Settings(external_provider="serpapi", serpapi_api_key="key", external_cache_ttl_seconds=0, default_country_code="TH")
    )
    assert isinstance(provider, SerpApiProvider)
    assert provider.country_code == "TH"


def test_build_provider_without_key_falls_back(caplog):
    with caplog.at_level("WARNING"):
        provider = build_provider(Settings(external_provider="google_places"))
    assert isinstance(provider, NullProvider)
    assert "external search is disabled" in " ".join(caplog.messages)


def test_build_provider_none():
    assert isinstance(build_provider(Settings(external_provider="none")), NullProvider)


def test_build_provider_unknown():
    with pytest.raises(ConfigError):
        build_provider(Settings(external_provider="yelp"))
