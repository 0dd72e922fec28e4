import math
import sqlite3

import pytest

from bitebase.core.errors import InvalidParameterError, PersistedStoreError
from bitebase.core.geo import EARTH_RADIUS_METERS
from bitebase.core.models import DATA_SOURCE_EXTERNAL, Coordinates, SearchFilters
from bitebase.stores import sql
from bitebase.stores.memory import InMemoryStore
from bitebase.stores.sample_data import BANGKOK_CENTER, sample_restaurants
from bitebase.stores.sqlite import SqliteStore


@pytest.fixture
def store(tmp_path):
    store = SqliteStore(str(tmp_path / "restaurants.db"))
    store.ensure_schema()
    for record in sample_restaurants():
        store.upsert(record)
    return store


def test_rejects_in_memory_database():
    with pytest.raises(ValueError):
        SqliteStore(":memory:")


def test_get_round_trips_record(store):
    record = store.get("rest_003")

    assert record.name == "Bangkok Kitchen"
    assert record.cuisine == ["Thai", "Asian Fusion"]
    assert record.price_level == 3
    assert record.review_count == 640
    assert record.external_id == "ChIJ456789123"
    assert record.metadata["wongnaiId"] == "11111"
    assert record.data_source == "local"
    assert store.get("missing") is None


def test_find_near_matches_in_memory_semantics(store):
    nearby = store.find_near(BANGKOK_CENTER, 2000, SearchFilters())
    assert [r.id for r in nearby] == ["rest_001"]
    assert nearby[0].distance_meters == 0.0

    everything = store.find_near(BANGKOK_CENTER, 20_000, SearchFilters())
    assert len(everything) == 6


def test_find_near_applies_sql_and_python_filters(store):
    filters = SearchFilters(cuisine=("STREET FOOD",), price_level=(1, 2), min_rating=4.3)
    results = store.find_near(BANGKOK_CENTER, 20_000, filters)
    assert {r.id for r in results} == {"rest_002"}

    by_keyword = store.find_near(BANGKOK_CENTER, 20_000, SearchFilters(keyword="khao san"))
    assert {r.id for r in by_keyword} == {"rest_004"}


def test_upsert_is_idempotent(store, make_record):
    record = make_record(id="rest_001", name="Bella Vista", cuisine=["Italian"], rating=4.9)
    store.upsert(record)
    store.upsert(record)

    assert store.get("rest_001").name == "Bella Vista"
    assert len(store.find_near(BANGKOK_CENTER, 20_000, SearchFilters())) == 6


def test_upsert_rejects_external_records(store, make_record):
    with pytest.raises(InvalidParameterError):
        store.upsert(make_record(id="gp_1", data_source=DATA_SOURCE_EXTERNAL))


def test_invalid_rows_are_skipped(store, caplog):
    with sqlite3.connect(store.path) as conn:
        conn.execute("INSERT INTO restaurants (id, name, lat, lng) VALUES ('broken', '', 13.7563, 100.5018)")

    with caplog.at_level("WARNING"):
        results = store.find_near(BANGKOK_CENTER, 1000, SearchFilters())

    assert [r.id for r in results] == ["rest_001"]
    assert "Skipping invalid restaurant row broken" in " ".join(caplog.messages)


def test_driver_errors_become_store_errors(tmp_path):
    # a directory cannot be opened as a database file
    store = SqliteStore(str(tmp_path))
    with pytest.raises(PersistedStoreError):
        store.ensure_schema()


def test_build_find_near_query_pushes_rating_and_price():
    query, params = sql.build_find_near_query(
        BANGKOK_CENTER, 1000, SearchFilters(cuisine=("Thai",), min_rating=4.0, price_level=2, keyword="x")
    )

    assert "lat BETWEEN ? AND ?" in query
    assert "rating >= ?" in query
    assert "price_level BETWEEN ? AND ?" in query
    assert "cuisine" not in query.split("WHERE", 1)[1]
    assert params[-3:] == [4.0, 2, 2]
    assert query.count("?") == len(params)


def _offset(center, north_meters=0.0, east_meters=0.0):
    """Point displaced along the meridian and along the parallel through ``center``."""
    d_lat = math.degrees(north_meters / EARTH_RADIUS_METERS)
    d_lng = math.degrees(east_meters / (EARTH_RADIUS_METERS * math.cos(math.radians(center.latitude))))
    return Coordinates(center.latitude + d_lat, center.longitude + d_lng)


def test_find_near_agrees_with_memory_store_at_radius_edge(tmp_path, make_record):
    center = Coordinates(13.7563, 100.5018)
    edge_records = [
        make_record(id="north_inside", lat=_offset(center, north_meters=4998).latitude, lng=center.longitude),
        make_record(id="south_inside", lat=_offset(center, north_meters=-4998).latitude, lng=center.longitude),
        make_record(id="east_inside", lat=center.latitude, lng=_offset(center, east_meters=4990).longitude),
        make_record(id="north_outside", lat=_offset(center, north_meters=5001).latitude, lng=center.longitude),
    ]
    sqlite_store = SqliteStore(str(tmp_path / "edge.db"))
    sqlite_store.ensure_schema()
    for record in edge_records:
        sqlite_store.upsert(record)
    memory_store = InMemoryStore(edge_records)

    from_sqlite = {r.id for r in sqlite_store.find_near(center, 5000, SearchFilters())}
    from_memory = {r.id for r in memory_store.find_near(center, 5000, SearchFilters())}

    assert from_sqlite == from_memory == {"north_inside", "south_inside", "east_inside"}


def test_sql_dialect_store_requires_execute():
    class NoExecuteStore(sql.SqlDialectStore):
        name = "incomplete"

    with pytest.raises(TypeError):
        NoExecuteStore()
