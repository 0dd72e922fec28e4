"""PostgreSQL + PostGIS store."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import psycopg2
from psycopg2 import extras

from bitebase.core.db import get_connection
from bitebase.core.errors import InvalidParameterError, PersistedStoreError
from bitebase.core.models import DATA_SOURCE_LOCAL, Coordinates, RestaurantRecord, SearchFilters
from bitebase.etl.transform import from_row, to_row
from bitebase.stores.base import PersistedStore

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS postgis;

CREATE TABLE IF NOT EXISTS restaurants (
    id TEXT PRIMARY KEY,
    external_id TEXT,
    name TEXT NOT NULL,
    lat DOUBLE PRECISION NOT NULL,
    lng DOUBLE PRECISION NOT NULL,
    location GEOGRAPHY(POINT, 4326) NOT NULL,
    rating NUMERIC(2, 1) NOT NULL DEFAULT 0,
    review_count INTEGER,
    price_level INTEGER CHECK (price_level >= 1 AND price_level <= 4),
    cuisine TEXT[] NOT NULL DEFAULT '{}',
    address TEXT,
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_restaurants_location ON restaurants USING GIST (location);
CREATE INDEX IF NOT EXISTS idx_restaurants_external_id ON restaurants (external_id);
CREATE INDEX IF NOT EXISTS idx_restaurants_rating ON restaurants (rating DESC);
"""

_CENTER = "ST_SetSRID(ST_MakePoint(%(lng)s, %(lat)s), 4326)::geography"

_SELECT = f"""
SELECT
    id,
    external_id,
    name,
    lat,
    lng,
    rating,
    review_count,
    price_level,
    cuisine,
    address,
    metadata,
    ST_Distance(location, {_CENTER}) AS distance_meters
FROM restaurants
WHERE ST_DWithin(location, {_CENTER}, %(radius)s)
"""

_SELECT_BY_ID = """
SELECT id, external_id, name, lat, lng, rating, review_count, price_level, cuisine, address, metadata
FROM restaurants
WHERE id = %(id)s
"""

_UPSERT = """
INSERT INTO restaurants (
    id,
    external_id,
    name,
    lat,
    lng,
    location,
    rating,
    review_count,
    price_level,
    cuisine,
    address,
    metadata,
    updated_at
) VALUES (
    %(id)s,
    %(external_id)s,
    %(name)s,
    %(lat)s,
    %(lng)s,
    ST_SetSRID(ST_MakePoint(%(lng)s, %(lat)s), 4326)::geography,
    %(rating)s,
    %(review_count)s,
    %(price_level)s,
    %(cuisine)s,
    %(address)s,
    %(metadata)s,
    NOW()
)
ON CONFLICT (id) DO UPDATE SET
    external_id = EXCLUDED.external_id,
    name = EXCLUDED.name,
    lat = EXCLUDED.lat,
    lng = EXCLUDED.lng,
    location = EXCLUDED.location,
    rating = EXCLUDED.rating,
    review_count = EXCLUDED.review_count,
    price_level = EXCLUDED.price_level,
    cuisine = EXCLUDED.cuisine,
    address = EXCLUDED.address,
    metadata = EXCLUDED.metadata,
    updated_at = NOW();
"""


def escape_like(term: str) -> str:
    """Make ``%`` and ``_`` in user input match literally under ``ESCAPE '\\'``."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_find_near_query(
    center: Coordinates, radius_meters: float, filters: SearchFilters
) -> Tuple[str, Dict[str, Any]]:
    """All predicates are pushed into SQL; the geography index serves ST_DWithin."""
    sql = _SELECT
    params: Dict[str, Any] = {"lat": center.latitude, "lng": center.longitude, "radius": radius_meters}

    if filters.cuisine:
        sql += " AND EXISTS (SELECT 1 FROM unnest(cuisine) AS tag WHERE lower(tag) = ANY(%(cuisine)s))"
        params["cuisine"] = [tag.lower() for tag in filters.cuisine]
    if filters.min_rating is not None:
        sql += " AND rating >= %(min_rating)s"
        params["min_rating"] = filters.min_rating
    bounds = filters.price_bounds()
    if bounds is not None:
        sql += " AND price_level BETWEEN %(price_min)s AND %(price_max)s"
        params["price_min"], params["price_max"] = bounds
    if filters.keyword:
        sql += (
            " AND (name ILIKE %(keyword)s ESCAPE '\\'"
            " OR coalesce(address, '') ILIKE %(keyword)s ESCAPE '\\'"
            " OR EXISTS (SELECT 1 FROM unnest(cuisine) AS kw_tag WHERE kw_tag ILIKE %(keyword)s ESCAPE '\\'))"
        )
        params["keyword"] = f"%{escape_like(filters.keyword)}%"
    return sql, params


class PostgisStore(PersistedStore):
    name = "postgis"

    def __init__(self, pg_pool=None) -> None:
        self._pool = pg_pool

    def _fetch(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            with get_connection(self._pool) as conn:
                try:
                    with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                        cur.execute(sql, params)
                        rows = cur.fetchall()
                finally:
                    # read-only; end the implicit transaction before returning the connection
                    conn.rollback()
        except psycopg2.Error as exc:
            logger.error("PostGIS query failed: %s", exc)
            raise PersistedStoreError(f"postgis query failed: {exc}") from exc
        return [dict(row) for row in rows]

    def ensure_schema(self) -> None:
        try:
            with get_connection(self._pool) as conn:
                with conn.cursor() as cur:
                    cur.execute(SCHEMA_SQL)
                conn.commit()
        except psycopg2.Error as exc:
            raise PersistedStoreError(f"postgis schema setup failed: {exc}") from exc
        logger.info("Ensured restaurants schema for postgis store")

    def find_near(
        self, center: Coordinates, radius_meters: float, filters: SearchFilters
    ) -> List[RestaurantRecord]:
        sql, params = build_find_near_query(center, radius_meters, filters)
        records = []
        for row in self._fetch(sql, params):
            try:
                records.append(from_row(row))
            except InvalidParameterError as exc:
                logger.warning("Skipping invalid restaurant row %s: %s", row.get("id"), exc)
        logger.debug("PostGIS store matched %d restaurants", len(records))
        return records

    def get(self, restaurant_id: str) -> Optional[RestaurantRecord]:
        rows = self._fetch(_SELECT_BY_ID, {"id": str(restaurant_id)})
        return from_row(rows[0]) if rows else None

    def upsert(self, record: RestaurantRecord) -> None:
        if record.data_source != DATA_SOURCE_LOCAL:
            raise InvalidParameterError("only local restaurants can be persisted")
        params = to_row(record)
        params["metadata"] = extras.Json(params["metadata"])
        try:
            with get_connection(self._pool) as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(_UPSERT, params)
                    conn.commit()
                except psycopg2.Error:
                    conn.rollback()
                    raise
        except psycopg2.Error as exc:
            logger.error("PostGIS upsert failed for %s: %s", record.id, exc)
            raise PersistedStoreError(f"postgis upsert failed: {exc}") from exc
        logger.debug("Upserted restaurant %s", record.id)
