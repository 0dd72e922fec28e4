"""Shared SQL for SQLite-dialect stores (local SQLite files and Cloudflare D1)."""

from __future__ import annotations

import abc
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bitebase.core.errors import InvalidParameterError
from bitebase.core.geo import bounding_box
from bitebase.core.models import DATA_SOURCE_LOCAL, Coordinates, RestaurantRecord, SearchFilters
from bitebase.etl.transform import from_row, to_row
from bitebase.stores.base import PersistedStore, filter_candidates

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS restaurants (
        id TEXT PRIMARY KEY,
        external_id TEXT,
        name TEXT NOT NULL,
        lat REAL NOT NULL,
        lng REAL NOT NULL,
        rating REAL NOT NULL DEFAULT 0,
        review_count INTEGER,
        price_level INTEGER CHECK (price_level IS NULL OR price_level BETWEEN 1 AND 4),
        cuisine TEXT NOT NULL DEFAULT '[]',
        address TEXT,
        metadata TEXT NOT NULL DEFAULT '{}',
        updated_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_restaurants_lat_lng ON restaurants (lat, lng)",
    "CREATE INDEX IF NOT EXISTS idx_restaurants_external_id ON restaurants (external_id)",
)

_SELECT_COLUMNS = "id, external_id, name, lat, lng, rating, review_count, price_level, cuisine, address, metadata"

_UPSERT = """
INSERT INTO restaurants (
    id, external_id, name, lat, lng, rating, review_count, price_level, cuisine, address, metadata, updated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (id) DO UPDATE SET
    external_id = excluded.external_id,
    name = excluded.name,
    lat = excluded.lat,
    lng = excluded.lng,
    rating = excluded.rating,
    review_count = excluded.review_count,
    price_level = excluded.price_level,
    cuisine = excluded.cuisine,
    address = excluded.address,
    metadata = excluded.metadata,
    updated_at = excluded.updated_at
"""


def build_find_near_query(
    center: Coordinates, radius_meters: float, filters: SearchFilters
) -> Tuple[str, List[Any]]:
    """Bounding-box prefilter plus rating/price predicates.

    Cuisine and keyword live in a JSON text column, so they are matched in
    Python together with the exact distance check.
    """
    min_lat, min_lng, max_lat, max_lng = bounding_box(center, radius_meters)
    sql = f"SELECT {_SELECT_COLUMNS} FROM restaurants WHERE lat BETWEEN ? AND ? AND lng BETWEEN ? AND ?"
    params: List[Any] = [min_lat, max_lat, min_lng, max_lng]

    if filters.min_rating is not None:
        sql += " AND rating >= ?"
        params.append(filters.min_rating)

    bounds = filters.price_bounds()
    if bounds is not None:
        sql += " AND price_level BETWEEN ? AND ?"
        params.extend(bounds)

    return sql, params


class SqlDialectStore(PersistedStore):
    """Common find/get/upsert logic; subclasses only know how to execute SQL."""

    @abc.abstractmethod
    def _execute(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def ensure_schema(self) -> None:
        for statement in SCHEMA_STATEMENTS:
            self._execute(statement)
        logger.info("Ensured restaurants schema for %s store", self.name)

    def find_near(
        self, center: Coordinates, radius_meters: float, filters: SearchFilters
    ) -> List[RestaurantRecord]:
        sql, params = build_find_near_query(center, radius_meters, filters)
        rows = self._execute(sql, params)
        records = []
        for row in rows:
            try:
                records.append(from_row(row))
            except InvalidParameterError as exc:
                logger.warning("Skipping invalid restaurant row %s: %s", row.get("id"), exc)
        matched = filter_candidates(records, center, radius_meters, filters)
        logger.debug("%s store prefilter returned %d rows, %d matched", self.name, len(rows), len(matched))
        return matched

    def get(self, restaurant_id: str) -> Optional[RestaurantRecord]:
        rows = self._execute(f"SELECT {_SELECT_COLUMNS} FROM restaurants WHERE id = ?", [str(restaurant_id)])
        return from_row(rows[0]) if rows else None

    def upsert(self, record: RestaurantRecord) -> None:
        if record.data_source != DATA_SOURCE_LOCAL:
            raise InvalidParameterError("only local restaurants can be persisted")
        row = to_row(record)
        params = [
            row["id"],
            row["external_id"],
            row["name"],
            row["lat"],
            row["lng"],
            row["rating"],
            row["review_count"],
            row["price_level"],
            json.dumps(row["cuisine"], ensure_ascii=False),
            row["address"],
            json.dumps(row["metadata"], ensure_ascii=False),
            datetime.now(timezone.utc).isoformat(),
        ]
        self._execute(_UPSERT, params)
        logger.debug("Upserted restaurant %s into %s store", record.id, self.name)
