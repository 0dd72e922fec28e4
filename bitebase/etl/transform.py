"""Utilities for transforming provider payloads and database rows into restaurant records."""

import hashlib
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from bitebase.core.errors import InvalidParameterError
from bitebase.core.models import (
    DATA_SOURCE_EXTERNAL,
    DATA_SOURCE_LOCAL,
    Coordinates,
    RestaurantRecord,
)

logger = logging.getLogger(__name__)

_IGNORE_TYPES = {"point_of_interest", "establishment", "political", "premise", "food", "store"}
_TYPE_LABELS = {
    "restaurant": "Restaurant",
    "cafe": "Cafe",
    "bakery": "Bakery",
    "bar": "Bar",
    "meal_takeaway": "Takeaway",
    "meal_delivery": "Delivery",
    "night_club": "Night Club",
}
_PRICE_SYMBOLS = {"$": 1, "$$": 2, "$$$": 3, "$$$$": 4, "฿": 1, "฿฿": 2, "฿฿฿": 3, "฿฿฿฿": 4}


def external_record_id(prefix: str, place_id: str) -> str:
    """Deterministic record id for a provider place identifier."""
    digest = hashlib.sha1(place_id.encode("utf-8")).hexdigest()[:16]
    return f"{prefix}_{digest}"


def cuisine_from_types(types: Iterable[str]) -> List[str]:
    """Turn Places ``types`` into cuisine tags, e.g. ``thai_restaurant`` -> ``Thai``."""
    specific: List[str] = []
    generic: List[str] = []
    for type_name in types or []:
        if not isinstance(type_name, str) or type_name in _IGNORE_TYPES:
            continue
        if type_name.endswith("_restaurant"):
            label = type_name[: -len("_restaurant")].replace("_", " ").title()
            if label not in specific:
                specific.append(label)
        elif type_name in _TYPE_LABELS and _TYPE_LABELS[type_name] not in generic:
            generic.append(_TYPE_LABELS[type_name])
    return specific + generic or ["Restaurant"]


def parse_price_level(value: Any) -> Optional[int]:
    """Places uses 0-4 (0 = free), SerpAPI uses ``$``..``$$$$``; normalize to 1-4."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        symbol = value.strip()
        if symbol in _PRICE_SYMBOLS:
            return _PRICE_SYMBOLS[symbol]
        if symbol.startswith("PRICE_LEVEL_"):
            value = {"FREE": 0, "INEXPENSIVE": 1, "MODERATE": 2, "EXPENSIVE": 3, "VERY_EXPENSIVE": 4}.get(
                symbol[len("PRICE_LEVEL_"):]
            )
            if value is None:
                return None
    try:
        level = int(value)
    except (TypeError, ValueError):
        return None
    if level < 0 or level > 4:
        return None
    return max(level, 1)


def from_google_place(result: Dict[str, Any]) -> RestaurantRecord:
    """Build an external record from a Places Nearby Search result.

    Raises InvalidParameterError (or InvalidCoordinateError) when the place has
    no id, no name or unusable coordinates; callers skip such rows.
    """
    place_id = result.get("place_id")
    if not place_id:
        raise InvalidParameterError("place has no place_id")
    location = (result.get("geometry") or {}).get("location") or {}
    metadata: Dict[str, Any] = {
        "externalId": place_id,
        "provider": "google_places",
        "types": list(result.get("types") or []),
    }
    photos = result.get("photos") or []
    if photos and photos[0].get("photo_reference"):
        metadata["photoReference"] = photos[0]["photo_reference"]
    opening_hours = result.get("opening_hours") or {}
    if "open_now" in opening_hours:
        metadata["openNow"] = opening_hours["open_now"]
    if result.get("business_status"):
        metadata["businessStatus"] = result["business_status"]

    return RestaurantRecord(
        id=external_record_id("gp", place_id),
        name=result.get("name") or "",
        coordinates=Coordinates(location.get("lat"), location.get("lng")),
        data_source=DATA_SOURCE_EXTERNAL,
        rating=result.get("rating"),
        price_level=parse_price_level(result.get("price_level")),
        cuisine=cuisine_from_types(result.get("types") or []),
        address=result.get("vicinity") or result.get("formatted_address"),
        review_count=result.get("user_ratings_total"),
        metadata=metadata,
    )


def from_serpapi_item(raw: Dict[str, Any]) -> RestaurantRecord:
    """Build an external record from a SerpAPI ``local_results`` entry."""
    place_id = raw.get("place_id") or raw.get("data_id")
    if not place_id:
        raise InvalidParameterError("SerpAPI result has no place_id")
    gps = raw.get("gps_coordinates") or {}
    cuisine = raw.get("types") or ([raw["type"]] if raw.get("type") else [])
    metadata: Dict[str, Any] = {"externalId": place_id, "provider": "serpapi"}
    for source_key, target_key in (("phone", "phone"), ("website", "website"), ("thumbnail", "thumbnail")):
        if raw.get(source_key):
            metadata[target_key] = raw[source_key]

    return RestaurantRecord(
        id=external_record_id("sp", str(place_id)),
        name=(raw.get("title") or raw.get("name") or ""),
        coordinates=Coordinates(gps.get("latitude"), gps.get("longitude")),
        data_source=DATA_SOURCE_EXTERNAL,
        rating=raw.get("rating"),
        price_level=parse_price_level(raw.get("price")),
        cuisine=[tag.replace(" restaurant", "").replace(" Restaurant", "").strip() for tag in cuisine] or ["Restaurant"],
        address=raw.get("address"),
        review_count=_safe_int(raw.get("reviews")),
        metadata=metadata,
    )


def from_row(row: Dict[str, Any]) -> RestaurantRecord:
    """Build a local record from a database row (SQLite, D1 or PostGIS)."""
    metadata = _load_json(row.get("metadata"), default={})
    if row.get("external_id"):
        metadata.setdefault("externalId", row["external_id"])
    record = RestaurantRecord(
        id=row["id"],
        name=row["name"],
        coordinates=Coordinates(row["lat"], row["lng"]),
        data_source=DATA_SOURCE_LOCAL,
        rating=row.get("rating"),
        price_level=row.get("price_level"),
        cuisine=_load_json(row.get("cuisine"), default=[]),
        address=row.get("address"),
        review_count=row.get("review_count"),
        metadata=metadata,
    )
    if row.get("distance_meters") is not None:
        record = record.with_distance(float(row["distance_meters"]))
    return record


def to_row(record: RestaurantRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "external_id": record.external_id,
        "name": record.name,
        "lat": record.coordinates.latitude,
        "lng": record.coordinates.longitude,
        "rating": record.rating,
        "review_count": record.review_count,
        "price_level": record.price_level,
        "cuisine": list(record.cuisine),
        "address": record.address,
        "metadata": dict(record.metadata),
    }


def _load_json(value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, (dict, list)):
        return type(value)(value)
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed JSON column value: %s", str(value)[:200])
        return default


def _safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None
