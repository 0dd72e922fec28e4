"""HTTP entrypoint exposing restaurant search (Cloud Run / container friendly)."""

from __future__ import annotations

import logging
import math
import os
import uuid
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request

from bitebase.core.aggregator import RestaurantAggregator
from bitebase.core.analysis import (
    DEFAULT_COMPETITOR_RADIUS_METERS,
    DEFAULT_GRID_SIZE_METERS,
    competitors_of,
    grid_density,
    market_density,
    nearby_competitors,
)
from bitebase.core.config import Settings, get_settings
from bitebase.core.errors import ConfigError, InvalidParameterError, PersistedStoreError
from bitebase.core.models import DATA_SOURCE_LOCAL, Coordinates, RestaurantRecord, SearchParams
from bitebase.providers.factory import build_provider
from bitebase.stores.factory import build_store

logger = logging.getLogger(__name__)

METADATA_FIELDS = ("phone", "website", "openingHours", "features", "description", "externalId")
TOP_COMPETITORS = 10


def create_app(aggregator: RestaurantAggregator, settings: Optional[Settings] = None) -> Flask:
    """Build the Flask app around an already-wired aggregator."""
    app = Flask(__name__)
    app.config["AGGREGATOR"] = aggregator
    app.config["DEFAULT_RADIUS_METERS"] = settings.default_radius_meters if settings else 5000.0

    app.register_error_handler(InvalidParameterError, _handle_invalid_parameter)
    app.register_error_handler(PersistedStoreError, _handle_store_error)

    app.add_url_rule("/", view_func=root, methods=["GET"])
    app.add_url_rule("/healthz", view_func=healthcheck, methods=["GET"])
    app.add_url_rule("/api/restaurants/search", view_func=search_restaurants, methods=["GET", "POST"])
    app.add_url_rule("/api/restaurants/nearby", view_func=nearby_restaurants, methods=["GET"])
    app.add_url_rule("/api/restaurants/market-density", view_func=market_density_view, methods=["GET"])
    app.add_url_rule("/api/restaurants/<restaurant_id>", view_func=get_restaurant, methods=["GET"])
    app.add_url_rule("/api/restaurants/<restaurant_id>", view_func=update_restaurant, methods=["PUT"])
    app.add_url_rule(
        "/api/restaurants/<restaurant_id>/competitors", view_func=restaurant_competitors, methods=["GET"]
    )
    app.add_url_rule(
        "/api/restaurants/<restaurant_id>/market-analysis", view_func=restaurant_market_analysis, methods=["POST"]
    )
    app.add_url_rule("/api/restaurants", view_func=create_restaurant, methods=["POST"])
    return app


# ---------- Routes ----------


def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


def healthcheck() -> Any:
    """Lightweight health endpoint; does not touch the store."""
    aggregator = _aggregator()
    return (
        jsonify(
            {
                "status": "ok",
                "store": aggregator.store.name,
                "provider": aggregator.provider.name,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


def search_restaurants() -> Any:
    """Merged local + external search. Accepts query parameters or a JSON body."""
    params = SearchParams.from_request(_request_payload(), default_radius=_default_radius())
    result = _aggregator().search(params)
    return jsonify({"data": result.to_dict()}), 200


def nearby_restaurants() -> Any:
    payload = _request_payload()
    payload["sortBy"] = "distance"
    params = SearchParams.from_request(payload, default_radius=_default_radius())
    result = _aggregator().search(params)
    return jsonify({"data": result.to_dict()}), 200


def market_density_view() -> Any:
    params = SearchParams.from_request(_request_payload(), default_radius=_default_radius())
    records = _aggregator().collect(params)
    analysis = market_density(records, params.center, params.radius_meters)
    return jsonify({"data": analysis}), 200


def get_restaurant(restaurant_id: str) -> Any:
    record = _aggregator().store.get(restaurant_id)
    if record is None:
        return _not_found(restaurant_id)
    return jsonify({"data": record.to_dict()}), 200


def create_restaurant() -> Any:
    """Create or update a locally curated restaurant.

    Required JSON fields: name, latitude, longitude, cuisine
    Optional: id, priceLevel (1-4), rating, reviewCount, address, externalId,
    and free-form phone/website/openingHours/features kept as metadata.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON object body required"}), 400

    required = ("name", "latitude", "longitude", "cuisine")
    missing = [f for f in required if payload.get(f) in (None, "", [])]
    if missing:
        return jsonify({"error": f"missing fields: {', '.join(missing)}"}), 400

    restaurant_id = str(payload.get("id") or f"rest_{uuid.uuid4().hex[:12]}")
    try:
        record = _record_from_payload(restaurant_id, payload)
    except (TypeError, ValueError) as exc:
        # InvalidParameterError is a ValueError
        return jsonify({"error": str(exc)}), 400

    _aggregator().store.upsert(record)
    logger.info("Restaurant saved: %s (%s)", record.name, record.id)
    return jsonify({"data": record.to_dict()}), 201


def update_restaurant(restaurant_id: str) -> Any:
    """Partial update: fields missing from the body keep their stored values."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON object body required"}), 400

    store = _aggregator().store
    existing = store.get(restaurant_id)
    if existing is None:
        return _not_found(restaurant_id)
    try:
        record = _record_from_payload(restaurant_id, payload, existing)
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    store.upsert(record)
    logger.info("Restaurant updated: %s (%s)", record.name, record.id)
    return jsonify({"data": record.to_dict()}), 200


def restaurant_competitors(restaurant_id: str) -> Any:
    radius = _parse_radius(request.args.get("radius"), DEFAULT_COMPETITOR_RADIUS_METERS)
    result = nearby_competitors(_aggregator().store, restaurant_id, radius)
    if result is None:
        return _not_found(restaurant_id)
    return jsonify({"data": result}), 200


def restaurant_market_analysis(restaurant_id: str) -> Any:
    """Competitors, density and grid hotspots around a stored restaurant.

    Accepts the search parameters (radius, cuisine, includeExternal, ...) plus
    gridSize in meters; the center is always the restaurant itself.
    """
    aggregator = _aggregator()
    target = aggregator.store.get(restaurant_id)
    if target is None:
        return _not_found(restaurant_id)

    payload = _request_payload()
    payload["latitude"] = target.coordinates.latitude
    payload["longitude"] = target.coordinates.longitude
    payload["sortBy"] = "distance"
    params = SearchParams.from_request(payload, default_radius=_default_radius())
    grid_size = _parse_radius(payload.get("gridSize"), DEFAULT_GRID_SIZE_METERS, name="gridSize")

    records = aggregator.collect(params)
    competitors = competitors_of(target, records, params.radius_meters)
    analysis = {
        "restaurant": target.to_dict(),
        "radiusMeters": params.radius_meters,
        "competitorCount": len(competitors),
        "competitors": competitors[:TOP_COMPETITORS],
        "marketMetrics": market_density(records, params.center, params.radius_meters),
        "gridAnalysis": grid_density(records, params.center, params.radius_meters, grid_size),
    }
    return jsonify({"data": analysis}), 200


# ---------- Internals ----------


def _aggregator() -> RestaurantAggregator:
    return current_app.config["AGGREGATOR"]


def _default_radius() -> float:
    return current_app.config["DEFAULT_RADIUS_METERS"]


def _not_found(restaurant_id: str) -> Any:
    return jsonify({"error": f"restaurant {restaurant_id} not found"}), 404


def _parse_radius(value: Any, default: float, name: str = "radius") -> float:
    if value in (None, ""):
        return default
    try:
        radius = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{name} must be numeric") from exc
    if not math.isfinite(radius) or radius <= 0:
        raise InvalidParameterError(f"{name} must be a finite number greater than 0")
    return radius


def _record_from_payload(
    restaurant_id: str, payload: Dict[str, Any], base: Optional[RestaurantRecord] = None
) -> RestaurantRecord:
    """Build a local record from a JSON body, falling back to ``base`` for absent fields."""

    def pick(*keys: str, current: Any = None) -> Any:
        for key in keys:
            if key in payload:
                return payload[key]
        return current

    metadata = dict(base.metadata) if base else {}
    metadata.update({key: payload[key] for key in METADATA_FIELDS if payload.get(key) not in (None, "")})
    coordinates = base.coordinates if base else None
    if coordinates is None or "latitude" in payload or "longitude" in payload:
        coordinates = Coordinates(
            pick("latitude", current=coordinates.latitude if coordinates else None),
            pick("longitude", current=coordinates.longitude if coordinates else None),
        )
    name = pick("name", current=base.name if base else None)
    cuisine = pick("cuisine", current=base.cuisine if base else None) or []
    return RestaurantRecord(
        id=restaurant_id,
        name="" if name is None else str(name),
        coordinates=coordinates,
        data_source=DATA_SOURCE_LOCAL,
        rating=pick("rating", current=base.rating if base else None),
        price_level=pick("priceLevel", "priceRange", current=base.price_level if base else None),
        cuisine=cuisine if isinstance(cuisine, list) else str(cuisine).split(","),
        address=pick("address", current=base.address if base else None),
        review_count=pick("reviewCount", current=base.review_count if base else None),
        metadata=metadata,
    )


def _request_payload() -> Dict[str, Any]:
    """Flatten query args (repeated keys become lists) and merge a JSON body on top."""
    payload: Dict[str, Any] = {}
    for key in request.args:
        values = request.args.getlist(key)
        payload[key] = values if len(values) > 1 else values[0]
    if request.method == "POST":
        body = request.get_json(silent=True)
        if body is not None and not isinstance(body, dict):
            raise InvalidParameterError("JSON object body required")
        payload.update(body or {})
    return payload


def _handle_invalid_parameter(exc: InvalidParameterError) -> Any:
    return jsonify({"error": str(exc)}), 400


def _handle_store_error(exc: PersistedStoreError) -> Any:
    logger.exception("Restaurant store failure: %s", exc)
    return jsonify({"error": "restaurant store unavailable"}), 500


def build_app_from_settings(settings: Settings) -> Flask:
    store = build_store(settings)
    provider = build_provider(settings)
    aggregator = RestaurantAggregator(store, provider, external_timeout=settings.external_timeout_seconds)
    return create_app(aggregator, settings)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    try:
        settings = get_settings()
        app = build_app_from_settings(settings)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    port = int(os.getenv("PORT") or settings.port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
