"""Market density statistics over a set of restaurants around a point."""

import logging
import math
from collections import Counter, defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bitebase.core.errors import InvalidParameterError
from bitebase.core.geo import EARTH_RADIUS_METERS, distance_meters
from bitebase.core.models import Coordinates, RestaurantRecord, SearchFilters
from bitebase.stores.base import PersistedStore

logger = logging.getLogger(__name__)

DEFAULT_COMPETITOR_RADIUS_METERS = 2000.0
DEFAULT_GRID_SIZE_METERS = 1000.0
HOTSPOT_MIN_RESTAURANTS = 3
MAX_LISTED_CELLS = 10
MAX_GRID_CELLS_PER_SIDE = 200


def _rating_bucket(rating: float) -> str:
    if rating >= 4.5:
        return "excellent"
    if rating >= 4.0:
        return "good"
    if rating >= 3.5:
        return "average"
    return "below_average"


def market_density(
    restaurants: Iterable[RestaurantRecord], center: Coordinates, radius_meters: float
) -> Dict[str, Any]:
    records = list(restaurants)
    area_km2 = math.pi * (radius_meters / 1000.0) ** 2

    cuisines: Counter = Counter()
    price_levels: Counter = Counter()
    ratings = {"excellent": 0, "good": 0, "average": 0, "below_average": 0}
    for record in records:
        cuisines.update(record.cuisine)
        price_levels["unknown" if record.price_level is None else f"level_{record.price_level}"] += 1
        ratings[_rating_bucket(record.rating)] += 1

    rated = [r.rating for r in records if r.rating > 0]
    return {
        "totalRestaurants": len(records),
        "densityPerKm2": round(len(records) / area_km2, 2) if area_km2 else 0.0,
        "averageRating": round(sum(rated) / len(rated), 2) if rated else None,
        "cuisineBreakdown": dict(cuisines.most_common()),
        "priceLevelBreakdown": dict(sorted(price_levels.items())),
        "ratingDistribution": ratings,
        "dominantCuisine": cuisines.most_common(1)[0][0] if cuisines else None,
        "area": {
            "center": center.to_dict(),
            "radiusKm": round(radius_meters / 1000.0, 2),
            "coverageAreaKm2": round(area_km2, 2),
        },
    }


def competitors_of(
    target: RestaurantRecord, records: Iterable[RestaurantRecord], radius_meters: float
) -> List[Dict[str, Any]]:
    """Restaurants within ``radius_meters`` of ``target``, nearest first, target excluded."""
    target_tags = {tag.lower() for tag in target.cuisine}
    found = []
    for record in records:
        if record.id == target.id:
            continue
        distance = distance_meters(target.coordinates, record.coordinates)
        if distance > radius_meters:
            continue
        overlap = len(target_tags & {tag.lower() for tag in record.cuisine})
        found.append((distance, record.id, record, overlap))
    found.sort(key=lambda item: (item[0], item[1]))

    competitors = []
    for distance, _, record, overlap in found:
        entry = record.with_distance(distance).to_dict()
        entry["distanceFromTarget"] = round(distance, 1)
        entry["distanceKm"] = round(distance / 1000.0, 2)
        entry["cuisineOverlap"] = overlap
        competitors.append(entry)
    return competitors


def nearby_competitors(
    store: PersistedStore, restaurant_id: str, radius_meters: float = DEFAULT_COMPETITOR_RADIUS_METERS
) -> Optional[Dict[str, Any]]:
    """Local competitors around a stored restaurant, or None when it does not exist."""
    _check_positive("radius", radius_meters)
    target = store.get(restaurant_id)
    if target is None:
        return None
    candidates = store.find_near(target.coordinates, radius_meters, SearchFilters())
    competitors = competitors_of(target, candidates, radius_meters)
    logger.info("Found %d competitors within %sm of %s", len(competitors), radius_meters, target.id)
    return {
        "restaurant": target.to_dict(),
        "radiusMeters": radius_meters,
        "competitorCount": len(competitors),
        "competitors": competitors,
    }


def grid_density(
    restaurants: Iterable[RestaurantRecord],
    center: Coordinates,
    radius_meters: float,
    grid_size_meters: float = DEFAULT_GRID_SIZE_METERS,
) -> Dict[str, Any]:
    """Bucket restaurants into square cells covering the search circle.

    Cells are ``grid_size_meters`` wide and laid out on a local equirectangular
    plane around ``center``. A cell is reported when it holds a restaurant or
    its center lies inside the radius.
    """
    _check_positive("radius", radius_meters)
    _check_positive("gridSize", grid_size_meters)
    cells_per_side = math.ceil(radius_meters * 2 / grid_size_meters)
    if cells_per_side > MAX_GRID_CELLS_PER_SIDE:
        raise InvalidParameterError(
            f"gridSize {grid_size_meters} is too small for radius {radius_meters} "
            f"(at most {MAX_GRID_CELLS_PER_SIDE} cells per side)"
        )

    half_span = cells_per_side / 2.0
    cos_lat = max(math.cos(math.radians(center.latitude)), 1e-9)
    buckets: Dict[Tuple[int, int], List[RestaurantRecord]] = defaultdict(list)
    records = list(restaurants)
    for record in records:
        north = math.radians(record.coordinates.latitude - center.latitude) * EARTH_RADIUS_METERS
        d_lng = _wrap_longitude(record.coordinates.longitude - center.longitude)
        east = math.radians(d_lng) * EARTH_RADIUS_METERS * cos_lat
        x = min(cells_per_side - 1, max(0, math.floor(east / grid_size_meters + half_span)))
        y = min(cells_per_side - 1, max(0, math.floor(north / grid_size_meters + half_span)))
        buckets[(x, y)].append(record)

    cell_area_km2 = (grid_size_meters / 1000.0) ** 2
    cells = []
    for x in range(cells_per_side):
        for y in range(cells_per_side):
            lat = center.latitude + math.degrees((y + 0.5 - half_span) * grid_size_meters / EARTH_RADIUS_METERS)
            if not -90.0 <= lat <= 90.0:
                continue
            lng = center.longitude + math.degrees(
                (x + 0.5 - half_span) * grid_size_meters / (EARTH_RADIUS_METERS * cos_lat)
            )
            cell_center = Coordinates(lat, _wrap_longitude(lng))
            members = buckets.get((x, y), [])
            if not members and distance_meters(center, cell_center) > radius_meters:
                continue
            cuisines: Counter = Counter()
            for record in members:
                cuisines.update(record.cuisine)
            rated = [r.rating for r in members if r.rating > 0]
            cells.append(
                {
                    "gridId": f"{x}_{y}",
                    "center": cell_center.to_dict(),
                    "restaurantCount": len(members),
                    "averageRating": round(sum(rated) / len(rated), 2) if rated else None,
                    "dominantCuisine": cuisines.most_common(1)[0][0] if cuisines else None,
                    "densityPerKm2": round(len(members) / cell_area_km2, 2),
                }
            )

    hotspots = sorted(
        (cell for cell in cells if cell["restaurantCount"] >= HOTSPOT_MIN_RESTAURANTS),
        key=lambda cell: -cell["restaurantCount"],
    )
    area_km2 = math.pi * (radius_meters / 1000.0) ** 2
    return {
        "totalRestaurants": len(records),
        "analysisRadiusKm": round(radius_meters / 1000.0, 2),
        "gridSizeKm": round(grid_size_meters / 1000.0, 2),
        "totalGridCells": len(cells),
        "occupiedCells": sum(1 for cell in cells if cell["restaurantCount"]),
        "averageDensityPerKm2": round(len(records) / area_km2, 2),
        "gridAnalysis": cells,
        "hotspots": hotspots[:MAX_LISTED_CELLS],
        "opportunityZones": [cell for cell in cells if not cell["restaurantCount"]][:MAX_LISTED_CELLS],
    }


def _wrap_longitude(lng: float) -> float:
    return (lng + 180.0) % 360.0 - 180.0


def _check_positive(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise InvalidParameterError(f"{name} must be a finite number greater than 0")
