"""Core data models shared by stores, providers and the aggregator."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from bitebase.core.errors import InvalidParameterError
from bitebase.core.geo import validate_coordinates

DATA_SOURCE_LOCAL = "local"
DATA_SOURCE_EXTERNAL = "external"
DATA_SOURCES = (DATA_SOURCE_LOCAL, DATA_SOURCE_EXTERNAL)

SORT_OPTIONS = ("distance", "rating", "price_low", "price_high")

DEFAULT_RADIUS_METERS = 5000.0
DEFAULT_LIMIT = 20

PriceFilter = Union[int, Tuple[int, int]]


@dataclass(frozen=True, slots=True)
class Coordinates:
    """WGS84 point. Construction fails with InvalidCoordinateError when out of range."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat, lng = validate_coordinates(self.latitude, self.longitude)
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lng)

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(slots=True)
class RestaurantRecord:
    """Normalized restaurant, whichever store or provider it came from."""

    id: str
    name: str
    coordinates: Coordinates
    data_source: str
    rating: float = 0.0
    price_level: Optional[int] = None
    cuisine: List[str] = field(default_factory=list)
    address: Optional[str] = None
    review_count: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    distance_meters: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidParameterError("restaurant id is required")
        self.id = str(self.id)
        self.name = (self.name or "").strip()
        if not self.name:
            raise InvalidParameterError(f"restaurant {self.id} has no name")
        if not isinstance(self.coordinates, Coordinates):
            raise InvalidParameterError(f"restaurant {self.id} needs Coordinates, got {self.coordinates!r}")
        if self.data_source not in DATA_SOURCES:
            raise InvalidParameterError(f"unknown data source {self.data_source!r}")

        rating = _parse_float("rating", self.rating)
        self.rating = 0.0 if rating is None else rating
        if not 0.0 <= self.rating <= 5.0:
            raise InvalidParameterError(f"rating {self.rating} is outside [0, 5]")
        self.review_count = _parse_int("review count", self.review_count, default=None)
        if self.review_count is not None and self.review_count < 0:
            raise InvalidParameterError(f"review count {self.review_count} is negative")
        self.price_level = _parse_int("price level", self.price_level, default=None)
        if self.price_level is not None:
            if not 1 <= self.price_level <= 4:
                raise InvalidParameterError(f"price level {self.price_level} is outside [1, 4]")
        self.cuisine = [str(tag).strip() for tag in self.cuisine or [] if tag and str(tag).strip()]

    @property
    def external_id(self) -> Optional[str]:
        value = self.metadata.get("externalId") if self.metadata else None
        return str(value) if value else None

    @property
    def primary_cuisine(self) -> Optional[str]:
        return self.cuisine[0] if self.cuisine else None

    def with_distance(self, distance: Optional[float]) -> "RestaurantRecord":
        """Copy annotated with a per-query distance; the original is left untouched."""
        return dataclasses.replace(self, distance_meters=distance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "coordinates": self.coordinates.to_dict(),
            "rating": self.rating,
            "priceLevel": self.price_level,
            "cuisine": list(self.cuisine),
            "address": self.address,
            "dataSource": self.data_source,
            "distanceMeters": None if self.distance_meters is None else round(self.distance_meters, 1),
            "reviewCount": self.review_count,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class SearchFilters:
    """Predicates applied by stores and re-applied by the aggregator."""

    cuisine: Tuple[str, ...] = ()
    min_rating: Optional[float] = None
    price_level: Optional[PriceFilter] = None
    keyword: Optional[str] = None

    def price_bounds(self) -> Optional[Tuple[int, int]]:
        if self.price_level is None:
            return None
        if isinstance(self.price_level, tuple):
            return self.price_level
        return self.price_level, self.price_level

    def matches(self, record: RestaurantRecord) -> bool:
        """Cuisine any-of, minimum rating and price. Pure, so safe to re-apply."""
        if self.cuisine:
            wanted = {tag.lower() for tag in self.cuisine}
            if not any(tag.lower() in wanted for tag in record.cuisine):
                return False
        if self.min_rating is not None and record.rating < self.min_rating:
            return False
        bounds = self.price_bounds()
        if bounds is not None:
            if record.price_level is None:
                return False
            low, high = bounds
            if not low <= record.price_level <= high:
                return False
        return True

    def matches_keyword(self, record: RestaurantRecord) -> bool:
        if not self.keyword:
            return True
        term = self.keyword.lower()
        haystack = [record.name, record.address or "", *record.cuisine]
        return any(term in value.lower() for value in haystack)


@dataclass(frozen=True, slots=True)
class SearchParams:
    center: Coordinates
    radius_meters: float = DEFAULT_RADIUS_METERS
    cuisine: Tuple[str, ...] = ()
    min_rating: Optional[float] = None
    price_level: Optional[PriceFilter] = None
    keyword: Optional[str] = None
    include_external: bool = True
    sort_by: str = "distance"
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.center, Coordinates):
            raise InvalidParameterError("center coordinates are required")
        if isinstance(self.radius_meters, bool) or not isinstance(self.radius_meters, (int, float)):
            raise InvalidParameterError("radius must be numeric")
        if not math.isfinite(self.radius_meters) or self.radius_meters <= 0:
            raise InvalidParameterError("radius must be a finite number greater than 0")
        if self.sort_by not in SORT_OPTIONS:
            raise InvalidParameterError(f"sortBy must be one of {', '.join(SORT_OPTIONS)}")
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise InvalidParameterError("limit must be a positive integer")
        if isinstance(self.offset, bool) or not isinstance(self.offset, int) or self.offset < 0:
            raise InvalidParameterError("offset must be a non-negative integer")
        if self.min_rating is not None and not 0.0 <= self.min_rating <= 5.0:
            raise InvalidParameterError("rating must be between 0 and 5")
        object.__setattr__(self, "cuisine", tuple(self.cuisine))
        object.__setattr__(self, "price_level", _check_price(self.price_level))

    @property
    def filters(self) -> SearchFilters:
        return SearchFilters(
            cuisine=self.cuisine,
            min_rating=self.min_rating,
            price_level=self.price_level,
            keyword=self.keyword,
        )

    def to_dict(self) -> Dict[str, Any]:
        price = list(self.price_level) if isinstance(self.price_level, tuple) else self.price_level
        return {
            "latitude": self.center.latitude,
            "longitude": self.center.longitude,
            "radius": self.radius_meters,
            "cuisine": list(self.cuisine),
            "priceRange": price,
            "rating": self.min_rating,
            "keyword": self.keyword,
            "includeExternal": self.include_external,
            "sortBy": self.sort_by,
            "limit": self.limit,
            "offset": self.offset,
        }

    @classmethod
    def from_request(
        cls,
        payload: Mapping[str, Any],
        default_radius: float = DEFAULT_RADIUS_METERS,
    ) -> "SearchParams":
        """Build params from a JSON body or query-string mapping.

        Query strings deliver everything as text, so each field accepts both
        native JSON values and their string forms.
        """
        payload = payload or {}
        latitude = payload.get("latitude", payload.get("lat"))
        longitude = payload.get("longitude", payload.get("lng"))
        if latitude in (None, "") or longitude in (None, ""):
            raise InvalidParameterError("latitude and longitude are required")

        radius = _parse_float("radius", payload.get("radius"))
        keyword = str(payload.get("keyword") or payload.get("query") or "").strip()
        return cls(
            center=Coordinates(latitude, longitude),
            radius_meters=default_radius if radius is None else radius,
            cuisine=_parse_cuisine(payload.get("cuisine")),
            min_rating=_parse_float("rating", payload.get("rating", payload.get("minRating"))),
            price_level=_parse_price(payload.get("priceRange", payload.get("priceLevel"))),
            keyword=keyword or None,
            include_external=_parse_bool("includeExternal", payload.get("includeExternal"), default=True),
            sort_by=str(payload.get("sortBy") or "distance").strip().lower(),
            limit=_parse_int("limit", payload.get("limit"), default=DEFAULT_LIMIT),
            offset=_parse_int("offset", payload.get("offset"), default=0),
        )


@dataclass(slots=True)
class SearchResult:
    restaurants: List[RestaurantRecord]
    total: int
    sources: Dict[str, int]
    search_params: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restaurants": [record.to_dict() for record in self.restaurants],
            "total": self.total,
            "sources": dict(self.sources),
            "searchParams": dict(self.search_params),
        }


def _check_price(value: Optional[PriceFilter]) -> Optional[PriceFilter]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise InvalidParameterError("price range must be [min, max]")
        low, high = (_check_price_level(v) for v in value)
        if low > high:
            raise InvalidParameterError("price range minimum exceeds maximum")
        return low, high
    return _check_price_level(value)


def _check_price_level(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(f"price level must be an integer, got {value!r}")
    if not 1 <= value <= 4:
        raise InvalidParameterError("price level must be between 1 and 4")
    return value


def _parse_float(name: str, value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidParameterError(f"{name} must be numeric")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{name} must be numeric") from exc
    if not math.isfinite(number):
        raise InvalidParameterError(f"{name} must be a finite number")
    return number


def _parse_int(name: str, value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidParameterError(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidParameterError(f"{name} must be an integer")
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{name} must be an integer") from exc


def _parse_bool(name: str, value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise InvalidParameterError(f"{name} must be a boolean")


def _parse_cuisine(value: Any) -> Tuple[str, ...]:
    if value is None or value == "":
        return ()
    items: Sequence[Any] = value if isinstance(value, (list, tuple)) else str(value).split(",")
    tags = []
    for item in items:
        tag = str(item).strip()
        if tag and tag.lower() not in {t.lower() for t in tags}:
            tags.append(tag)
    return tuple(tags)


def _parse_price(value: Any) -> Optional[PriceFilter]:
    """Accept ``2``, ``"2"``, ``"1-3"``, ``"1,3"`` or ``[1, 3]``."""
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple)):
        return tuple(_parse_int("priceRange", v, default=0) for v in value)  # type: ignore[return-value]
    if isinstance(value, str):
        text = value.strip()
        for sep in ("-", ","):
            if sep in text:
                return tuple(_parse_int("priceRange", part, default=0) for part in text.split(sep))  # type: ignore[return-value]
        return _parse_int("priceRange", text, default=0)
    return _parse_int("priceRange", value, default=0)
