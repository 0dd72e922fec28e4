"""Persisted store contract consumed by the aggregator."""

from __future__ import annotations

import abc
import logging
from typing import Iterable, List, Optional

from bitebase.core.geo import distance_meters
from bitebase.core.models import Coordinates, RestaurantRecord, SearchFilters

logger = logging.getLogger(__name__)


class PersistedStore(abc.ABC):
    """Read/write access to locally curated restaurants.

    ``find_near`` returns records tagged ``local``; ordering is up to the
    backend. Implementations raise PersistedStoreError on backend failures.
    """

    name = "abstract"

    @abc.abstractmethod
    def find_near(
        self, center: Coordinates, radius_meters: float, filters: SearchFilters
    ) -> List[RestaurantRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, restaurant_id: str) -> Optional[RestaurantRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    def upsert(self, record: RestaurantRecord) -> None:
        raise NotImplementedError


def filter_candidates(
    records: Iterable[RestaurantRecord],
    center: Coordinates,
    radius_meters: float,
    filters: SearchFilters,
) -> List[RestaurantRecord]:
    """Exact-distance and predicate filtering done in application code."""
    matched: List[RestaurantRecord] = []
    for record in records:
        distance = distance_meters(center, record.coordinates)
        if distance > radius_meters:
            continue
        if not filters.matches(record) or not filters.matches_keyword(record):
            continue
        matched.append(record.with_distance(distance))
    return matched
