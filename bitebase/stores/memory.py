"""In-process store backed by a plain dict, used for development and tests."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from bitebase.core.errors import InvalidParameterError
from bitebase.core.models import DATA_SOURCE_LOCAL, Coordinates, RestaurantRecord, SearchFilters
from bitebase.stores.base import PersistedStore, filter_candidates

logger = logging.getLogger(__name__)


class InMemoryStore(PersistedStore):
    name = "memory"

    def __init__(self, records: Optional[Iterable[RestaurantRecord]] = None) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, RestaurantRecord] = {}
        for record in records or []:
            self.upsert(record)

    def __len__(self) -> int:
        return len(self._records)

    def find_near(
        self, center: Coordinates, radius_meters: float, filters: SearchFilters
    ) -> List[RestaurantRecord]:
        with self._lock:
            snapshot = list(self._records.values())
        matched = filter_candidates(snapshot, center, radius_meters, filters)
        logger.debug("In-memory store matched %d of %d restaurants", len(matched), len(snapshot))
        return matched

    def get(self, restaurant_id: str) -> Optional[RestaurantRecord]:
        with self._lock:
            return self._records.get(str(restaurant_id))

    def upsert(self, record: RestaurantRecord) -> None:
        if record.data_source != DATA_SOURCE_LOCAL:
            raise InvalidParameterError("only local restaurants can be persisted")
        with self._lock:
            self._records[record.id] = record.with_distance(None)
