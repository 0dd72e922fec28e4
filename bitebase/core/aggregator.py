"""Merge persisted and external restaurants into one search result."""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from itertools import combinations
from typing import Dict, Iterable, List, Optional

from bitebase.core.errors import ProviderUnavailableError
from bitebase.core.geo import distance_meters
from bitebase.core.models import (
    DATA_SOURCE_EXTERNAL,
    DATA_SOURCE_LOCAL,
    Coordinates,
    RestaurantRecord,
    SearchParams,
    SearchResult,
)
from bitebase.providers.base import ExternalProvider, NullProvider
from bitebase.stores.base import PersistedStore

logger = logging.getLogger(__name__)

DEDUP_PROXIMITY_METERS = 50.0


class RestaurantAggregator:
    """Stateless search over a persisted store and an external provider.

    The store and provider are injected; the aggregator holds no per-search
    state, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        store: PersistedStore,
        provider: Optional[ExternalProvider] = None,
        external_timeout: float = 5.0,
        executor: Optional[ThreadPoolExecutor] = None,
        dedup_proximity_meters: float = DEDUP_PROXIMITY_METERS,
    ) -> None:
        self.store = store
        self.provider = provider or NullProvider()
        self.external_timeout = external_timeout
        self.dedup_proximity_meters = dedup_proximity_meters
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=8, thread_name_prefix="external-search")

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def search(self, params: SearchParams) -> SearchResult:
        ordered = self.collect(params)
        page = ordered[params.offset : params.offset + params.limit]
        sources = {
            DATA_SOURCE_LOCAL: sum(1 for r in ordered if r.data_source == DATA_SOURCE_LOCAL),
            DATA_SOURCE_EXTERNAL: sum(1 for r in ordered if r.data_source == DATA_SOURCE_EXTERNAL),
        }
        return SearchResult(restaurants=page, total=len(ordered), sources=sources, search_params=params.to_dict())

    def collect(self, params: SearchParams) -> List[RestaurantRecord]:
        """Every merged, filtered and sorted record for ``params``, before pagination."""
        filters = params.filters

        external_future: Optional[Future] = None
        deadline = time.monotonic() + self.external_timeout
        if params.include_external:
            external_future = self._executor.submit(
                self.provider.nearby_search, params.center, params.radius_meters, params.keyword
            )

        try:
            local = self.store.find_near(params.center, params.radius_meters, filters)
        except Exception:
            if external_future is not None:
                external_future.cancel()
            raise

        external: List[RestaurantRecord] = []
        if external_future is not None:
            external = self._collect_external(external_future, deadline)

        candidates = annotate_within_radius(params.center, params.radius_meters, [*local, *external])
        merged = deduplicate(candidates, self.dedup_proximity_meters)
        matched = [record for record in merged if filters.matches(record)]
        ordered = sort_records(matched, params.sort_by)
        logger.info(
            "Search at (%.5f, %.5f) r=%sm: %d local, %d external candidates -> %d results",
            params.center.latitude,
            params.center.longitude,
            params.radius_meters,
            len(local),
            len(external),
            len(ordered),
        )
        return ordered

    def _collect_external(self, future: Future, deadline: float) -> List[RestaurantRecord]:
        remaining = max(0.0, deadline - time.monotonic())
        try:
            return list(future.result(timeout=remaining))
        except ProviderUnavailableError as exc:
            logger.warning("Degraded search: %s provider unavailable, serving local results only (%s)", self.provider.name, exc)
        except FuturesTimeoutError:
            future.cancel()
            logger.warning(
                "Degraded search: %s provider timed out after %.1fs, serving local results only",
                self.provider.name,
                self.external_timeout,
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Degraded search: %s provider failed unexpectedly, serving local results only", self.provider.name
            )
        return []


def annotate_within_radius(
    center: Coordinates, radius_meters: float, records: Iterable[RestaurantRecord]
) -> List[RestaurantRecord]:
    """Recompute distance from ``center`` and drop anything outside the radius.

    Providers and some stores are radius-inexact, so this runs on every record.
    """
    kept: List[RestaurantRecord] = []
    for record in records:
        distance = distance_meters(center, record.coordinates)
        if distance <= radius_meters:
            kept.append(record.with_distance(distance))
        else:
            logger.debug("Dropping %s (%s): %.0fm is outside %.0fm", record.id, record.data_source, distance, radius_meters)
    return kept


def _preference(record: RestaurantRecord):
    return (
        0 if record.data_source == DATA_SOURCE_LOCAL else 1,
        -(record.review_count or 0),
        record.id,
    )


def deduplicate(
    records: List[RestaurantRecord], proximity_meters: float = DEDUP_PROXIMITY_METERS
) -> List[RestaurantRecord]:
    """Collapse records describing the same real-world restaurant.

    Two records match when they share an external place id, or have the same
    case-insensitive name within ``proximity_meters``. Matches are transitive.
    Each group keeps one record: local over external, then more reviews, then
    the smaller id.
    """
    parent = list(range(len(records)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    def union(a: int, b: int) -> None:
        root_a, root_b = find(a), find(b)
        if root_a != root_b:
            parent[max(root_a, root_b)] = min(root_a, root_b)

    by_external_id: Dict[str, int] = {}
    by_name: Dict[str, List[int]] = defaultdict(list)
    for index, record in enumerate(records):
        external_id = record.external_id
        if external_id:
            if external_id in by_external_id:
                union(index, by_external_id[external_id])
            else:
                by_external_id[external_id] = index
        by_name[record.name.casefold()].append(index)

    for indices in by_name.values():
        for a, b in combinations(indices, 2):
            if distance_meters(records[a].coordinates, records[b].coordinates) <= proximity_meters:
                union(a, b)

    groups: Dict[int, List[RestaurantRecord]] = defaultdict(list)
    for index, record in enumerate(records):
        groups[find(index)].append(record)

    winners = []
    for group in groups.values():
        winner = min(group, key=_preference)
        if len(group) > 1:
            logger.debug("Merged %d duplicates of %r into %s", len(group), winner.name, winner.id)
        winners.append(winner)
    return winners


def sort_records(records: Iterable[RestaurantRecord], sort_by: str) -> List[RestaurantRecord]:
    """Order results; ties always fall back to ``id`` so output is deterministic."""
    if sort_by == "distance":
        key = lambda r: (r.distance_meters, r.id)  # noqa: E731
    elif sort_by == "rating":
        key = lambda r: (-r.rating, r.id)  # noqa: E731
    elif sort_by == "price_low":
        key = lambda r: (r.price_level is None, r.price_level or 0, r.id)  # noqa: E731
    elif sort_by == "price_high":
        key = lambda r: (r.price_level is None, -(r.price_level or 0), r.id)  # noqa: E731
    else:
        raise ValueError(f"unsupported sort option {sort_by!r}")
    return sorted(records, key=key)
