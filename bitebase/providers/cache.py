"""Short-lived cache in front of an external provider.

Entries expire after ``ttl_seconds``. Concurrent misses for the same key
share one upstream call: the first caller fetches, the rest wait on its
future. Failures are never cached; every waiter sees the same exception.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from bitebase.core.models import Coordinates, RestaurantRecord
from bitebase.providers.base import ExternalProvider

logger = logging.getLogger(__name__)

CacheKey = Tuple[float, float, float, str]


def cache_key(center: Coordinates, radius_meters: float, keyword: Optional[str]) -> CacheKey:
    return (
        round(center.latitude, 5),
        round(center.longitude, 5),
        float(radius_meters),
        (keyword or "").strip().lower(),
    )


class CachedProvider(ExternalProvider):
    def __init__(
        self,
        provider: ExternalProvider,
        ttl_seconds: float = 120.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Tuple[float, List[RestaurantRecord]]] = {}
        self._in_flight: Dict[Hashable, Future] = {}
        self.hits = 0
        self.misses = 0

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.provider.name

    def __len__(self) -> int:
        return len(self._entries)

    def nearby_search(
        self, center: Coordinates, radius_meters: float, keyword: Optional[str] = None
    ) -> List[RestaurantRecord]:
        key = cache_key(center, radius_meters, keyword)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                expires_at, records = entry
                if expires_at > self._clock():
                    self.hits += 1
                    return list(records)
                del self._entries[key]

            future = self._in_flight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._in_flight[key] = future
                self.misses += 1

        if not leader:
            logger.debug("Waiting on in-flight provider call for %s", key)
            return list(future.result())

        try:
            records = self.provider.nearby_search(center, radius_meters, keyword)
        except BaseException as exc:
            with self._lock:
                self._in_flight.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._evict_locked()
            self._entries[key] = (self._clock() + self.ttl_seconds, list(records))
            self._in_flight.pop(key, None)
        future.set_result(records)
        return list(records)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_locked(self) -> None:
        if len(self._entries) < self.max_entries:
            return
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
        overflow = len(self._entries) - self.max_entries + 1
        if overflow > 0:
            # oldest first: entries share one TTL, so earliest expiry == oldest insert
            for key, _ in sorted(self._entries.items(), key=lambda kv: kv[1][0])[:overflow]:
                del self._entries[key]
