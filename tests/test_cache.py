import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from bitebase.core.errors import ProviderUnavailableError
from bitebase.core.models import DATA_SOURCE_EXTERNAL, Coordinates
from bitebase.providers.base import ExternalProvider
from bitebase.providers.cache import CachedProvider, cache_key

CENTER = Coordinates(13.7563, 100.5018)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CountingProvider(ExternalProvider):
    name = "counting"

    def __init__(self, make_record, fail=False):
        self.make_record = make_record
        self.fail = fail
        self.calls = 0

    def nearby_search(self, center, radius_meters, keyword=None):
        self.calls += 1
        if self.fail:
            raise ProviderUnavailableError("quota exceeded")
        return [self.make_record(id=f"gp_{self.calls}", data_source=DATA_SOURCE_EXTERNAL)]


def test_cache_key_normalizes_inputs():
    assert cache_key(Coordinates(13.756301, 100.501799), 1000, " Thai ") == (13.7563, 100.5018, 1000.0, "thai")
    assert cache_key(CENTER, 1000, None) == cache_key(CENTER, 1000.0, "")


def test_cached_provider_serves_hits_until_expiry(make_record):
    inner = CountingProvider(make_record)
    clock = FakeClock()
    cached = CachedProvider(inner, ttl_seconds=120, clock=clock)

    first = cached.nearby_search(CENTER, 1000, "thai")
    clock.now += 119
    second = cached.nearby_search(CENTER, 1000, "THAI")

    assert inner.calls == 1
    assert [r.id for r in first] == [r.id for r in second] == ["gp_1"]
    assert (cached.hits, cached.misses) == (1, 1)

    clock.now += 2
    third = cached.nearby_search(CENTER, 1000, "thai")
    assert inner.calls == 2
    assert [r.id for r in third] == ["gp_2"]


def test_cached_provider_keys_by_radius_and_keyword(make_record):
    inner = CountingProvider(make_record)
    cached = CachedProvider(inner, clock=FakeClock())

    cached.nearby_search(CENTER, 1000)
    cached.nearby_search(CENTER, 2000)
    cached.nearby_search(CENTER, 1000, "sushi")

    assert inner.calls == 3
    assert len(cached) == 3


def test_cached_provider_does_not_cache_failures(make_record):
    inner = CountingProvider(make_record, fail=True)
    cached = CachedProvider(inner, clock=FakeClock())

    with pytest.raises(ProviderUnavailableError):
        cached.nearby_search(CENTER, 1000)
    with pytest.raises(ProviderUnavailableError):
        cached.nearby_search(CENTER, 1000)

    assert inner.calls == 2
    assert len(cached) == 0


def test_cached_provider_evicts_oldest_when_full(make_record):
    inner = CountingProvider(make_record)
    clock = FakeClock()
    cached = CachedProvider(inner, ttl_seconds=120, max_entries=2, clock=clock)

    cached.nearby_search(CENTER, 100)
    clock.now += 1
    cached.nearby_search(CENTER, 200)
    clock.now += 1
    cached.nearby_search(CENTER, 300)

    assert len(cached) == 2
    cached.nearby_search(CENTER, 200)
    assert inner.calls == 3
    cached.nearby_search(CENTER, 100)
    assert inner.calls == 4


def test_cached_provider_reports_inner_name(make_record):
    assert CachedProvider(CountingProvider(make_record)).name == "counting"


def test_concurrent_misses_share_one_upstream_call(make_record):
    started = threading.Event()
    release = threading.Event()

    class SlowProvider(ExternalProvider):
        name = "slow"

        def __init__(self):
            self.calls = 0

        def nearby_search(self, center, radius_meters, keyword=None):
            self.calls += 1
            started.set()
            assert release.wait(timeout=5)
            return [make_record(id="gp_shared", data_source=DATA_SOURCE_EXTERNAL)]

    inner = SlowProvider()
    cached = CachedProvider(inner)

    with ThreadPoolExecutor(max_workers=4) as pool:
        leader = pool.submit(cached.nearby_search, CENTER, 1000)
        assert started.wait(timeout=5)
        followers = [pool.submit(cached.nearby_search, CENTER, 1000) for _ in range(3)]
        release.set()
        results = [leader.result(timeout=5)] + [f.result(timeout=5) for f in followers]

    assert inner.calls == 1
    assert all([r.id for r in result] == ["gp_shared"] for result in results)


def test_concurrent_waiters_see_the_same_failure():
    started = threading.Event()
    release = threading.Event()

    class FailingProvider(ExternalProvider):
        name = "failing"

        def __init__(self):
            self.calls = 0

        def nearby_search(self, center, radius_meters, keyword=None):
            self.calls += 1
            started.set()
            assert release.wait(timeout=5)
            raise ProviderUnavailableError("upstream 503")

    inner = FailingProvider()
    cached = CachedProvider(inner)

    with ThreadPoolExecutor(max_workers=2) as pool:
        leader = pool.submit(cached.nearby_search, CENTER, 1000)
        assert started.wait(timeout=5)
        follower = pool.submit(cached.nearby_search, CENTER, 1000)
        release.set()
        with pytest.raises(ProviderUnavailableError):
            leader.result(timeout=5)
        with pytest.raises(ProviderUnavailableError):
            follower.result(timeout=5)

    assert inner.calls <= 2
    assert len(cached) == 0
