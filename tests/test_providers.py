import pytest
import requests

from bitebase.core.errors import ProviderUnavailableError
from bitebase.core.models import Coordinates
from bitebase.etl.transform import from_google_place
from bitebase.providers import google_places as google_provider
from bitebase.providers import serpapi as serpapi_provider
from bitebase.providers.base import NullProvider, build_records
from bitebase.vendors import serpapi_maps

CENTER = Coordinates(13.7563, 100.5018)


def _place(place_id, lat=13.7563, lng=100.5018, name=None):
    return {
        "place_id": place_id,
        "name": name or f"Place {place_id}",
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "types": ["restaurant"],
    }


def test_null_provider_returns_nothing():
    assert NullProvider().nearby_search(CENTER, 1000) == []


def test_build_records_skips_invalid_rows(caplog):
    items = [_place("a"), _place("b", lat=123), {"name": "no id"}]
    with caplog.at_level("INFO"):
        records = build_records(items, from_google_place, "google_places")
    assert [r.external_id for r in records] == ["a"]
    assert "Rejected 2 google_places results" in " ".join(caplog.messages)


def test_google_provider_follows_page_tokens(monkeypatch):
    calls = []

    def fake_nearby_search(lat, lng, radius, api_key, keyword=None, pagetoken=None, timeout=10):
        calls.append(pagetoken)
        if pagetoken is None:
            return {"status": "OK", "results": [_place("1"), _place("2")], "next_page_token": "t2"}
        return {"status": "OK", "results": [_place("3")]}

    sleeps = []
    monkeypatch.setattr(google_provider.google_places, "nearby_search", fake_nearby_search)
    monkeypatch.setattr(google_provider.time, "sleep", sleeps.append)

    provider = google_provider.GooglePlacesProvider("key", max_pages=3)
    records = provider.nearby_search(CENTER, 1000, keyword="thai")

    assert [r.external_id for r in records] == ["1", "2", "3"]
    assert all(r.data_source == "external" for r in records)
    assert calls == [None, "t2"]
    assert sleeps == [google_provider.PAGE_TOKEN_DELAY_SECONDS]


def test_google_provider_stops_at_max_pages(monkeypatch):
    calls = []

    def fake_nearby_search(lat, lng, radius, api_key, keyword=None, pagetoken=None, timeout=10):
        calls.append(pagetoken)
        return {"status": "OK", "results": [_place(f"p{len(calls)}")], "next_page_token": "more"}

    monkeypatch.setattr(google_provider.google_places, "nearby_search", fake_nearby_search)
    monkeypatch.setattr(google_provider.time, "sleep", lambda _: None)

    records = google_provider.GooglePlacesProvider("key", max_pages=1).nearby_search(CENTER, 1000)

    assert len(calls) == 1
    assert len(records) == 1


@pytest.mark.parametrize(
    "error",
    [requests.ConnectionError("down"), google_provider.google_places.GooglePlacesError("OVER_QUERY_LIMIT")],
)
def test_google_provider_translates_failures(monkeypatch, error):
    def boom(*args, **kwargs):
        raise error

    monkeypatch.setattr(google_provider.google_places, "nearby_search", boom)

    with pytest.raises(ProviderUnavailableError):
        google_provider.GooglePlacesProvider("key").nearby_search(CENTER, 1000)


def test_google_provider_requires_key():
    with pytest.raises(ProviderUnavailableError):
        google_provider.GooglePlacesProvider("").nearby_search(CENTER, 1000)


def test_serpapi_provider_builds_query_and_records(monkeypatch):
    captured = {}

    def fake_fetch(params, retry_limit):
        captured["params"] = params
        captured["retry_limit"] = retry_limit
        return {
            "local_results": [
                {
                    "place_id": "s1",
                    "title": "Som Tam",
                    "gps_coordinates": {"latitude": 13.757, "longitude": 100.502},
                    "type": "Thai restaurant",
                },
                {"place_id": "s2", "title": "No coordinates"},
            ]
        }

    monkeypatch.setattr(serpapi_provider.serpapi_maps, "fetch_from_serpapi", fake_fetch)

    provider = serpapi_provider.SerpApiProvider("key", country_code="TH")
    records = provider.nearby_search(CENTER, 2000, keyword="papaya salad")

    assert captured["params"]["q"] == "papaya salad restaurant"
    assert captured["params"]["gl"] == "th"
    assert captured["retry_limit"] == 0
    assert [r.name for r in records] == ["Som Tam"]


def test_serpapi_provider_translates_failures(monkeypatch):
    def boom(params, retry_limit):
        raise serpapi_maps.SerpApiError("quota exhausted")

    monkeypatch.setattr(serpapi_provider.serpapi_maps, "fetch_from_serpapi", boom)

    with pytest.raises(ProviderUnavailableError, match="quota exhausted"):
        serpapi_provider.SerpApiProvider("key").nearby_search(CENTER, 1000)


@pytest.mark.parametrize("radius", [float("inf"), float("nan")])
def test_serpapi_provider_rejects_unusable_radius(monkeypatch, radius):
    calls = []
    monkeypatch.setattr(serpapi_provider.serpapi_maps, "fetch_from_serpapi", lambda *a, **k: calls.append(a))

    with pytest.raises(ProviderUnavailableError):
        serpapi_provider.SerpApiProvider("key").nearby_search(CENTER, radius)
    assert calls == []
