import pytest

from bitebase.vendors import google_places


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError("http error")

    def json(self):
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_places, "_SESSION", session)
    return session


def test_nearby_search_success(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "results": []})
    payload = google_places.nearby_search(13.7563, 100.5018, 1500.4, "key", keyword="thai")
    assert payload["status"] == "OK"
    url, params, timeout = patch_session.calls[0]
    assert "nearbysearch" in url
    assert params["location"] == "13.7563,100.5018"
    assert params["radius"] == 1500
    assert params["type"] == "restaurant"
    assert params["keyword"] == "thai"
    assert timeout == 10


def test_nearby_search_caps_radius_and_omits_empty_keyword(patch_session):
    patch_session.response = DummyResponse(payload={"status": "ZERO_RESULTS", "results": []})
    google_places.nearby_search(1.0, 2.0, 80_000, "key")
    _, params, _ = patch_session.calls[0]
    assert params["radius"] == 50000
    assert "keyword" not in params


def test_nearby_search_with_page_token_sends_only_token(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "results": []})
    google_places.nearby_search(1.0, 2.0, 100, "key", keyword="thai", pagetoken="next")
    _, params, _ = patch_session.calls[0]
    assert params == {"pagetoken": "next", "key": "key"}


def test_nearby_search_error_status(patch_session):
    patch_session.response = DummyResponse(payload={"status": "REQUEST_DENIED", "error_message": "bad key"})
    with pytest.raises(google_places.GooglePlacesError, match="bad key"):
        google_places.nearby_search(1.0, 2.0, 100, "key")


def test_nearby_search_http_error(patch_session):
    patch_session.response = DummyResponse(status_code=500)
    with pytest.raises(RuntimeError):
        google_places.nearby_search(1.0, 2.0, 100, "key")


def test_place_details_success(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "result": {"name": "Acme"}})
    result = google_places.place_details("pid", "key")
    assert result["name"] == "Acme"
    _, params, _ = patch_session.calls[0]
    assert params["place_id"] == "pid"
    assert "geometry" in params["fields"]


def test_place_details_error(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OVER_QUERY_LIMIT", "error_message": "limit"})
    with pytest.raises(google_places.GooglePlacesError):
        google_places.place_details("pid", "key")
