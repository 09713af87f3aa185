import pytest
import requests

from place_discovery.vendors import google_places
from place_discovery.vendors.http import RetryPolicy

FAST = RetryPolicy(max_attempts=5, base_delay_ms=2000, max_delay_ms=8000)


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    """Replays scripted responses by endpoint; the last one repeats."""

    def __init__(self):
        self.calls = []
        self.scripts = {"textsearch": [], "details": []}

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params or {}), timeout))
        endpoint = "textsearch" if "textsearch" in url else "details"
        script = self.scripts[endpoint]
        response = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_places, "_SESSION", session)
    return session


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    waits = []
    monkeypatch.setattr(google_places.time, "sleep", waits.append)
    return waits


def _details(place_id, name=None):
    return DummyResponse(
        payload={
            "status": "OK",
            "result": {
                "place_id": place_id,
                "name": name or f"Place {place_id}",
                "formatted_address": f"Via {place_id}, Roma",
                "geometry": {"location": {"lat": 41.9, "lng": 12.5}},
            },
        }
    )


def _page(ids, token=None):
    payload = {"status": "OK", "results": [{"place_id": pid} for pid in ids]}
    if token:
        payload["next_page_token"] = token
    return DummyResponse(payload=payload)


def test_text_search_success(patch_session):
    patch_session.scripts["textsearch"] = [DummyResponse(payload={"status": "OK", "results": []})]

    payload = google_places.text_search("pizza", "key", location=(41.9, 12.5), radius=1000)

    assert payload["status"] == "OK"
    url, params, timeout = patch_session.calls[0]
    assert "textsearch" in url
    assert params["query"] == "pizza"
    assert params["location"] == "41.9,12.5"
    assert params["radius"] == 1000
    assert timeout == 10


def test_text_search_error_status(patch_session):
    patch_session.scripts["textsearch"] = [DummyResponse(payload={"status": "INVALID_REQUEST", "error_message": "bad"})]

    with pytest.raises(google_places.GooglePlacesError) as excinfo:
        google_places.text_search("pizza", "secret-key")

    assert "bad" in str(excinfo.value)
    assert excinfo.value.kind == "provider_error"
    assert len(patch_session.calls) == 1


def test_place_details_success(patch_session):
    patch_session.scripts["details"] = [DummyResponse(payload={"status": "OK", "result": {"name": "Acme"}})]

    result = google_places.place_details("pid", "key")

    assert result["name"] == "Acme"
    _, params, _ = patch_session.calls[0]
    assert params["fields"] == google_places.DETAIL_FIELDS


def test_retries_rate_limits_with_linear_backoff(patch_session, sleeps):
    patch_session.scripts["textsearch"] = [
        DummyResponse(status_code=429),
        DummyResponse(status_code=503),
        DummyResponse(payload={"status": "OVER_QUERY_LIMIT"}),
        DummyResponse(payload={"status": "OK", "results": []}),
    ]

    payload = google_places.text_search("pizza", "key", policy=FAST)

    assert payload["status"] == "OK"
    assert len(patch_session.calls) == 4
    assert sleeps == [2.0, 4.0, 6.0]


def test_gives_up_after_five_attempts(patch_session, sleeps):
    patch_session.scripts["details"] = [DummyResponse(status_code=500)]

    with pytest.raises(google_places.GooglePlacesError) as excinfo:
        google_places.place_details("pid", "secret-key", policy=FAST)

    assert len(patch_session.calls) == 5
    assert sleeps == [2.0, 4.0, 6.0, 8.0]
    assert "HTTP 500" in str(excinfo.value)
    assert "secret-key" not in str(excinfo.value)


def test_throttled_payload_exhausts_budget(patch_session, sleeps):
    patch_session.scripts["details"] = [DummyResponse(payload={"status": "OVER_QUERY_LIMIT", "error_message": "limit"})]

    with pytest.raises(google_places.GooglePlacesError):
        google_places.place_details("pid", "key", policy=FAST)

    assert len(patch_session.calls) == 5


def test_client_errors_are_not_retried(patch_session, sleeps):
    patch_session.scripts["textsearch"] = [DummyResponse(status_code=403)]

    with pytest.raises(google_places.GooglePlacesError):
        google_places.text_search("pizza", "key", policy=FAST)

    assert len(patch_session.calls) == 1
    assert sleeps == []


def test_network_errors_hide_request_url(patch_session):
    patch_session.scripts["textsearch"] = [
        requests.ConnectionError("https://maps.googleapis.com/...?key=secret-key unreachable")
    ]

    with pytest.raises(google_places.GooglePlacesError) as excinfo:
        google_places.text_search("pizza", "secret-key")

    assert "ConnectionError" in str(excinfo.value)
    assert "secret-key" not in str(excinfo.value)


def test_non_json_body_is_a_provider_error(patch_session):
    patch_session.scripts["textsearch"] = [DummyResponse(payload=ValueError("not json"))]

    with pytest.raises(google_places.GooglePlacesError):
        google_places.text_search("pizza", "key")


def test_search_places_without_credential_returns_nothing(patch_session):
    assert google_places.search_places("pizza", (41.9, 12.5), 1000, 10, None) == []
    assert patch_session.calls == []


def test_search_places_follows_pages_after_warmup(patch_session, sleeps):
    patch_session.scripts["textsearch"] = [_page(["a", "b"], token="next"), _page(["c"])]
    patch_session.scripts["details"] = [_details("a"), _details("b"), _details("c")]

    records = google_places.search_places("pizza", (41.9, 12.5), 1000, 10, "key", policy=FAST, warmup_seconds=1.5)

    assert [record.source_ids["google"] for record in records] == ["a", "b", "c"]
    assert sleeps == [1.5]
    textsearch_calls = [params for url, params, _ in patch_session.calls if "textsearch" in url]
    assert "pagetoken" not in textsearch_calls[0]
    assert textsearch_calls[1]["pagetoken"] == "next"


def test_search_places_stops_at_limit(patch_session, sleeps):
    patch_session.scripts["textsearch"] = [_page(["a", "b", "c"], token="next")]
    patch_session.scripts["details"] = [_details("a"), _details("b")]

    records = google_places.search_places("pizza", (41.9, 12.5), 1000, 2, "key", policy=FAST)

    assert len(records) == 2
    assert sum(1 for url, _, _ in patch_session.calls if "textsearch" in url) == 1
    assert sleeps == []


def test_search_places_skips_results_without_place_id(patch_session):
    patch_session.scripts["textsearch"] = [
        DummyResponse(payload={"status": "OK", "results": [{"name": "ghost"}, {"place_id": "a"}]})
    ]
    patch_session.scripts["details"] = [_details("a")]

    records = google_places.search_places("pizza", (41.9, 12.5), 1000, 10, "key", policy=FAST)

    assert [record.name for record in records] == ["Place a"]


def test_non_object_body_is_a_provider_error(patch_session, sleeps):
    patch_session.scripts["textsearch"] = [DummyResponse(payload=["unexpected"])]

    with pytest.raises(google_places.GooglePlacesError) as excinfo:
        google_places.text_search("pizza", "key", policy=RetryPolicy(max_attempts=1, base_delay_ms=0, max_delay_ms=0))

    assert "unexpected payload" in str(excinfo.value)
    assert len(patch_session.calls) == 1


def test_place_details_rejects_non_object_result(patch_session):
    patch_session.scripts["details"] = [DummyResponse(payload={"status": "OK", "result": ["Acme"]})]

    with pytest.raises(google_places.GooglePlacesError):
        google_places.place_details("pid", "key")
