import asyncio

import httpx
import pytest

from app.core.config import Settings
from app.services import places_service
from app.services.places_service import PlacesAPIError, PlacesClient

HOST = "maps.googleapis.com"
TEXT_SEARCH = "/maps/api/place/textsearch/json"
DETAILS = "/maps/api/place/details/json"


def _search(query, **kwargs):
    client = PlacesClient(api_key="test-key", details_delay=0, **kwargs)
    return asyncio.run(client.search(query))


def _details_for(request):
    place_id = request.url.params["place_id"]
    if place_id == "broken":
        return httpx.Response(500)
    return httpx.Response(
        200,
        json={
            "status": "OK",
            "result": {
                "name": f"Cafe {place_id}",
                "formatted_address": f"{place_id} Main St",
                "formatted_phone_number": "555-0100",
                "website": f"https://{place_id}.example.org",
                "rating": 4.2,
                "user_ratings_total": 88,
                "url": f"https://maps.google.com/?cid={place_id}",
            },
        },
    )


def _found(*place_ids):
    return {"status": "OK", "results": [{"place_id": p} for p in place_ids]}


class TestSearch:
    def test_search_returns_place_details(self, http):
        http.add(HOST, TEXT_SEARCH, json=_found("a1", "b2"))
        http.add(HOST, DETAILS, handler=_details_for)

        places = _search("coffee in portland")

        assert http.calls(HOST, TEXT_SEARCH)[0].url.params["query"] == "coffee in portland"
        assert [p.business_name for p in places] == ["Cafe a1", "Cafe b2"]
        first = places[0]
        assert first.address == "a1 Main St"
        assert first.phone == "555-0100"
        assert first.website == "https://a1.example.org"
        assert first.rating == 4.2
        assert first.review_count == 88
        assert first.google_url == "https://maps.google.com/?cid=a1"
        assert first.email is None

    def test_results_are_capped(self, http):
        http.add(HOST, TEXT_SEARCH, json=_found("p0", "p1", "p2", "p3", "p4"))
        http.add(HOST, DETAILS, handler=_details_for)

        places = _search("coffee", max_results=2)

        assert len(places) == 2
        assert len(http.calls(HOST, DETAILS)) == 2

    def test_failed_details_call_skips_place(self, http):
        http.add(HOST, TEXT_SEARCH, json=_found("broken", "ok"))
        http.add(HOST, DETAILS, handler=_details_for)

        assert [p.business_name for p in _search("coffee")] == ["Cafe ok"]

    def test_zero_results(self, http):
        http.add(HOST, TEXT_SEARCH, json={"status": "ZERO_RESULTS", "results": []})
        assert _search("nothing here") == []

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"status": "REQUEST_DENIED", "error_message": "The provided API key is invalid."}, "The provided API key is invalid."),
            ({"status": "REQUEST_DENIED"}, "Check API key configuration"),
            ({"status": "OVER_QUERY_LIMIT"}, "quota exceeded"),
            ({"status": "INVALID_REQUEST"}, 'Invalid search query: "coffee"'),
            ({"status": "UNKNOWN_ERROR"}, "UNKNOWN_ERROR"),
        ],
    )
    def test_error_statuses_raise(self, http, payload, message):
        http.add(HOST, TEXT_SEARCH, json=payload)
        with pytest.raises(PlacesAPIError, match=message):
            _search("coffee")

    def test_http_error_raises(self, http):
        http.add(HOST, TEXT_SEARCH, status_code=502)
        with pytest.raises(PlacesAPIError, match="HTTP 502"):
            _search("coffee")

    def test_timeout_raises(self, http):
        http.add(HOST, TEXT_SEARCH, error=httpx.ReadTimeout("slow"))
        with pytest.raises(PlacesAPIError, match="timed out after 3 seconds"):
            _search("coffee", timeout=3)

    def test_missing_key_raises(self):
        with pytest.raises(PlacesAPIError, match="not configured"):
            asyncio.run(PlacesClient(api_key="").search("coffee"))


class TestKeyCheck:
    def test_valid_key(self, http):
        http.add(HOST, TEXT_SEARCH, json={"status": "OK", "results": []})
        assert asyncio.run(places_service.test_api_key("good"))["status"] == "valid"

    def test_denied_key(self, http):
        http.add(HOST, TEXT_SEARCH, json={"status": "REQUEST_DENIED"})
        result = asyncio.run(places_service.test_api_key("bad"))
        assert result["status"] == "invalid"
        assert "REQUEST_DENIED" in result["message"]


def test_client_built_from_settings(engine):
    client = PlacesClient.from_settings(
        Settings(GOOGLE_PLACES_API_KEY="env-key", PLACES_MAX_RESULTS=5, PLACES_DETAILS_DELAY_SECONDS=0)
    )
    assert client.api_key == "env-key"
    assert client.max_results == 5
    assert client.details_delay == 0
