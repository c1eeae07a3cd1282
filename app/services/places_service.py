import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import httpx

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"

DETAIL_FIELDS = [
    "name",
    "formatted_address",
    "formatted_phone_number",
    "website",
    "rating",
    "user_ratings_total",
    "url",
]


class PlacesAPIError(Exception):
    """Raised when the places provider rejects or fails a search."""


@dataclass
class PlaceResult:
    business_name: str
    google_url: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None  # the provider never supplies one
    address: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _check_status(data: dict, query: str) -> None:
    """Translate a Places status code into a readable error."""
    status = data.get("status", "")
    if status == "REQUEST_DENIED":
        raise PlacesAPIError(
            f"Google Places API error: {data.get('error_message') or 'REQUEST_DENIED - Check API key configuration'}"
        )
    if status == "OVER_QUERY_LIMIT":
        raise PlacesAPIError("Google Places API quota exceeded. Please try again later.")
    if status == "INVALID_REQUEST":
        raise PlacesAPIError(f'Invalid search query: "{query}"')
    if status not in ("OK", "ZERO_RESULTS"):
        raise PlacesAPIError(f"Google Places API error: {status or 'unknown status'}")


class PlacesClient:
    """Text-search client for the Google Places web service.

    Constructed explicitly (see ``from_settings``) and handed to the scrape
    orchestrator, so tests can swap in any object exposing ``search``.
    """

    def __init__(
        self,
        api_key: str,
        max_results: int = 20,
        details_delay: float = 0.1,
        timeout: float = 15.0,
    ):
        self.api_key = api_key
        self.max_results = max_results
        self.details_delay = details_delay
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "PlacesClient":
        return cls(
            api_key=settings.get_api_key("google_places"),
            max_results=settings.PLACES_MAX_RESULTS,
            details_delay=settings.PLACES_DETAILS_DELAY_SECONDS,
            timeout=settings.PLACES_TIMEOUT_SECONDS,
        )

    async def search(self, query: str) -> list[PlaceResult]:
        """Return up to ``max_results`` places matching ``query``."""
        if not self.api_key:
            raise PlacesAPIError("Google Places API key is not configured. Please add it in Settings.")

        logger.info(f'[Google Places] Starting search for: "{query}"')

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    TEXT_SEARCH_URL, params={"query": query, "key": self.api_key}
                )
                response.raise_for_status()
                data = response.json()
                _check_status(data, query)

                places = data.get("results", [])[: self.max_results]
                logger.info(f"[Google Places] Found {len(places)} results for \"{query}\"")

                results = []
                for place in places:
                    result = await self._details(client, place)
                    if result:
                        results.append(result)
                    if self.details_delay:
                        await asyncio.sleep(self.details_delay)
        except httpx.TimeoutException:
            raise PlacesAPIError(f"Google Places API timed out after {self.timeout:g} seconds")
        except httpx.HTTPStatusError as e:
            raise PlacesAPIError(f"Google Places API error: HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            raise PlacesAPIError(f"Google Places API error: {e}")

        logger.info(f"[Google Places] Search completed. Total results: {len(results)}")
        return results

    async def _details(self, client: httpx.AsyncClient, place: dict) -> Optional[PlaceResult]:
        """Fetch details for one place; a failed lookup skips the place."""
        place_id = place.get("place_id")
        if not place_id:
            return None

        try:
            response = await client.get(
                DETAILS_URL,
                params={
                    "place_id": place_id,
                    "fields": ",".join(DETAIL_FIELDS),
                    "key": self.api_key,
                },
            )
            response.raise_for_status()
            details = response.json().get("result") or {}
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[Google Places] Error fetching details for place {place_id}: {e}")
            return None

        return PlaceResult(
            business_name=details.get("name") or place.get("name") or "Unknown",
            google_url=details.get("url"),
            website=details.get("website"),
            phone=details.get("formatted_phone_number"),
            address=details.get("formatted_address") or place.get("formatted_address"),
            rating=details.get("rating"),
            review_count=details.get("user_ratings_total"),
        )


async def test_api_key(api_key: str) -> dict:
    """Test a Google Places API key with a one-result text search."""
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.get(TEXT_SEARCH_URL, params={"query": "coffee", "key": api_key})
            response.raise_for_status()
            _check_status(response.json(), "coffee")
        return {
            "service": "google_places",
            "status": "valid",
            "message": "Google Places API key is valid. Test search succeeded.",
        }
    except httpx.HTTPStatusError as e:
        return {
            "service": "google_places",
            "status": "invalid",
            "message": f"API key validation failed: HTTP {e.response.status_code} - {e.response.text[:200]}",
        }
    except Exception as e:
        return {
            "service": "google_places",
            "status": "invalid",
            "message": f"API key validation failed: {str(e)}",
        }


def get_search_provider() -> PlacesClient:
    """FastAPI dependency building a places client from the current settings."""
    return PlacesClient.from_settings(settings)
