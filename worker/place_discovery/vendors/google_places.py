"""Client utilities for the Google Places API."""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from place_discovery.core.errors import ProviderError
from place_discovery.core.models import PlaceRecord
from place_discovery.etl.transform import to_place_record
from place_discovery.vendors.http import RetryPolicy, get_with_backoff

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"

DETAIL_FIELDS = (
    "name,formatted_address,international_phone_number,website,rating,"
    "user_ratings_total,opening_hours,geometry,types,place_id,address_components"
)
DEFAULT_WARMUP_SECONDS = 1.5

# Google answers throttling with HTTP 200 and an in-band status.
_THROTTLED_STATUSES = {"OVER_QUERY_LIMIT"}


class GooglePlacesError(ProviderError):
    """Raised when the Places API returns a non-successful response."""


def _is_throttled(response: requests.Response) -> bool:
    try:
        payload = response.json()
    except ValueError:
        return False
    return isinstance(payload, dict) and payload.get("status") in _THROTTLED_STATUSES


def _get_payload(operation: str, url: str, params: Dict[str, Any], policy: RetryPolicy) -> Dict[str, Any]:
    # Error messages never echo the request URL: it carries the API key.
    try:
        response = get_with_backoff(_SESSION, url, params, policy, is_throttled=_is_throttled)
    except requests.RequestException as exc:
        logger.error("%s request failed: %s", operation, exc.__class__.__name__)
        raise GooglePlacesError(f"{operation} request failed ({exc.__class__.__name__})") from exc

    if response.status_code >= 400:
        raise GooglePlacesError(f"{operation} failed with HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise GooglePlacesError(f"{operation} returned a non-JSON body") from exc
    if not isinstance(payload, dict):
        raise GooglePlacesError(f"{operation} returned an unexpected payload")

    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("%s failed: status=%s, error_message=%s", operation, status, payload.get("error_message"))
        raise GooglePlacesError(f"{operation} failed: {payload.get('error_message') or status}")
    return payload


def text_search(
    query: str,
    api_key: str,
    location: Optional[Tuple[float, float]] = None,
    radius: Optional[int] = None,
    pagetoken: Optional[str] = None,
    policy: RetryPolicy = RetryPolicy(),
) -> Dict[str, Any]:
    params: Dict[str, Any] = {"query": query, "key": api_key}
    if location is not None:
        params["location"] = f"{location[0]},{location[1]}"
    if radius is not None:
        params["radius"] = radius
    if pagetoken:
        params["pagetoken"] = pagetoken
    return _get_payload("text_search", f"{_BASE_URL}/textsearch/json", params, policy)


def place_details(place_id: str, api_key: str, policy: RetryPolicy = RetryPolicy()) -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": DETAIL_FIELDS}
    payload = _get_payload("place_details", f"{_BASE_URL}/details/json", params, policy)
    result = payload.get("result") or {}
    if not isinstance(result, dict):
        raise GooglePlacesError("place_details returned an unexpected result")
    return result


def search_places(
    query: str,
    center: Tuple[float, float],
    radius_m: int,
    limit: int,
    credential: Optional[str],
    *,
    policy: RetryPolicy = RetryPolicy(),
    warmup_seconds: float = DEFAULT_WARMUP_SECONDS,
) -> List[PlaceRecord]:
    """Run a paginated text search and resolve each hit through Place Details.

    Results keep provider order and are not deduplicated. Returns an empty
    list when no credential is supplied.
    """
    if not credential:
        logger.warning("No Places credential supplied; skipping search for query=%s", query)
        return []

    records: List[PlaceRecord] = []
    page_token: Optional[str] = None
    page = 0

    while True:
        page += 1
        response = text_search(query, credential, location=center, radius=radius_m, pagetoken=page_token, policy=policy)
        results = response.get("results") or []
        logger.info("Fetched %d results on page %d for query=%s", len(results), page, query)

        for result in results:
            if len(records) >= limit:
                break
            place_id = result.get("place_id")
            if not place_id:
                logger.debug("Skipping result without place_id: %s", result)
                continue
            details = place_details(place_id, credential, policy=policy)
            records.append(to_place_record(details))

        page_token = response.get("next_page_token")
        if not page_token or len(records) >= limit:
            break
        # next_page_token is not queryable until Google has warmed it up.
        time.sleep(warmup_seconds)

    logger.info("Search finished: query=%s pages=%d records=%d", query, page, len(records))
    return records
