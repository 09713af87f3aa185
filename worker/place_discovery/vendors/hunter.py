"""Client for Hunter's domain search endpoint."""

import logging
from typing import Any, Dict, List

import requests

from place_discovery.core.errors import ProviderError
from place_discovery.vendors.http import RetryPolicy, get_with_backoff

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_DOMAIN_SEARCH_URL = "https://api.hunter.io/v2/domain-search"


class HunterError(ProviderError):
    """Raised when Hunter cannot be reached or rejects the request."""


def domain_search(domain: str, api_key: str, policy: RetryPolicy = RetryPolicy()) -> List[Dict[str, Any]]:
    """Return personal e-mails Hunter knows for ``domain`` as ``{value, confidence, source}`` dicts."""
    params = {"domain": domain, "api_key": api_key, "type": "personal"}
    try:
        response = get_with_backoff(_SESSION, _DOMAIN_SEARCH_URL, params, policy)
    except requests.RequestException as exc:
        raise HunterError(f"domain_search request failed ({exc.__class__.__name__})") from exc
    if response.status_code >= 400:
        raise HunterError(f"domain_search failed with HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise HunterError("domain_search returned a non-JSON body") from exc

    emails = ((payload or {}).get("data") or {}).get("emails") or []
    return [
        {"value": item.get("value"), "confidence": item.get("confidence"), "source": "hunter"}
        for item in emails
        if isinstance(item, dict) and item.get("value")
    ]
