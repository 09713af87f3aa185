"""Utilities for transforming Google Places responses into place records."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from place_discovery.core.models import PlaceRecord

logger = logging.getLogger(__name__)

SOURCE_GOOGLE = "google"

_IGNORE_TYPES = {"point_of_interest", "establishment", "political", "premise"}


def parse_city_country(address_components: Iterable[Dict[str, Any]]) -> Tuple[Optional[str], Optional[str]]:
    city = None
    country = None
    for component in address_components or []:
        types = set(component.get("types", []))
        if "locality" in types or "administrative_area_level_2" in types:
            city = component.get("long_name")
        if "country" in types:
            country = component.get("long_name")
    return city, country


def guess_locality(address: Optional[str]) -> Optional[str]:
    """Second comma-separated part of a formatted address, e.g. the city in "Via Roma 1, 00100 Roma RM, Italy"."""
    if not address:
        return None
    parts = [part.strip() for part in address.split(",") if part.strip()]
    if len(parts) >= 2:
        return parts[1]
    return None


def primary_category(categories: Iterable[str]) -> Optional[str]:
    for type_name in categories or []:
        if type_name not in _IGNORE_TYPES:
            return type_name
    return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _opening_hours(raw: Any) -> List[str]:
    if not isinstance(raw, dict):
        return []
    return [str(line) for line in raw.get("weekday_text") or []]


def to_place_record(result: Dict[str, Any]) -> PlaceRecord:
    """Normalise a Place Details ``result`` object."""
    location = (result.get("geometry") or {}).get("location") or {}
    address = _strip_or_none(result.get("formatted_address"))
    city, _ = parse_city_country(result.get("address_components", []))
    place_id = result.get("place_id")

    return PlaceRecord(
        name=_strip_or_none(result.get("name")),
        address=address,
        latitude=_safe_float(location.get("lat")),
        longitude=_safe_float(location.get("lng")),
        phone=_strip_or_none(result.get("international_phone_number") or result.get("formatted_phone_number")),
        website=_strip_or_none(result.get("website")),
        rating=_safe_float(result.get("rating")),
        review_count=_safe_int(result.get("user_ratings_total")),
        locality=city or guess_locality(address),
        opening_hours=_opening_hours(result.get("opening_hours")),
        categories=[str(item) for item in result.get("types") or []],
        source_ids={SOURCE_GOOGLE: str(place_id)} if place_id else {},
        sources=[SOURCE_GOOGLE],
    )
