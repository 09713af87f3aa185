"""Typed parsing of search requests."""

import math
from typing import Any, Dict, List, Mapping, Optional

from place_discovery.core.errors import ValidationError
from place_discovery.core.models import SearchParams

SEARCH_FIELDS = ("query", "lat", "lng", "radius_m", "limit", "name", "categories")

MIN_RADIUS_M = 50
MAX_RADIUS_M = 50000
MIN_LIMIT = 1
MAX_LIMIT = 200
MAX_TEXT_LENGTH = 255


class _FieldError(ValueError):
    pass


def _number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise _FieldError("must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise _FieldError("must be a number") from None
    if not math.isfinite(number):
        raise _FieldError("must be a finite number")
    return number


def _integer(value: Any) -> int:
    number = _number(value)
    if not number.is_integer():
        raise _FieldError("must be an integer")
    return int(number)


def _bounded(number, low, high):
    if number < low or number > high:
        raise _FieldError(f"must be between {low} and {high}")
    return number


def _text(value: Any, required: bool) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip() and not required):
        if required:
            raise _FieldError("is required")
        return None
    if not isinstance(value, str):
        raise _FieldError("must be a string")
    text = value.strip()
    if not text:
        raise _FieldError("must not be empty")
    if len(text) > MAX_TEXT_LENGTH:
        raise _FieldError(f"must be at most {MAX_TEXT_LENGTH} characters")
    return text


def _categories(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise _FieldError("must be a list of strings")
    return [item.strip() for item in value if item.strip()]


_PARSERS = {
    "query": lambda v: _text(v, required=True),
    "lat": lambda v: _bounded(_number(v), -90.0, 90.0),
    "lng": lambda v: _bounded(_number(v), -180.0, 180.0),
    "radius_m": lambda v: _bounded(_integer(v), MIN_RADIUS_M, MAX_RADIUS_M),
    "limit": lambda v: None if v is None else _bounded(_integer(v), MIN_LIMIT, MAX_LIMIT),
    "name": lambda v: _text(v, required=False),
    "categories": _categories,
}


def parse_search_request(payload: Optional[Mapping[str, Any]]) -> SearchParams:
    """Validate the search payload field by field; unknown keys are ignored."""
    if payload is not None and not isinstance(payload, Mapping):
        raise ValidationError("request body must be a JSON object")
    payload = payload or {}

    values: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    for field_name in SEARCH_FIELDS:
        try:
            values[field_name] = _PARSERS[field_name](payload.get(field_name))
        except _FieldError as exc:
            errors[field_name] = str(exc)

    if errors:
        raise ValidationError("invalid search request", details=errors)
    return SearchParams(**values)


def clamp(value: Any, default: int, low: int, high: int) -> int:
    """Parse an optional integer query argument and clamp it into [low, high]."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    return max(low, min(high, number))
