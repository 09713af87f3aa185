import pytest

from place_discovery.core.errors import ValidationError
from place_discovery.jobs.validation import clamp, parse_search_request

VALID = {"query": "bakery", "lat": 41.9, "lng": 12.5, "radius_m": 1000}


def test_parses_minimal_request():
    params = parse_search_request(dict(VALID))

    assert params.query == "bakery"
    assert params.radius_m == 1000
    assert params.limit is None
    assert params.effective_limit == 50


def test_parses_optional_fields_and_ignores_unknown_keys():
    params = parse_search_request(
        dict(VALID, limit="25", name="  Bakeries in Rome ", categories=["bakery", " "], debug=True)
    )

    assert params.limit == 25
    assert params.name == "Bakeries in Rome"
    assert params.categories == ["bakery"]


@pytest.mark.parametrize(
    "field,value,message",
    [
        ("query", None, "is required"),
        ("query", "   ", "must not be empty"),
        ("query", "x" * 256, "at most 255"),
        ("lat", 90.5, "between"),
        ("lat", "north", "must be a number"),
        ("lng", -181, "between"),
        ("lng", True, "must be a number"),
        ("radius_m", 49, "between"),
        ("radius_m", 50001, "between"),
        ("radius_m", 100.5, "must be an integer"),
        ("limit", 0, "between"),
        ("limit", 201, "between"),
        ("categories", "bakery", "list of strings"),
    ],
)
def test_rejects_invalid_fields(field, value, message):
    payload = dict(VALID)
    payload[field] = value

    with pytest.raises(ValidationError) as excinfo:
        parse_search_request(payload)

    assert excinfo.value.kind == "invalid_input"
    assert message in excinfo.value.details[field]


def test_reports_every_invalid_field():
    with pytest.raises(ValidationError) as excinfo:
        parse_search_request({"lat": 100})

    assert set(excinfo.value.details) == {"query", "lat", "lng", "radius_m"}


def test_rejects_non_object_body():
    with pytest.raises(ValidationError):
        parse_search_request(["bakery"])


def test_accepts_boundary_values():
    params = parse_search_request({"query": "q", "lat": -90, "lng": 180, "radius_m": 50000, "limit": 200})
    assert (params.lat, params.lng, params.radius_m, params.limit) == (-90.0, 180.0, 50000, 200)


@pytest.mark.parametrize(
    "value,expected",
    [(None, 20), ("abc", 20), ("5", 5), (0, 1), (1000, 200)],
)
def test_clamp(value, expected):
    assert clamp(value, 20, 1, 200) == expected
