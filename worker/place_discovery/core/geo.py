"""Distance, grid bucketing and name similarity helpers."""

import math
import re
from typing import Optional, Tuple

EARTH_RADIUS_METERS = 6371000.0

_WHITESPACE = re.compile(r"\s+")

Coordinates = Tuple[float, float]


def normalize_text(value: Optional[str]) -> str:
    """Lower-case, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", str(value or "")).strip().lower()


def distance_meters(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two (lat, lng) pairs using haversine."""
    lat1, lng1 = a
    lat2, lng2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    h = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def spatial_bucket(lat: float, lng: float) -> str:
    """Round to 3 decimals, roughly a 100-120 m cell."""
    return f"{lat:.3f},{lng:.3f}"


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Jaro-Winkler similarity in [0, 1] between two normalised names."""
    s1 = normalize_text(a)
    s2 = normalize_text(b)
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    # Greedy matching depends on argument order; fix it so the score is symmetric.
    if (len(s1), s1) > (len(s2), s2):
        s1, s2 = s2, s1

    window = max(0, max(len(s1), len(s2)) // 2 - 1)
    s1_matched = [False] * len(s1)
    s2_matched = [False] * len(s2)

    matches = 0
    for i, char in enumerate(s1):
        start = max(0, i - window)
        end = min(i + window + 1, len(s2))
        for j in range(start, end):
            if s2_matched[j] or s2[j] != char:
                continue
            s1_matched[i] = True
            s2_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, char in enumerate(s1):
        if not s1_matched[i]:
            continue
        while not s2_matched[k]:
            k += 1
        if char != s2[k]:
            transpositions += 1
        k += 1

    jaro = (matches / len(s1) + matches / len(s2) + (matches - transpositions / 2) / matches) / 3

    prefix = 0
    for c1, c2 in zip(s1[:4], s2[:4]):
        if c1 != c2:
            break
        prefix += 1

    return jaro + 0.1 * prefix * (1 - jaro)
