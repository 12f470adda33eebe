"""Scoring Engine - Duplicate likelihood between two geolocated issues

Score = category match (0.4) + proximity (up to 0.3) + title similarity (up to 0.3)

- Category: full weight on a case-insensitive match.
- Proximity: linear falloff from 0.3 at 0 m to 0 at the radius (100 m).
- Title: Jaccard similarity of lowercase word sets, words of 3+ characters.
"""
import math
from typing import Set

from ..domain.models import Issue

EARTH_RADIUS_METERS = 6_371_000

CATEGORY_WEIGHT = 0.4
PROXIMITY_WEIGHT = 0.3
TITLE_WEIGHT = 0.3
DEFAULT_RADIUS_METERS = 100.0
MIN_TOKEN_LENGTH = 3


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two lat/lng points"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def issue_distance(a: Issue, b: Issue) -> float:
    """Distance in meters between two geolocated issues"""
    if a.location is None or b.location is None:
        raise ValueError("Both issues need a location to measure distance")
    return haversine_distance(
        a.location.latitude, a.location.longitude,
        b.location.latitude, b.location.longitude,
    )


def title_tokens(title: str) -> Set[str]:
    """Lowercase whitespace-separated words, ignoring words of 1-2 characters"""
    return {word for word in (title or "").lower().split() if len(word) >= MIN_TOKEN_LENGTH}


def category_component(a: Issue, b: Issue) -> float:
    if (a.category or "").strip().lower() == (b.category or "").strip().lower():
        return CATEGORY_WEIGHT
    return 0.0


def proximity_component(distance_meters: float, radius_meters: float = DEFAULT_RADIUS_METERS) -> float:
    if distance_meters > radius_meters:
        return 0.0
    return PROXIMITY_WEIGHT * (1 - distance_meters / radius_meters)


def title_component(a: Issue, b: Issue) -> float:
    words_a = title_tokens(a.title)
    words_b = title_tokens(b.title)
    union = words_a | words_b
    if not union:
        return 0.0
    return TITLE_WEIGHT * len(words_a & words_b) / len(union)


def score(a: Issue, b: Issue, radius_meters: float = DEFAULT_RADIUS_METERS) -> float:
    """
    Duplicate likelihood in [0, 1], rounded to two decimals.

    Symmetric and side-effect free. Raises ValueError if either issue has no
    location.
    """
    distance = issue_distance(a, b)
    total = (
        category_component(a, b)
        + proximity_component(distance, radius_meters)
        + title_component(a, b)
    )
    return round(min(total, 1.0), 2)
