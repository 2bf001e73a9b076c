"""
LoveConnect — Compatibility Scoring Engine

Pure functions over two profiles; no I/O and no hidden state.

Canonical tier (``score``), points out of 100::

    interest      = |common| / max(|a.interests|, |b.interests|, 1) × 40
    age           = max(0, 15 − |a.age − b.age| × 0.5)
    activity      = clamp(b.activity_score, 0, 1000) / 1000 × 15
    distance      = 15 when unknown, else max(0, 15 − distance / radius × 5)
    completeness  = clamp(b.profile_completeness, 0, 100) / 100 × 10
    relationship  = +5 when both relationship types are set and equal

Fallback tier (``quick_score``) for profiles without enrichment data::

    50 + (20 if Δage ≤ 5 else 10 if Δage ≤ 10) + ratio × 30 + 10 (same type)
"""

from __future__ import annotations

import math
from typing import Optional

from app.config import Settings, get_settings
from app.schemas.profile import ProfileRecord

_EARTH_RADIUS_KM = 6371.0088
_MAX_ACTIVITY = 1000
_MAX_COMPLETENESS = 100


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def common_interests(a: ProfileRecord, b: ProfileRecord) -> list[str]:
    """Shared interests, sorted so results are deterministic."""
    return sorted(set(a.interests) & set(b.interests))


def distance_km(a: ProfileRecord, b: ProfileRecord) -> Optional[float]:
    """Great-circle distance in kilometres, or None without coordinates."""
    if not (a.has_coordinates and b.has_coordinates):
        return None

    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * _EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


class CompatibilityScorer:
    """Weighted compatibility between a requester ``a`` and a candidate ``b``.

    Weights come from ``Settings`` and are validated there to sum to 100,
    so the result is always within ``[0, 100]`` before the final clamp.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def score(
        self,
        a: ProfileRecord,
        b: ProfileRecord,
        common: list[str],
        distance: Optional[float] = None,
    ) -> float:
        s = self._settings

        larger = max(len(a.interests), len(b.interests), 1)
        interest = (len(common) / larger) * s.INTEREST_WEIGHT

        age = max(0.0, s.AGE_WEIGHT - abs(a.age - b.age) * 0.5)

        activity = (_clamp(b.activity_score, 0, _MAX_ACTIVITY) / _MAX_ACTIVITY) * s.ACTIVITY_WEIGHT

        if distance is None:
            proximity = s.DISTANCE_WEIGHT
        else:
            radius = a.preferences.distance if a.preferences.distance > 0 else 1.0
            proximity = max(0.0, s.DISTANCE_WEIGHT - (distance / radius) * 5)

        completeness = (
            _clamp(b.profile_completeness, 0, _MAX_COMPLETENESS) / _MAX_COMPLETENESS
        ) * s.COMPLETENESS_WEIGHT

        bonus = 0.0
        if a.relationship_type and a.relationship_type == b.relationship_type:
            bonus = s.RELATIONSHIP_BONUS

        total = interest + age + activity + proximity + completeness + bonus
        return _clamp(total, 0.0, 100.0)

    @staticmethod
    def quick_score(a: ProfileRecord, b: ProfileRecord, common: list[str]) -> int:
        total = 50.0

        age_diff = abs(a.age - b.age)
        if age_diff <= 5:
            total += 20
        elif age_diff <= 10:
            total += 10

        if common:
            larger = max(len(a.interests), len(b.interests), 1)
            total += (len(common) / larger) * 30

        if a.relationship_type and a.relationship_type == b.relationship_type:
            total += 10

        return min(100, round(total))
