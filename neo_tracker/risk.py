"""Risk scoring for near-Earth objects.

A score is the sum of three independent factors:

* hazard: 40 points when the object is flagged potentially hazardous
* size: 30/20/10/5 points by average estimated diameter
* proximity: 30/20/10/5 points by the smallest miss distance over all close
  approaches, or nothing at all when the object has no usable approach

The score is then bucketed into a :class:`RiskLevel`.
"""
import math
from typing import Any, Optional

from .config import DIAMETER_THRESHOLDS_KM, DISTANCE_THRESHOLDS_KM, RISK_THRESHOLDS
from .schemas import NearEarthObject, RiskAssessment, RiskLevel

HAZARD_POINTS = 40


def to_float(value: Any) -> Optional[float]:
    """Parse a numeric feed field; ``None`` if it is missing, non-finite or negative."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def size_points(avg_diameter_km: float) -> int:
    if avg_diameter_km >= DIAMETER_THRESHOLDS_KM["LARGE"]:
        return 30
    if avg_diameter_km >= DIAMETER_THRESHOLDS_KM["MEDIUM"]:
        return 20
    if avg_diameter_km >= DIAMETER_THRESHOLDS_KM["SMALL"]:
        return 10
    return 5


def proximity_points(min_distance_km: Optional[float]) -> int:
    if min_distance_km is None:
        return 0
    if min_distance_km < DISTANCE_THRESHOLDS_KM["VERY_CLOSE"]:
        return 30
    if min_distance_km < DISTANCE_THRESHOLDS_KM["CLOSE"]:
        return 20
    if min_distance_km < DISTANCE_THRESHOLDS_KM["MODERATE"]:
        return 10
    return 5


def risk_level(score: int) -> RiskLevel:
    if score >= RISK_THRESHOLDS["CRITICAL"]:
        return RiskLevel.CRITICAL
    if score >= RISK_THRESHOLDS["HIGH"]:
        return RiskLevel.HIGH
    if score >= RISK_THRESHOLDS["MEDIUM"]:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def min_miss_distance(neo: NearEarthObject) -> Optional[float]:
    distances = [
        a.miss_distance_km
        for a in neo.close_approach_data
        if a.miss_distance_km is not None
    ]
    return min(distances) if distances else None


def assess_risk(neo: NearEarthObject) -> RiskAssessment:
    score = HAZARD_POINTS if neo.is_potentially_hazardous else 0

    d_min = to_float(neo.diameter_min_km) or 0.0
    d_max = to_float(neo.diameter_max_km) or 0.0
    score += size_points((d_min + d_max) / 2)

    score += proximity_points(min_miss_distance(neo))

    return RiskAssessment(score=score, level=risk_level(score))
