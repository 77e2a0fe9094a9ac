"""
Geo & Feature Scoring for the comparable-sales engine.

Given a subject and one comparable, computes:
- great-circle distance (metres)
- a 0-1 similarity score from five closeness terms and a type match
- ten clamped percentage adjustments and their clamped total
"""

import math
from dataclasses import dataclass
from typing import Final, Optional

from .models import Adjustment, PropertyProfile, RenovationState
from .stats import clamp


# =============================================================================
# Configuration Constants
# =============================================================================

EARTH_RADIUS_METERS: Final = 6_371_000.0

# Similarity: (scale, weight) per closeness term
GEO_SCALE_METERS: Final = 5000.0
SIZE_SCALE: Final = 200.0
FLOOR_SCALE: Final = 30.0
AGE_SCALE: Final = 100.0
CONDITION_SCALE: Final = 10.0

GEO_WEIGHT: Final = 0.35
SIZE_WEIGHT: Final = 0.15
FLOOR_WEIGHT: Final = 0.10
AGE_WEIGHT: Final = 0.10
CONDITION_WEIGHT: Final = 0.15
TYPE_WEIGHT: Final = 0.15
TYPE_MISMATCH_SCORE: Final = 0.7

# Defaults for missing feature values
DEFAULT_CONDITION: Final = 5.0
DEFAULT_NOISE: Final = 5.0

# Adjustment bands
FLOOR_BAND: Final = 0.08
ELEVATOR_STEP: Final = 0.025
RENOVATION_BAND: Final = 0.12
BALCONY_STEP: Final = 0.012
PARKING_STEP: Final = 0.03
VIEW_STEP: Final = 0.018
NOISE_BAND: Final = 0.05
SIZE_BAND: Final = 0.08
PLANNING_BAND: Final = 0.06
RESIDUAL_BAND: Final = 0.03


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in metres using Haversine formula.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in metres
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def closeness(a: float, b: float, scale: float) -> float:
    """1 for identical values, falling linearly to 0 at |a - b| >= scale."""
    return 1 - clamp(abs(a - b) / scale, 0.0, 1.0)


def _or(value: Optional[float], default: float) -> float:
    return default if value is None else value


def _bool_step(subject: Optional[bool], comp: Optional[bool], step: float) -> float:
    """+step if only the subject has the feature, -step if only the comp does."""
    if bool(subject) == bool(comp):
        return 0.0
    return step if subject else -step


def _renovation_premium(state: Optional[RenovationState]) -> float:
    return state.premium if state else 0.0


@dataclass(frozen=True)
class FeatureScore:
    """Scores for one subject/comparable pair."""

    distance_meters: Optional[float]
    similarity: float
    adjustment: Adjustment


class FeatureScorer:
    """
    Scores a comparable against a subject property.

    Missing coordinates give an unknown distance (None), which scores as
    the worst possible geographic closeness. Set missing_coordinates_as_origin
    to reproduce the legacy behaviour of measuring from (0, 0).
    """

    def __init__(self, missing_coordinates_as_origin: bool = False):
        self._missing_as_origin = missing_coordinates_as_origin

    def score(self, subject: PropertyProfile, comp: PropertyProfile) -> FeatureScore:
        distance = self.distance(subject, comp)
        return FeatureScore(
            distance_meters=distance,
            similarity=self.similarity(subject, comp, distance),
            adjustment=self.adjustment(subject, comp),
        )

    def distance(self, subject: PropertyProfile, comp: PropertyProfile) -> Optional[float]:
        """Distance in metres, or None when it cannot be known."""
        if not (subject.has_coordinates and comp.has_coordinates):
            if not self._missing_as_origin:
                return None
        return haversine_distance(
            _or(subject.lat, 0.0),
            _or(subject.lng, 0.0),
            _or(comp.lat, 0.0),
            _or(comp.lng, 0.0),
        )

    def similarity(
        self,
        subject: PropertyProfile,
        comp: PropertyProfile,
        distance_meters: Optional[float],
    ) -> float:
        """Weighted closeness across location, size, floor, age, condition and type."""
        geo = 0.0
        if distance_meters is not None:
            geo = 1 - clamp(distance_meters / GEO_SCALE_METERS, 0.0, 1.0)
        size = closeness(_or(subject.size_sqm, 0.0), _or(comp.size_sqm, 0.0), SIZE_SCALE)
        floor = closeness(_or(subject.floor, 0.0), _or(comp.floor, 0.0), FLOOR_SCALE)
        age = closeness(_or(subject.building_age, 0.0), _or(comp.building_age, 0.0), AGE_SCALE)
        condition = closeness(
            _or(subject.condition_score, DEFAULT_CONDITION),
            _or(comp.condition_score, DEFAULT_CONDITION),
            CONDITION_SCALE,
        )
        type_match = 1.0 if subject.property_type == comp.property_type else TYPE_MISMATCH_SCORE

        return clamp(
            geo * GEO_WEIGHT
            + size * SIZE_WEIGHT
            + floor * FLOOR_WEIGHT
            + age * AGE_WEIGHT
            + condition * CONDITION_WEIGHT
            + type_match * TYPE_WEIGHT,
            0.0,
            1.0,
        )

    def adjustment(self, subject: PropertyProfile, comp: PropertyProfile) -> Adjustment:
        """
        Rule-based price corrections, each clamped to its own band.

        Positive values mean the subject is better than the comparable,
        so the comparable's price is adjusted upwards.
        """
        floor_diff = _or(subject.floor, 0.0) - _or(comp.floor, 0.0)
        parking_diff = _bool_step(subject.has_parking, comp.has_parking, 1.0)

        return Adjustment(
            floor=clamp(floor_diff * 0.004, -FLOOR_BAND, FLOOR_BAND),
            elevator=_bool_step(subject.has_elevator, comp.has_elevator, ELEVATOR_STEP),
            renovation=clamp(
                _renovation_premium(subject.renovation_state)
                - _renovation_premium(comp.renovation_state),
                -RENOVATION_BAND,
                RENOVATION_BAND,
            ),
            balcony=_bool_step(subject.has_balcony, comp.has_balcony, BALCONY_STEP),
            parking=_bool_step(subject.has_parking, comp.has_parking, PARKING_STEP),
            view=_bool_step(subject.has_view, comp.has_view, VIEW_STEP),
            noise=clamp(
                (_or(comp.noise_level, DEFAULT_NOISE) - _or(subject.noise_level, DEFAULT_NOISE))
                * 0.01,
                -NOISE_BAND,
                NOISE_BAND,
            ),
            size=clamp(
                (_or(subject.size_sqm, 0.0) - _or(comp.size_sqm, 0.0)) / 100 * 0.02,
                -SIZE_BAND,
                SIZE_BAND,
            ),
            planning_potential=clamp(
                (
                    _or(subject.planning_potential_score, 0.0)
                    - _or(comp.planning_potential_score, 0.0)
                )
                * 0.01,
                -PLANNING_BAND,
                PLANNING_BAND,
            ),
            # Interaction of floor and parking differences
            ml_residual=clamp(
                0.004 * floor_diff + 0.012 * parking_diff,
                -RESIDUAL_BAND,
                RESIDUAL_BAND,
            ),
        )
