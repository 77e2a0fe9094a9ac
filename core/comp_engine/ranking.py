"""
Comparable Ranking

Scores every pool property against the subject, orders by similarity
(ties keep input order), truncates to top-K and weights each survivor
by similarity, distance decay and recency decay.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Final, Iterable, Optional

from .models import ComparableCandidate, PropertyProfile
from .scoring import FeatureScorer
from .stats import clamp, months_since, round_half_up


# =============================================================================
# Configuration Constants
# =============================================================================

MIN_TOP_K: Final = 1
MAX_TOP_K: Final = 100

# Weight blend
WEIGHT_SIMILARITY: Final = 0.65
WEIGHT_DISTANCE: Final = 0.20
WEIGHT_RECENCY: Final = 0.15
DISTANCE_DECAY_METERS: Final = 4000.0
RECENCY_DECAY_MONTHS: Final = 36.0
MIN_WEIGHT: Final = 0.01

# Explanation thresholds
CLOSE_LOCATION_METERS: Final = 700.0
SIMILAR_SIZE_UNITS: Final = 15.0
SIMILAR_FLOOR_LEVELS: Final = 2.0


def clamp_top_k(top_k: Optional[int]) -> int:
    if top_k is None:
        return MAX_TOP_K
    return int(clamp(int(top_k), MIN_TOP_K, MAX_TOP_K))


def recency_penalty(sale_date: Optional[str], reference_date: date) -> float:
    """0 for a sale this month, 1 for a sale 36+ months ago or an unknown date."""
    return clamp(months_since(sale_date, reference_date) / RECENCY_DECAY_MONTHS, 0.0, 1.0)


def comparable_weight(
    similarity: float,
    distance_meters: Optional[float],
    sale_date: Optional[str],
    reference_date: date,
) -> float:
    """Blend of similarity, distance decay and recency decay, in [0.01, 1]."""
    distance_penalty = 1.0
    if distance_meters is not None:
        distance_penalty = clamp(distance_meters / DISTANCE_DECAY_METERS, 0.0, 1.0)
    return clamp(
        WEIGHT_SIMILARITY * similarity
        + WEIGHT_DISTANCE * (1 - distance_penalty)
        + WEIGHT_RECENCY * (1 - recency_penalty(sale_date, reference_date)),
        MIN_WEIGHT,
        1.0,
    )


def explain_comparable(
    subject: PropertyProfile,
    comp: PropertyProfile,
    similarity: float,
    distance_meters: Optional[float],
) -> tuple[str, ...]:
    """Plain-language reasons. Descriptive only, never used in scoring."""
    reasons = []
    if distance_meters is None:
        reasons.append("Distance unknown (missing coordinates)")
    elif distance_meters <= CLOSE_LOCATION_METERS:
        reasons.append("Very close location")
    if subject.property_type == comp.property_type:
        reasons.append("Same property type")
    if abs((subject.size_sqm or 0) - (comp.size_sqm or 0)) <= SIMILAR_SIZE_UNITS:
        reasons.append("Similar size")
    if abs((subject.floor or 0) - (comp.floor or 0)) <= SIMILAR_FLOOR_LEVELS:
        reasons.append("Similar floor")
    reasons.append(f"Similarity {similarity * 100:.1f}%")
    return tuple(reasons)


def adjusted_price(base_price: Optional[float], total_percent: float) -> Optional[int]:
    """round(base * (1 + total)); None without a positive base price."""
    if base_price is None or base_price <= 0:
        return None
    return round_half_up(base_price * (1 + total_percent))


class ComparableRanker:
    """
    Ranks a comparable pool against a subject property.
    """

    def __init__(
        self,
        reference_date: Optional[date] = None,
        scorer: Optional[FeatureScorer] = None,
    ):
        """
        Initialise ranker.

        Args:
            reference_date: Date to calculate sale age from (default: today)
            scorer: Feature scorer (default: unknown distance for missing coordinates)
        """
        self._reference_date = reference_date or date.today()
        self._scorer = scorer or FeatureScorer()

    def build_candidate(
        self, subject: PropertyProfile, comp: PropertyProfile
    ) -> ComparableCandidate:
        score = self._scorer.score(subject, comp)
        return ComparableCandidate(
            candidate_id=f"cand_{uuid.uuid4()}",
            comparable=comp,
            similarity=score.similarity,
            distance_meters=score.distance_meters,
            adjustment=score.adjustment,
            adjusted_price=adjusted_price(comp.sale_price, score.adjustment.total_percent),
            weight=comparable_weight(
                score.similarity, score.distance_meters, comp.sale_date, self._reference_date
            ),
            explanation=explain_comparable(
                subject, comp, score.similarity, score.distance_meters
            ),
        )

    def rank(
        self,
        subject: PropertyProfile,
        pool: Iterable[PropertyProfile],
        top_k: Optional[int] = None,
    ) -> list[ComparableCandidate]:
        """
        Score, sort by similarity descending and truncate to top_k.

        Args:
            subject: The property being valued
            pool: Candidate comparables
            top_k: Number to keep, clamped to [1, 100]

        Returns:
            Ranked candidates, highest similarity first
        """
        candidates = [self.build_candidate(subject, comp) for comp in pool]
        # sorted() is stable: equal similarities keep input order
        ranked = sorted(candidates, key=lambda c: c.similarity, reverse=True)
        return ranked[: clamp_top_k(top_k)]
