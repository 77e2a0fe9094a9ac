"""
Comp Engine

Comparable selection and valuation pipeline: geo & feature scoring,
similarity ranking with weights, IQR outlier filtering and weighted
valuation with a confidence score.
"""

from .models import (
    TOTAL_ADJUSTMENT_LIMIT,
    ADJUSTMENT_COMPONENTS,
    Adjustment,
    ComparableCandidate,
    ComparableRun,
    PropertyProfile,
    RenovationState,
    ValuationResult,
    ValuationStrategy,
    ValueRange,
)
from .scoring import FeatureScore, FeatureScorer, haversine_distance
from .ranking import ComparableRanker, adjusted_price, comparable_weight
from .valuation import OutlierSplit, ValuationAggregator

__all__ = [
    # Models
    "TOTAL_ADJUSTMENT_LIMIT",
    "ADJUSTMENT_COMPONENTS",
    "Adjustment",
    "ComparableCandidate",
    "ComparableRun",
    "PropertyProfile",
    "RenovationState",
    "ValuationResult",
    "ValuationStrategy",
    "ValueRange",
    # Scoring
    "FeatureScore",
    "FeatureScorer",
    "haversine_distance",
    # Ranking
    "ComparableRanker",
    "adjusted_price",
    "comparable_weight",
    # Valuation
    "OutlierSplit",
    "ValuationAggregator",
]

__version__ = "1.0"
