"""
Valuation Aggregator for the comparable-sales engine.

Implements:
- Outlier removal (IQR rule on adjusted prices)
- Point estimate by mean, weighted mean or hedonic blend
- Value range from price dispersion
- Confidence score (0-100)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Final, Optional, Sequence

from .models import ComparableCandidate, ValuationResult, ValuationStrategy, ValueRange
from .ranking import recency_penalty
from .stats import clamp, mean, percentile, round_half_up, stddev, weighted_mean


# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_IQR_MULTIPLIER: Final = 1.5
DEFAULT_HEDONIC_WEIGHTED_SHARE: Final = 0.55

# Range spread
BASE_SPREAD: Final = 0.05
MIN_SPREAD: Final = 0.06
MAX_SPREAD: Final = 0.20

# Confidence blend
CONFIDENCE_FULL_COUNT: Final = 12
CONFIDENCE_DISPERSION_CEILING: Final = 0.20
WEIGHT_COUNT: Final = 0.30
WEIGHT_SIMILARITY: Final = 0.35
WEIGHT_DISPERSION: Final = 0.20
WEIGHT_RECENCY: Final = 0.15

NO_PRICES_RATIONALE: Final = "No adjusted prices available"


@dataclass(frozen=True)
class OutlierSplit:
    """Candidates partitioned by the IQR rule."""

    filtered: tuple[ComparableCandidate, ...]
    rejected: tuple[ComparableCandidate, ...]
    lower_bound: float
    upper_bound: float


def _priced(candidate: ComparableCandidate) -> bool:
    price = candidate.adjusted_price
    return price is not None and math.isfinite(price)


class ValuationAggregator:
    """
    Turns a ranked candidate list into a valuation range and confidence.

    Pipeline order:
    1. EXTRACT - finite adjusted prices only
    2. FILTER - IQR outlier rule
    3. ESTIMATE - mid by strategy
    4. RANGE - spread from dispersion
    5. CONFIDENCE - count, similarity, dispersion and recency
    """

    def __init__(
        self,
        reference_date: Optional[date] = None,
        iqr_multiplier: float = DEFAULT_IQR_MULTIPLIER,
        hedonic_weighted_share: float = DEFAULT_HEDONIC_WEIGHTED_SHARE,
    ):
        """
        Initialise aggregator.

        Args:
            reference_date: Reference date for recency (default: today)
            iqr_multiplier: Outlier fence width in IQRs
            hedonic_weighted_share: Weighted-mean share of the hedonic blend;
                the median takes the remainder
        """
        self._reference_date = reference_date or date.today()
        self._iqr_multiplier = iqr_multiplier
        self._hedonic_share = hedonic_weighted_share

    def valuate(
        self,
        candidates: Sequence[ComparableCandidate],
        strategy: ValuationStrategy = ValuationStrategy.WEIGHTED_MEAN,
    ) -> ValuationResult:
        """
        Perform the valuation.

        Args:
            candidates: Ranked candidates from a comparable run
            strategy: Point-estimate strategy

        Returns:
            ValuationResult; zero-valued and flagged degenerate when no
            candidate carries a usable adjusted price
        """
        priced = [c for c in candidates if _priced(c)]
        if not priced:
            return ValuationResult(
                range=ValueRange(low=0, mid=0, high=0),
                confidence_score=0,
                comparables_used=0,
                rejected_outliers=(),
                rationale=(NO_PRICES_RATIONALE,),
                strategy=strategy,
                degenerate=True,
            )

        split = self.remove_outliers(priced)
        filtered = split.filtered
        prices = [float(c.adjusted_price) for c in filtered]
        weights = [c.weight for c in filtered]

        mid = self._estimate(prices, weights, strategy)

        dispersion = stddev(prices) / max(1, mid)
        spread = clamp(BASE_SPREAD + dispersion, MIN_SPREAD, MAX_SPREAD)

        confidence = round_half_up(
            100
            * (
                WEIGHT_COUNT * clamp(len(filtered) / CONFIDENCE_FULL_COUNT, 0.0, 1.0)
                + WEIGHT_SIMILARITY * mean([c.similarity for c in filtered])
                + WEIGHT_DISPERSION
                * (1 - clamp(dispersion / CONFIDENCE_DISPERSION_CEILING, 0.0, 1.0))
                + WEIGHT_RECENCY
                * (
                    1
                    - mean(
                        [
                            recency_penalty(c.comparable.sale_date, self._reference_date)
                            for c in filtered
                        ]
                    )
                )
            )
        )

        return ValuationResult(
            range=ValueRange(
                low=round_half_up(mid * (1 - spread)),
                mid=mid,
                high=round_half_up(mid * (1 + spread)),
            ),
            confidence_score=int(clamp(confidence, 0, 100)),
            comparables_used=len(filtered),
            rejected_outliers=tuple(c.comparable_id for c in split.rejected),
            rationale=(
                f"{len(filtered)} comparables used after outlier filtering",
                f"Dispersion {dispersion * 100:.1f}%",
                f"Strategy {strategy.value}",
            ),
            strategy=strategy,
        )

    def remove_outliers(self, candidates: Sequence[ComparableCandidate]) -> OutlierSplit:
        """
        Partition priced candidates by the IQR rule.

        Bounds are [Q1 - k*IQR, Q3 + k*IQR] with linear-interpolation
        quartiles; bounds are inclusive.
        """
        ordered = sorted(float(c.adjusted_price) for c in candidates)
        q1 = percentile(ordered, 0.25)
        q3 = percentile(ordered, 0.75)
        iqr = q3 - q1
        lower = q1 - self._iqr_multiplier * iqr
        upper = q3 + self._iqr_multiplier * iqr

        filtered = []
        rejected = []
        for candidate in candidates:
            if lower <= candidate.adjusted_price <= upper:
                filtered.append(candidate)
            else:
                rejected.append(candidate)

        return OutlierSplit(
            filtered=tuple(filtered),
            rejected=tuple(rejected),
            lower_bound=lower,
            upper_bound=upper,
        )

    def _estimate(
        self,
        prices: Sequence[float],
        weights: Sequence[float],
        strategy: ValuationStrategy,
    ) -> int:
        if strategy is ValuationStrategy.MEAN:
            return round_half_up(mean(prices))
        if strategy is ValuationStrategy.WEIGHTED_MEAN:
            return round_half_up(weighted_mean(prices, weights))
        median = percentile(sorted(prices), 0.5)
        return round_half_up(
            self._hedonic_share * weighted_mean(prices, weights)
            + (1 - self._hedonic_share) * median
        )
