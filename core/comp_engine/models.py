"""
Data models for the comparable-sales engine.

Defines the property profile used for both subject and comparables,
the adjustment breakdown, ranked candidates, comparable runs and
valuation results.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Optional

from .stats import clamp, to_number


# Overall adjustment band
TOTAL_ADJUSTMENT_LIMIT = 0.25


class ValuationStrategy(Enum):
    """Point-estimate strategy for the valuation aggregator."""

    MEAN = "mean"
    WEIGHTED_MEAN = "weighted-mean"
    HEDONIC = "hedonic"

    @classmethod
    def from_string(cls, value: str) -> Optional["ValuationStrategy"]:
        """Convert string to ValuationStrategy, case-insensitive."""
        normalised = value.lower().strip().replace("_", "-")
        for member in cls:
            if member.value == normalised:
                return member
        return None


class RenovationState(Enum):
    """Renovation state of a property, with its price premium."""

    NEW = "new"
    RENOVATED = "renovated"
    PARTIAL = "partial"
    NEEDS_RENOVATION = "needs-renovation"

    @property
    def premium(self) -> float:
        return _RENOVATION_PREMIUM[self]

    @classmethod
    def from_string(cls, value: Any) -> Optional["RenovationState"]:
        if not isinstance(value, str):
            return None
        normalised = value.lower().strip().replace("_", "-")
        for member in cls:
            if member.value == normalised:
                return member
        return None


_RENOVATION_PREMIUM = {
    RenovationState.NEW: 0.10,
    RenovationState.RENOVATED: 0.06,
    RenovationState.PARTIAL: 0.02,
    RenovationState.NEEDS_RENOVATION: -0.04,
}


@dataclass(frozen=True)
class PropertyProfile:
    """
    Attributes of a subject property or a pool comparable.

    Every attribute is optional: scoring applies documented defaults for
    missing feature values, and treats missing coordinates as an unknown
    distance.
    """

    id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    property_type: Optional[str] = None
    size_sqm: Optional[float] = None
    floor: Optional[float] = None
    building_age: Optional[float] = None
    condition_score: Optional[float] = None
    has_elevator: Optional[bool] = None
    renovation_state: Optional[RenovationState] = None
    has_balcony: Optional[bool] = None
    has_parking: Optional[bool] = None
    has_view: Optional[bool] = None
    noise_level: Optional[float] = None
    planning_potential_score: Optional[float] = None
    sale_price: Optional[float] = None
    sale_date: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PropertyProfile":
        """Build a profile from the camelCase wire shape."""
        identifier = data.get("id")
        sale_date = data.get("saleDate")
        return cls(
            id=None if identifier is None else str(identifier),
            address=data.get("address"),
            city=data.get("city"),
            lat=to_number(data.get("lat")),
            lng=to_number(data.get("lng", data.get("lon"))),
            property_type=data.get("propertyType"),
            size_sqm=to_number(data.get("sizeSqm", data.get("areaSqm"))),
            floor=to_number(data.get("floor")),
            building_age=to_number(data.get("buildingAge")),
            condition_score=to_number(data.get("conditionScore")),
            has_elevator=_to_bool(data.get("hasElevator")),
            renovation_state=RenovationState.from_string(data.get("renovationState")),
            has_balcony=_to_bool(data.get("hasBalcony")),
            has_parking=_to_bool(data.get("hasParking")),
            has_view=_to_bool(data.get("hasView")),
            noise_level=to_number(data.get("noiseLevel")),
            planning_potential_score=to_number(data.get("planningPotentialScore")),
            sale_price=to_number(data.get("salePrice")),
            sale_date=None if sale_date is None else str(sale_date),
            raw=copy.deepcopy(dict(data)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire shape as originally supplied."""
        return copy.deepcopy(self.raw)


def _to_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


# =============================================================================
# Adjustment
# =============================================================================

# Python attribute -> wire key
ADJUSTMENT_COMPONENTS: dict[str, str] = {
    "floor": "floor",
    "elevator": "elevator",
    "renovation": "renovation",
    "balcony": "balcony",
    "parking": "parking",
    "view": "view",
    "noise": "noise",
    "size": "size",
    "planning_potential": "planningPotential",
    "ml_residual": "mlResidual",
}


@dataclass(frozen=True)
class Adjustment:
    """
    Named percentage corrections applied to a comparable's sale price.

    total_percent is always the sum of the ten components clamped to
    [-0.25, 0.25]; it is derived, never set directly.
    """

    floor: float = 0.0
    elevator: float = 0.0
    renovation: float = 0.0
    balcony: float = 0.0
    parking: float = 0.0
    view: float = 0.0
    noise: float = 0.0
    size: float = 0.0
    planning_potential: float = 0.0
    ml_residual: float = 0.0
    total_percent: float = field(init=False)

    def __post_init__(self) -> None:
        total = sum(getattr(self, name) for name in ADJUSTMENT_COMPONENTS)
        object.__setattr__(
            self,
            "total_percent",
            clamp(total, -TOTAL_ADJUSTMENT_LIMIT, TOTAL_ADJUSTMENT_LIMIT),
        )

    def merge(self, patch: Mapping[str, Optional[float]]) -> "Adjustment":
        """
        Return a new Adjustment with patched components.

        Args:
            patch: Component name (python or wire spelling) -> new value.
                None values leave the component unchanged.

        Raises:
            ValueError: If patch names an unknown component
        """
        wire_to_attr = {wire: attr for attr, wire in ADJUSTMENT_COMPONENTS.items()}
        updates: dict[str, float] = {}
        for key, value in patch.items():
            attr = key if key in ADJUSTMENT_COMPONENTS else wire_to_attr.get(key)
            if attr is None:
                raise ValueError(f"Unknown adjustment component: {key}")
            if value is None:
                continue
            updates[attr] = float(value)
        return replace(self, **updates)

    def components(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in ADJUSTMENT_COMPONENTS}

    def to_dict(self) -> dict[str, float]:
        data = {wire: getattr(self, attr) for attr, wire in ADJUSTMENT_COMPONENTS.items()}
        data["totalPercent"] = self.total_percent
        return data


# =============================================================================
# Candidates and Runs
# =============================================================================


@dataclass(frozen=True)
class ComparableCandidate:
    """
    One pool property paired with the subject.

    distance_meters is None when either side lacks coordinates.
    adjusted_price is None when the comparable has no usable sale price.
    """

    candidate_id: str
    comparable: PropertyProfile
    similarity: float
    distance_meters: Optional[float]
    adjustment: Adjustment
    adjusted_price: Optional[int]
    weight: float
    explanation: tuple[str, ...] = ()

    @property
    def comparable_id(self) -> Optional[str]:
        return self.comparable.id

    def to_public_dict(self) -> dict[str, Any]:
        """Public projection returned by comparable search."""
        return {
            "candidateId": self.candidate_id,
            "comparableId": self.comparable_id,
            "similarity": self.similarity,
            "distanceMeters": self.distance_meters,
            "adjustment": self.adjustment.to_dict(),
            "adjustedPrice": self.adjusted_price,
            "weight": self.weight,
            "explanation": list(self.explanation),
        }


@dataclass(frozen=True)
class ComparableRun:
    """A ranked comparable search. Candidates are ordered by similarity."""

    run_id: str
    subject: PropertyProfile
    comparables: tuple[ComparableCandidate, ...]
    created_at: str
    requested_by: str = "system"
    elapsed_ms: float = 0.0

    def find_candidate(self, candidate_id: str) -> Optional[int]:
        """Index of a candidate, or None."""
        for idx, candidate in enumerate(self.comparables):
            if candidate.candidate_id == candidate_id:
                return idx
        return None

    def with_candidate(self, idx: int, candidate: ComparableCandidate) -> "ComparableRun":
        """Return a new run with one candidate replaced."""
        comparables = list(self.comparables)
        comparables[idx] = candidate
        return replace(self, comparables=tuple(comparables))

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "createdAt": self.created_at,
            "requestedBy": self.requested_by,
            "elapsedMs": self.elapsed_ms,
            "subject": self.subject.to_dict(),
            "comparables": [c.to_public_dict() for c in self.comparables],
        }


# =============================================================================
# Valuation
# =============================================================================


@dataclass(frozen=True)
class ValueRange:
    """Valuation range. Invariant: low <= mid <= high."""

    low: int
    mid: int
    high: int

    def to_dict(self) -> dict[str, int]:
        return {"low": self.low, "mid": self.mid, "high": self.high}


@dataclass(frozen=True)
class ValuationResult:
    """
    Valuation derived from a comparable run. Always recomputed, never stored.

    degenerate is True when no usable adjusted price existed; the result
    is then zero-valued.
    """

    range: ValueRange
    confidence_score: int
    comparables_used: int
    rejected_outliers: tuple[Optional[str], ...]
    rationale: tuple[str, ...]
    strategy: ValuationStrategy
    degenerate: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "range": self.range.to_dict(),
            "confidenceScore": self.confidence_score,
            "comparablesUsed": self.comparables_used,
            "rejectedOutliers": list(self.rejected_outliers),
            "rationale": list(self.rationale),
            "strategy": self.strategy.value,
            "degenerate": self.degenerate,
        }


__all__ = [
    "TOTAL_ADJUSTMENT_LIMIT",
    "ValuationStrategy",
    "RenovationState",
    "PropertyProfile",
    "ADJUSTMENT_COMPONENTS",
    "Adjustment",
    "ComparableCandidate",
    "ComparableRun",
    "ValueRange",
    "ValuationResult",
]
