"""
Request models for the appraisal service.

Bodies arrive in the camelCase wire shape; pydantic validates the
top-level structure. Individual records and properties stay as plain
dicts so per-record problems can be reported item by item.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.errors import ValidationError


M = TypeVar("M", bound=BaseModel)

DEFAULT_ACTOR = "system"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _actor_or_default(v: Optional[str]) -> str:
    """Null actor ids fall back to the system actor."""
    return DEFAULT_ACTOR if v is None else v


# =============================================================================
# Ingestion
# =============================================================================


class IngestionRequest(_WireModel):
    """Raw transactions and listings for one ingestion run."""
    transactions: List[Any] = []
    listings: List[Any] = []
    created_by: Optional[str] = Field(default=DEFAULT_ACTOR, alias="createdBy")

    default_created_by = field_validator("created_by")(_actor_or_default)


# =============================================================================
# Comparables
# =============================================================================


class ComparableSearchRequest(_WireModel):
    """Subject property plus the pool to rank against it."""
    subject: Dict[str, Any]
    comparables_pool: List[Dict[str, Any]] = Field(default_factory=list, alias="comparablesPool")
    top_k: Optional[int] = Field(default=None, alias="topK")
    requested_by: Optional[str] = Field(default=DEFAULT_ACTOR, alias="requestedBy")

    default_requested_by = field_validator("requested_by")(_actor_or_default)


class AdjustmentPatch(_WireModel):
    """Partial adjustment; unspecified components keep their current value."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    floor: Optional[float] = None
    elevator: Optional[float] = None
    renovation: Optional[float] = None
    balcony: Optional[float] = None
    parking: Optional[float] = None
    view: Optional[float] = None
    noise: Optional[float] = None
    size: Optional[float] = None
    planning_potential: Optional[float] = Field(default=None, alias="planningPotential")
    ml_residual: Optional[float] = Field(default=None, alias="mlResidual")

    def components(self) -> Dict[str, float]:
        """Set components only, keyed by attribute name."""
        return self.model_dump(exclude_none=True)


class AdjustmentOverrideRequest(_WireModel):
    candidate_id: str = Field(alias="candidateId", min_length=1)
    patch: AdjustmentPatch
    appraiser_id: str = Field(alias="appraiserId", min_length=1)
    reason: str = Field(min_length=1)

    @field_validator("patch")
    @classmethod
    def patch_not_empty(cls, v: AdjustmentPatch) -> AdjustmentPatch:
        if not v.components():
            raise ValueError("patch must set at least one adjustment component")
        return v


# =============================================================================
# Valuation
# =============================================================================


class ValuationRequest(_WireModel):
    run_id: str = Field(alias="runId", min_length=1)
    strategy: str = "weighted-mean"


# =============================================================================
# Reports
# =============================================================================


class ReportGenerateRequest(_WireModel):
    subject_property: Dict[str, Any] = Field(alias="subjectProperty")
    run_id: str = Field(alias="runId", min_length=1)
    template_id: str = Field(default="default-court-il", alias="templateId")
    language: str = "he"
    document_facts: List[Dict[str, Any]] = Field(default_factory=list, alias="documentFacts")
    image_evidence: List[Dict[str, Any]] = Field(default_factory=list, alias="imageEvidence")


class ReportFinalizeRequest(_WireModel):
    appraiser_id: str = Field(alias="appraiserId", min_length=1)
    approval_comment: str = Field(alias="approvalComment", min_length=1)


# =============================================================================
# Parsing
# =============================================================================


def parse_request(model: Type[M], body: Any) -> M:
    """
    Validate a request body.

    Raises:
        ValidationError: If the body is missing or malformed; carries one
            reason per failing field
    """
    if isinstance(body, model):
        return body
    if not isinstance(body, dict):
        raise ValidationError("Request body must be an object")
    try:
        return model.model_validate(body)
    except pydantic.ValidationError as e:
        reasons = [
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid {model.__name__}", reasons) from e
