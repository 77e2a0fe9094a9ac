"""
Data models for appraisal reports.

A report is generated once from a comparable run, carries text sections
and validation issues, and can be finalized exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from core.comp_engine.stats import to_number


DEFAULT_TEMPLATE_ID = "default-court-il"


class ReportLanguage(Enum):
    HEBREW = "he"
    ENGLISH = "en"

    @classmethod
    def from_string(cls, value: str) -> Optional["ReportLanguage"]:
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


class IssueSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class DocumentFact:
    """A fact extracted from a supporting document."""

    source_document_id: Optional[str] = None
    fact_key: Optional[str] = None
    value: Any = None
    conflict_with: tuple[str, ...] = ()

    @property
    def has_conflict(self) -> bool:
        return len(self.conflict_with) > 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentFact":
        conflicts = data.get("conflictWith")
        return cls(
            source_document_id=data.get("sourceDocumentId"),
            fact_key=data.get("factKey"),
            value=data.get("value"),
            conflict_with=tuple(str(c) for c in conflicts) if isinstance(conflicts, list) else (),
        )


@dataclass(frozen=True)
class ImageEvidence:
    """Condition assessment of one property photo."""

    image_id: Optional[str] = None
    condition_score: Optional[float] = None
    detected_issues: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImageEvidence":
        return cls(
            image_id=data.get("imageId"),
            condition_score=to_number(data.get("conditionScore")),
            detected_issues=tuple(str(i) for i in data.get("detectedIssues") or ()),
        )


@dataclass(frozen=True)
class ReportSection:
    section_id: str
    title: str
    markdown: str
    grounded_facts: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "sectionId": self.section_id,
            "title": self.title,
            "markdown": self.markdown,
            "groundedFacts": list(self.grounded_facts),
        }


@dataclass(frozen=True)
class ReportIssue:
    key: str
    severity: IssueSeverity
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "severity": self.severity.value, "message": self.message}


@dataclass(frozen=True)
class ReportApproval:
    """Sign-off recorded when a report is finalized."""

    report_id: str
    version: int
    pdf_url: str
    signature_id: str
    approved_by: str
    approval_comment: str
    approved_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "reportId": self.report_id,
            "version": self.version,
            "pdfUrl": self.pdf_url,
            "signatureId": self.signature_id,
            "approvedBy": self.approved_by,
            "approvalComment": self.approval_comment,
            "approvedAt": self.approved_at,
        }


@dataclass(frozen=True)
class Report:
    """
    Generated appraisal report.

    Immutable: finalization stores a new Report carrying the approval
    and the bumped version.
    """

    report_id: str
    version: int
    template_id: str
    language: ReportLanguage
    created_at: str
    run_id: str
    sections: tuple[ReportSection, ...]
    validations: tuple[ReportIssue, ...]
    approval: Optional[ReportApproval] = field(default=None)

    @property
    def errors(self) -> list[ReportIssue]:
        return [i for i in self.validations if i.severity is IssueSeverity.ERROR]

    @property
    def ready_for_final_approval(self) -> bool:
        return not self.errors

    @property
    def is_finalized(self) -> bool:
        return self.approval is not None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "reportId": self.report_id,
            "version": self.version,
            "templateId": self.template_id,
            "language": self.language.value,
            "createdAt": self.created_at,
            "runId": self.run_id,
            "sections": [s.to_dict() for s in self.sections],
            "validations": [i.to_dict() for i in self.validations],
            "readyForFinalApproval": self.ready_for_final_approval,
        }
        if self.approval:
            data["approval"] = self.approval.to_dict()
        return data
