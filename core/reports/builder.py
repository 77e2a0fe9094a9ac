"""
Report Builder

Produces the text sections of an appraisal report and the validation
issues that gate final approval.

Sections (in order):
- subject: the appraised property
- comparables: top comparables with similarity and adjusted price
- valuation: value range and confidence
- legal-risks: document conflicts requiring manual review
- visual-evidence: photo condition findings
"""

from __future__ import annotations

from typing import Final, Optional, Sequence

from core.comp_engine.models import ComparableCandidate, PropertyProfile, ValuationResult
from utils.formatting import format_currency, format_percent, format_range

from .models import (
    DocumentFact,
    ImageEvidence,
    IssueSeverity,
    ReportIssue,
    ReportLanguage,
    ReportSection,
)


NOT_AVAILABLE: Final = "N/A"
UNKNOWN: Final = "unknown"
MAX_REPORT_COMPARABLES: Final = 10
MAX_REPORT_IMAGES: Final = 10
MIN_COMPARABLES: Final = 3
MIN_CONFIDENCE: Final = 55

_TITLES: Final = {
    "subject": {ReportLanguage.HEBREW: "פרטי הנכס", ReportLanguage.ENGLISH: "Subject Property"},
    "comparables": {
        ReportLanguage.HEBREW: "עסקאות השוואה",
        ReportLanguage.ENGLISH: "Comparable Transactions",
    },
    "valuation": {ReportLanguage.HEBREW: "מסקנת שווי", ReportLanguage.ENGLISH: "Valuation Conclusion"},
    "legal-risks": {ReportLanguage.HEBREW: "סיכונים משפטיים", ReportLanguage.ENGLISH: "Legal Risks"},
    "visual-evidence": {
        ReportLanguage.HEBREW: "ראיות חזותיות",
        ReportLanguage.ENGLISH: "Visual Evidence",
    },
}


def _text(value: object) -> str:
    """Render a value for report text; falsy values read as N/A."""
    if not value:
        return NOT_AVAILABLE
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _section(
    section_id: str, language: ReportLanguage, markdown: str, facts: Sequence[str]
) -> ReportSection:
    return ReportSection(
        section_id=section_id,
        title=_TITLES[section_id][language],
        markdown=markdown,
        grounded_facts=tuple(facts),
    )


def subject_section(subject: PropertyProfile, language: ReportLanguage) -> ReportSection:
    markdown = (
        f"{_text(subject.address)} | {_text(subject.city)} | "
        f"type={_text(subject.property_type)} | area={_text(subject.size_sqm)}"
    )
    return _section("subject", language, markdown, [f"property:{subject.id or UNKNOWN}"])


def comparables_section(
    comparables: Sequence[ComparableCandidate], language: ReportLanguage
) -> ReportSection:
    lines = []
    for i, candidate in enumerate(comparables, start=1):
        label = candidate.comparable.address or candidate.comparable_id
        price = format_currency(candidate.adjusted_price, missing=NOT_AVAILABLE)
        lines.append(f"{i}. {label} | sim={format_percent(candidate.similarity)} | adj={price}")
    facts = [f"comparable:{c.comparable_id}" for c in comparables]
    return _section("comparables", language, "\n".join(lines), facts)


def valuation_section(valuation: ValuationResult, language: ReportLanguage) -> ReportSection:
    value_range = valuation.range
    if language is ReportLanguage.HEBREW:
        markdown = (
            f"טווח שווי: {format_range(value_range.low, value_range.high)} "
            f"(אמצע {format_currency(value_range.mid)}). ביטחון {valuation.confidence_score}%."
        )
    else:
        markdown = (
            f"Range: {value_range.low} - {value_range.high} (mid {value_range.mid}), "
            f"confidence {valuation.confidence_score}%."
        )
    return _section("valuation", language, markdown, ["valuation:range", *valuation.rationale])


def legal_risks_section(
    facts: Sequence[DocumentFact], language: ReportLanguage
) -> ReportSection:
    conflicts = [f for f in facts if f.has_conflict]
    if not conflicts:
        if language is ReportLanguage.HEBREW:
            markdown = "לא זוהו סתירות מהותיות במסמכים שסופקו. בכל מקרה נדרש אישור שמאי סופי."
        else:
            markdown = (
                "No material document conflicts were found. "
                "Final human appraiser approval is still required."
            )
    else:
        lines = []
        for fact in conflicts:
            document = fact.source_document_id or UNKNOWN
            key = fact.fact_key or UNKNOWN
            if language is ReportLanguage.HEBREW:
                lines.append(f"- סתירה במסמך {document} בשדה {key}; נדרשת בדיקה ידנית.")
            else:
                lines.append(
                    f"- Conflict in document {document} at field {key}; manual review required."
                )
        markdown = "\n".join(lines)
    grounded = [f"doc:{f.source_document_id or UNKNOWN}" for f in facts]
    return _section("legal-risks", language, markdown, grounded)


def visual_evidence_section(
    images: Sequence[ImageEvidence], language: ReportLanguage
) -> ReportSection:
    lines = []
    for image in images[:MAX_REPORT_IMAGES]:
        score = NOT_AVAILABLE if image.condition_score is None else f"{image.condition_score:g}"
        issues = ", ".join(image.detected_issues) or "none"
        lines.append(f"- {image.image_id or 'image'} | score={score} | issues={issues}")
    grounded = [f"image:{i.image_id or UNKNOWN}" for i in images]
    return _section("visual-evidence", language, "\n".join(lines), grounded)


def build_sections(
    subject: PropertyProfile,
    valuation: ValuationResult,
    comparables: Sequence[ComparableCandidate],
    facts: Sequence[DocumentFact] = (),
    images: Sequence[ImageEvidence] = (),
    language: ReportLanguage = ReportLanguage.HEBREW,
) -> tuple[ReportSection, ...]:
    """Build all five report sections; comparables are capped at the top ten."""
    return (
        subject_section(subject, language),
        comparables_section(comparables[:MAX_REPORT_COMPARABLES], language),
        valuation_section(valuation, language),
        legal_risks_section(facts, language),
        visual_evidence_section(images, language),
    )


def validate_report(
    valuation: ValuationResult,
    facts: Sequence[DocumentFact],
    comparables: Sequence[ComparableCandidate],
) -> tuple[ReportIssue, ...]:
    """
    Check a report's inputs.

    Errors block finalization; warnings are informational.
    """
    issues = []
    value_range = valuation.range

    if not (value_range.low <= value_range.mid <= value_range.high):
        issues.append(
            ReportIssue("valuation.order", IssueSeverity.ERROR, "Invalid valuation range ordering")
        )

    conflicting = [f for f in facts if f.has_conflict]
    if conflicting:
        issues.append(
            ReportIssue(
                "documents.conflicts",
                IssueSeverity.ERROR,
                f"Detected {len(conflicting)} conflicting facts",
            )
        )

    if len(comparables) < MIN_COMPARABLES:
        issues.append(
            ReportIssue(
                "comparables.low-count",
                IssueSeverity.WARNING,
                f"Less than {MIN_COMPARABLES} comparables in analysis",
            )
        )

    if valuation.confidence_score < MIN_CONFIDENCE:
        issues.append(
            ReportIssue("valuation.low-confidence", IssueSeverity.WARNING, "Low confidence score")
        )

    return tuple(issues)


def parse_language(value: Optional[str]) -> ReportLanguage:
    """Report language; Hebrew when omitted, English for anything other than "he"."""
    if value is None:
        return ReportLanguage.HEBREW
    return ReportLanguage.from_string(value) or ReportLanguage.ENGLISH
