"""
Appraisal report generation, validation and finalization (text sections only).
"""

from .models import (
    DEFAULT_TEMPLATE_ID,
    DocumentFact,
    ImageEvidence,
    IssueSeverity,
    Report,
    ReportApproval,
    ReportIssue,
    ReportLanguage,
    ReportSection,
)
from .builder import build_sections, parse_language, validate_report

__all__ = [
    "DEFAULT_TEMPLATE_ID",
    "DocumentFact",
    "ImageEvidence",
    "IssueSeverity",
    "Report",
    "ReportApproval",
    "ReportIssue",
    "ReportLanguage",
    "ReportSection",
    "build_sections",
    "parse_language",
    "validate_report",
]
