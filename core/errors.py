"""
Error taxonomy for the appraisal core.

Each error carries the status code a transport layer should map it to.
Computation degeneracy (empty pools, empty price lists) is NOT an error:
it is reported as a flagged, zero-valued result.
"""

from __future__ import annotations

from typing import Iterable, Optional


class AppraisalError(Exception):
    """Base class for all request-level failures raised by the core."""

    status_code: int = 500

    def __init__(self, message: str, reasons: Optional[Iterable[str]] = None):
        self.message = message
        self.reasons = list(reasons) if reasons else [message]
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for JSON output."""
        return {"error": self.message, "reasons": self.reasons}


class ValidationError(AppraisalError, ValueError):
    """Malformed or incomplete request. Aborts the whole request."""

    status_code = 400


class NotFoundError(AppraisalError, LookupError):
    """Unknown run, candidate, or report id."""

    status_code = 404


class ConflictError(AppraisalError):
    """Terminal action attempted on an entity that fails its invariant check."""

    status_code = 409
