"""
Ingestion Schema - Normalised Records and Ingestion Runs

CleanedRecord is the ONLY record shape that leaves the ingestion pipeline.
Raw input records are transient and never persisted as-is.

Invariants:
    - CleanedRecord.id is globally unique and prefixed by its kind
    - confidence_score and completeness_score are within [0, 1]
    - equal dedupe keys mean the same real-world event, whatever the source
    - records and runs are immutable once created (frozen dataclasses)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class RecordKind(Enum):
    """Kind of raw record being ingested."""

    TRANSACTION = "transaction"
    LISTING = "listing"

    @property
    def date_field(self) -> str:
        """Name of the kind-specific event date field."""
        if self is RecordKind.TRANSACTION:
            return "transactionDate"
        return "listingDate"

    @classmethod
    def from_string(cls, value: str) -> Optional["RecordKind"]:
        """Convert string to RecordKind, case-insensitive."""
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


@dataclass(frozen=True)
class NormalizedAddress:
    """Structured view of a free-text address. Immutable once computed."""

    raw: str
    cleaned: str
    normalized: str
    city: Optional[str]
    street: Optional[str]
    canonical_street: Optional[str]
    house_number: Optional[str]
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw": self.raw,
            "cleaned": self.cleaned,
            "normalized": self.normalized,
            "city": self.city,
            "street": self.street,
            "canonicalStreet": self.canonical_street,
            "houseNumber": self.house_number,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NormalizedAddress":
        return cls(
            raw=data.get("raw", ""),
            cleaned=data.get("cleaned", ""),
            normalized=data.get("normalized", ""),
            city=data.get("city"),
            street=data.get("street"),
            canonical_street=data.get("canonicalStreet"),
            house_number=data.get("houseNumber"),
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass(frozen=True)
class CleanedRecord:
    """
    A raw record enriched with normalisation, scores and a fingerprint.

    `fields` holds the raw record's own fields (source, price, dates,
    coordinates, etc.) exactly as supplied.
    """

    id: str
    kind: RecordKind
    fields: dict[str, Any]
    normalized_address: NormalizedAddress
    completeness_score: float
    confidence_score: float
    dedupe_key: str

    def get(self, name: str, default: Any = None) -> Any:
        """Read a raw field."""
        return self.fields.get(name, default)

    @property
    def source(self) -> str:
        return self.fields.get("source", "")

    @property
    def price(self) -> Any:
        return self.fields.get("price")

    @property
    def event_date(self) -> Any:
        return self.fields.get(self.kind.date_field)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the wire shape: raw fields plus derived fields."""
        data = copy.deepcopy(self.fields)
        data.update(
            {
                "id": self.id,
                "normalizedAddress": self.normalized_address.to_dict(),
                "completenessScore": self.completeness_score,
                "confidenceScore": self.confidence_score,
                "dedupeKey": self.dedupe_key,
                "kind": self.kind.value,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CleanedRecord":
        derived = {
            "id",
            "normalizedAddress",
            "completenessScore",
            "confidenceScore",
            "dedupeKey",
            "kind",
        }
        return cls(
            id=data["id"],
            kind=RecordKind(data["kind"]),
            fields={k: v for k, v in data.items() if k not in derived},
            normalized_address=NormalizedAddress.from_dict(data["normalizedAddress"]),
            completeness_score=float(data["completenessScore"]),
            confidence_score=float(data["confidenceScore"]),
            dedupe_key=data["dedupeKey"],
        )


@dataclass(frozen=True)
class IngestionError:
    """A rejected input record: its position in the input and the reason."""

    index: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "reason": self.reason}


@dataclass(frozen=True)
class IngestionStats:
    """Aggregate statistics for one kind of record."""

    clean_count: int
    duplicate_count: int
    error_count: int
    avg_confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "cleanCount": self.clean_count,
            "duplicateCount": self.duplicate_count,
            "errorCount": self.error_count,
            "avgConfidence": self.avg_confidence,
        }


@dataclass(frozen=True)
class IngestionResult:
    """Partition of one input list into cleaned, duplicate and error sets."""

    kind: RecordKind
    total: int
    cleaned: tuple[CleanedRecord, ...] = ()
    duplicates: tuple[CleanedRecord, ...] = ()
    errors: tuple[IngestionError, ...] = ()

    @property
    def stats(self) -> IngestionStats:
        avg = 0.0
        if self.cleaned:
            avg = sum(r.confidence_score for r in self.cleaned) / len(self.cleaned)
        return IngestionStats(
            clean_count=len(self.cleaned),
            duplicate_count=len(self.duplicates),
            error_count=len(self.errors),
            avg_confidence=avg,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "total": self.total,
            "cleaned": [r.to_dict() for r in self.cleaned],
            "duplicates": [r.to_dict() for r in self.duplicates],
            "errors": [e.to_dict() for e in self.errors],
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IngestionResult":
        return cls(
            kind=RecordKind(data["kind"]),
            total=int(data.get("total", 0)),
            cleaned=tuple(CleanedRecord.from_dict(r) for r in data.get("cleaned", [])),
            duplicates=tuple(
                CleanedRecord.from_dict(r) for r in data.get("duplicates", [])
            ),
            errors=tuple(
                IngestionError(index=int(e["index"]), reason=e["reason"])
                for e in data.get("errors", [])
            ),
        )


@dataclass(frozen=True)
class IngestionSummary:
    """Totals across both kinds of one ingestion run."""

    input: int
    cleaned: int
    duplicates: int
    errors: int
    avg_confidence: float

    @classmethod
    def from_results(cls, *results: IngestionResult) -> "IngestionSummary":
        """Combine per-kind results; avg_confidence is weighted by cleaned count."""
        weighted = 0.0
        cleaned = 0
        for result in results:
            n = len(result.cleaned)
            if n <= 0:
                continue
            weighted += result.stats.avg_confidence * n
            cleaned += n
        return cls(
            input=sum(r.total for r in results),
            cleaned=sum(len(r.cleaned) for r in results),
            duplicates=sum(len(r.duplicates) for r in results),
            errors=sum(len(r.errors) for r in results),
            avg_confidence=weighted / cleaned if cleaned > 0 else 0.0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "input": self.input,
            "cleaned": self.cleaned,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "avgConfidence": self.avg_confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IngestionSummary":
        return cls(
            input=int(data.get("input", 0)),
            cleaned=int(data.get("cleaned", 0)),
            duplicates=int(data.get("duplicates", 0)),
            errors=int(data.get("errors", 0)),
            avg_confidence=float(data.get("avgConfidence", 0.0)),
        )


@dataclass(frozen=True)
class IngestionRun:
    """
    One ingestion request's output. Persisted and immutable after creation.
    """

    run_id: str
    created_by: str
    created_at: str  # ISO-8601 UTC
    elapsed_ms: float
    transactions: IngestionResult
    listings: IngestionResult
    summary: IngestionSummary = field(init=False)

    def __post_init__(self) -> None:
        if not self.run_id:
            raise ValueError("run_id is required")
        object.__setattr__(
            self,
            "summary",
            IngestionSummary.from_results(self.transactions, self.listings),
        )

    def summary_dict(self) -> dict[str, Any]:
        """Listing projection of the run."""
        return {
            "runId": self.run_id,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "elapsedMs": self.elapsed_ms,
            "summary": self.summary.to_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "elapsedMs": self.elapsed_ms,
            "transactions": self.transactions.to_dict(),
            "listings": self.listings.to_dict(),
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IngestionRun":
        return cls(
            run_id=data["runId"],
            created_by=data.get("createdBy", "system"),
            created_at=data.get("createdAt", ""),
            elapsed_ms=float(data.get("elapsedMs", 0)),
            transactions=IngestionResult.from_dict(data["transactions"]),
            listings=IngestionResult.from_dict(data["listings"]),
        )
