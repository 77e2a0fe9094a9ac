"""
Record Validation - Fail-fast Gate for Raw Records

Pure function: returns a rejection reason string, never raises.
Rejected records are collected by the caller, never silently dropped.
"""

from __future__ import annotations

from typing import Any, Final, Mapping, Optional

from core.comp_engine.stats import to_number
from core.ingestion.schema import RecordKind


# Rejection reasons (stable strings, surfaced to callers)
REASON_NOT_OBJECT: Final = "record must be an object"
REASON_MISSING_SOURCE: Final = "missing source"
REASON_MISSING_SOURCE_RECORD_ID: Final = "missing sourceRecordId"
REASON_MISSING_ADDRESS: Final = "missing address"
REASON_INVALID_PRICE: Final = "invalid price"
REASON_MISSING_TRANSACTION_DATE: Final = "missing transactionDate"
REASON_MISSING_LISTING_DATE: Final = "missing listingDate"


def validate_record(record: Any, kind: RecordKind) -> Optional[str]:
    """
    Validate one raw record before it enters the pipeline.

    Checks, in order: object shape, source, sourceRecordId, address,
    price (finite and positive), kind-specific event date.

    Args:
        record: Raw record (untyped)
        kind: Transaction or listing

    Returns:
        Rejection reason, or None if the record is acceptable
    """
    if not isinstance(record, Mapping):
        return REASON_NOT_OBJECT
    if not record.get("source"):
        return REASON_MISSING_SOURCE
    if not record.get("sourceRecordId"):
        return REASON_MISSING_SOURCE_RECORD_ID
    if not record.get("address"):
        return REASON_MISSING_ADDRESS

    price = to_number(record.get("price"))
    if price is None or price <= 0:
        return REASON_INVALID_PRICE

    if kind is RecordKind.TRANSACTION and not record.get("transactionDate"):
        return REASON_MISSING_TRANSACTION_DATE
    if kind is RecordKind.LISTING and not record.get("listingDate"):
        return REASON_MISSING_LISTING_DATE

    return None
