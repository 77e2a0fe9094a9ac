"""
Ingestion Pipeline - Validation, Scoring and Deduplication

Pipeline order, per record, in input order:
1. VALIDATE - reject malformed records into the error list
2. NORMALISE - structured address + confidence
3. SCORE - source reliability, recency, completeness, combined confidence
4. FINGERPRINT - binned dedupe key
5. PARTITION - first occurrence of a key is cleaned, later ones are duplicates

Deterministic and idempotent for identical input order, content and
reference date (only generated record ids differ).
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import date
from typing import Any, Callable, Final, Mapping, Optional, Sequence

from core.comp_engine.stats import clamp, months_between, parse_date, round_half_up, to_number
from core.ingestion.address import AddressNormalizer
from core.ingestion.schema import (
    CleanedRecord,
    IngestionError,
    IngestionResult,
    RecordKind,
)
from core.ingestion.validation import validate_record


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Confidence blend
WEIGHT_SOURCE: Final = 0.35
WEIGHT_RECENCY: Final = 0.25
WEIGHT_ADDRESS: Final = 0.25
WEIGHT_COMPLETENESS: Final = 0.15

# Source reliability tiers (case-insensitive substring match on source label)
OFFICIAL_SOURCE_MARKERS: Final = ("gov", "tax", "official")
MARKET_SOURCE_MARKERS: Final = ("listing", "market")
RELIABILITY_OFFICIAL: Final = 0.95
RELIABILITY_MARKET: Final = 0.65
RELIABILITY_DEFAULT: Final = 0.75

# Recency decays to zero over this many months
RECENCY_HORIZON_MONTHS: Final = 48

# Dedupe key binning
MISSING_SENTINEL: Final = "na"
COORDINATE_BIN_SCALE: Final = 1000  # 3 decimal places, ~110 m
AREA_BIN_SIZE: Final = 5
PRICE_BIN_SIZE: Final = 1000
KEY_JOINER: Final = "|"


# =============================================================================
# Sub-scores
# =============================================================================


def source_reliability(source: Any) -> float:
    """Three-tier reliability heuristic from the source label."""
    label = str(source or "").lower()
    if any(marker in label for marker in OFFICIAL_SOURCE_MARKERS):
        return RELIABILITY_OFFICIAL
    if any(marker in label for marker in MARKET_SOURCE_MARKERS):
        return RELIABILITY_MARKET
    return RELIABILITY_DEFAULT


def recency_score(event_date: Any, reference_date: date) -> float:
    """1 at the reference month, decaying linearly to 0 after 48 months."""
    parsed = parse_date(event_date)
    if parsed is None:
        return 0.0
    months = months_between(parsed, reference_date)
    return clamp(1 - months / RECENCY_HORIZON_MONTHS, 0.0, 1.0)


def completeness_score(record: Mapping[str, Any], kind: RecordKind) -> float:
    """Share of optional descriptive fields present."""
    score = 0.4
    if record.get("area") is not None:
        score += 0.2
    if record.get("floor") is not None:
        score += 0.1
    if record.get("rooms") is not None:
        score += 0.1
    if record.get("lat") is not None and record.get("lon") is not None:
        score += 0.2
    if kind is RecordKind.LISTING and record.get("status"):
        score += 0.05
    return clamp(score, 0.0, 1.0)


def combined_confidence(
    source: float, recency: float, address: float, completeness: float
) -> float:
    return clamp(
        WEIGHT_SOURCE * source
        + WEIGHT_RECENCY * recency
        + WEIGHT_ADDRESS * address
        + WEIGHT_COMPLETENESS * completeness,
        0.0,
        1.0,
    )


# =============================================================================
# Dedupe Key
# =============================================================================


def _bin(value: Any, transform: Callable[[float], int]) -> str:
    number = to_number(value)
    if number is None:
        return MISSING_SENTINEL
    return str(transform(number))


def make_dedupe_key(
    normalized_address: Optional[str],
    city: Optional[str],
    lat: Any,
    lon: Any,
    area: Any,
    event_date: Any,
    price: Any,
) -> str:
    """
    Build the binned fingerprint of a real-world event.

    Components (pipe-joined): normalised address, city, lat bin, lon bin,
    area bin (nearest 5), event day, price bin (nearest 1000). Missing
    components become "na". Address and city are lowercased so casing
    never splits a key.
    """
    day = str(event_date)[:10] if event_date else MISSING_SENTINEL
    parts = [
        str(normalized_address or "").strip().lower(),
        str(city or "").strip().lower(),
        _bin(lat, lambda v: round_half_up(v * COORDINATE_BIN_SCALE)),
        _bin(lon, lambda v: round_half_up(v * COORDINATE_BIN_SCALE)),
        _bin(area, lambda v: round_half_up(v / AREA_BIN_SIZE) * AREA_BIN_SIZE),
        day,
        _bin(price, lambda v: round_half_up(v / PRICE_BIN_SIZE)),
    ]
    return KEY_JOINER.join(parts)


# =============================================================================
# Pipeline
# =============================================================================


class IngestionPipeline:
    """
    Turns an ordered list of raw records into cleaned, duplicate and error sets.
    """

    def __init__(
        self,
        reference_date: Optional[date] = None,
        normalizer: Optional[AddressNormalizer] = None,
    ):
        """
        Initialise pipeline.

        Args:
            reference_date: "Now" for recency scoring (default: today)
            normalizer: Address normaliser (default: Hebrew locale)
        """
        self._reference_date = reference_date or date.today()
        self._normalizer = normalizer or AddressNormalizer()

    def run(self, records: Sequence[Any], kind: RecordKind) -> IngestionResult:
        """
        Run the pipeline over one list of records of a single kind.

        Per-record failures are collected, never raised.
        """
        cleaned: list[CleanedRecord] = []
        duplicates: list[CleanedRecord] = []
        errors: list[IngestionError] = []
        seen: set[str] = set()

        for index, record in enumerate(records):
            reason = validate_record(record, kind)
            if reason:
                logger.warning("Rejected %s record at index %d: %s", kind.value, index, reason)
                errors.append(IngestionError(index=index, reason=reason))
                continue

            row = self.clean_record(record, kind)
            if row.dedupe_key in seen:
                duplicates.append(row)
            else:
                seen.add(row.dedupe_key)
                cleaned.append(row)

        result = IngestionResult(
            kind=kind,
            total=len(records),
            cleaned=tuple(cleaned),
            duplicates=tuple(duplicates),
            errors=tuple(errors),
        )
        logger.info(
            "Ingested %d %s records: %d clean, %d duplicate, %d rejected",
            result.total,
            kind.value,
            len(cleaned),
            len(duplicates),
            len(errors),
        )
        return result

    def clean_record(self, record: Mapping[str, Any], kind: RecordKind) -> CleanedRecord:
        """Normalise, score and fingerprint one already-validated record."""
        address = self._normalizer.normalize(record.get("address"))
        event_date = record.get(kind.date_field)

        completeness = completeness_score(record, kind)
        confidence = combined_confidence(
            source=source_reliability(record.get("source")),
            recency=recency_score(event_date, self._reference_date),
            address=address.confidence,
            completeness=completeness,
        )

        city = record.get("city")
        if city is None:
            city = address.city

        dedupe_key = make_dedupe_key(
            normalized_address=address.normalized,
            city=city,
            lat=record.get("lat"),
            lon=record.get("lon"),
            area=record.get("area"),
            event_date=event_date,
            price=record.get("price"),
        )

        # Snapshot so later mutation of the caller's record cannot leak in
        fields = copy.deepcopy(dict(record))

        return CleanedRecord(
            id=f"{kind.value}_{uuid.uuid4()}",
            kind=kind,
            fields=fields,
            normalized_address=address,
            completeness_score=completeness,
            confidence_score=confidence,
            dedupe_key=dedupe_key,
        )


def run_ingestion_pipeline(
    records: Sequence[Any],
    kind: RecordKind = RecordKind.TRANSACTION,
    reference_date: Optional[date] = None,
) -> IngestionResult:
    """Convenience wrapper around IngestionPipeline.run."""
    return IngestionPipeline(reference_date=reference_date).run(records, kind)
