"""
Ingestion Layer

Single entry point for raw transaction and listing records. Records are
validated, address-normalised, scored and fingerprinted; the output
partitions input into cleaned, duplicate and error sets.
"""

from core.ingestion.schema import (
    RecordKind,
    NormalizedAddress,
    CleanedRecord,
    IngestionError,
    IngestionStats,
    IngestionResult,
    IngestionSummary,
    IngestionRun,
)
from core.ingestion.address import (
    AddressLocale,
    AddressNormalizer,
    HEBREW_LOCALE,
    normalize_address,
)
from core.ingestion.validation import validate_record
from core.ingestion.pipeline import (
    IngestionPipeline,
    make_dedupe_key,
    run_ingestion_pipeline,
)
from core.ingestion.repository import IngestionRunRepository

__all__ = [
    # Schema
    "RecordKind",
    "NormalizedAddress",
    "CleanedRecord",
    "IngestionError",
    "IngestionStats",
    "IngestionResult",
    "IngestionSummary",
    "IngestionRun",
    # Address normalisation
    "AddressLocale",
    "AddressNormalizer",
    "HEBREW_LOCALE",
    "normalize_address",
    # Validation
    "validate_record",
    # Pipeline
    "IngestionPipeline",
    "make_dedupe_key",
    "run_ingestion_pipeline",
    # Persistence
    "IngestionRunRepository",
]
