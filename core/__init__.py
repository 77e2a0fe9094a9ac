"""
Appraisal Core - Business Logic

This module provides the appraisal pipeline:
1. Ingestion (validation, address normalisation, de-duplication)
2. Geo & Feature Scoring (similarity and adjustments)
3. Comparable Ranking (top-K with weights)
4. Valuation (IQR outlier filter, strategy estimate, confidence)
5. Override & Audit Ledger (append-only event log)
6. Reports (text sections, validation, finalization)
"""

from .errors import AppraisalError, ValidationError, NotFoundError, ConflictError

# Ingestion
from .ingestion import (
    RecordKind,
    NormalizedAddress,
    CleanedRecord,
    IngestionResult,
    IngestionRun,
    AddressNormalizer,
    normalize_address,
    validate_record,
    IngestionPipeline,
    run_ingestion_pipeline,
    IngestionRunRepository,
)

# Comp Engine
from .comp_engine import (
    Adjustment,
    ComparableCandidate,
    ComparableRun,
    PropertyProfile,
    ValuationResult,
    ValuationStrategy,
    FeatureScorer,
    ComparableRanker,
    ValuationAggregator,
)

# Audit
from .audit import AuditEvent, AuditLedger, EntityType, EventType

# Service facade
from .stores import KeyedStore
from .service import AppraisalService

__all__ = [
    # Errors
    "AppraisalError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    # Ingestion
    "RecordKind",
    "NormalizedAddress",
    "CleanedRecord",
    "IngestionResult",
    "IngestionRun",
    "AddressNormalizer",
    "normalize_address",
    "validate_record",
    "IngestionPipeline",
    "run_ingestion_pipeline",
    "IngestionRunRepository",
    # Comp Engine
    "Adjustment",
    "ComparableCandidate",
    "ComparableRun",
    "PropertyProfile",
    "ValuationResult",
    "ValuationStrategy",
    "FeatureScorer",
    "ComparableRanker",
    "ValuationAggregator",
    # Audit
    "AuditEvent",
    "AuditLedger",
    "EntityType",
    "EventType",
    # Service
    "KeyedStore",
    "AppraisalService",
]
