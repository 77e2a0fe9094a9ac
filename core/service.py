"""
Appraisal Service - Request Facade

One method per external interface: ingestion, run lookup and listing,
comparable search, adjustment override, valuation, reports and audit
query. Request bodies use the camelCase wire shape and responses are
plain dicts in the same shape.

Shared state (comparable runs, reports, audit log, ingestion runs) is
injected, so each service instance is independent.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import replace
from datetime import date
from typing import Any, Optional

from core.audit.ledger import AuditLedger, EntityType, EventType, utc_now_iso
from core.comp_engine.models import (
    ComparableCandidate,
    ComparableRun,
    PropertyProfile,
    ValuationStrategy,
)
from core.comp_engine.ranking import ComparableRanker, adjusted_price
from core.comp_engine.scoring import FeatureScorer
from core.comp_engine.valuation import ValuationAggregator
from core.errors import ConflictError, NotFoundError, ValidationError
from core.ingestion.pipeline import IngestionPipeline
from core.ingestion.repository import IngestionRunRepository
from core.ingestion.schema import IngestionRun, RecordKind
from core.reports import (
    DocumentFact,
    ImageEvidence,
    Report,
    ReportApproval,
    build_sections,
    parse_language,
    validate_report,
)
from core.requests import (
    AdjustmentOverrideRequest,
    ComparableSearchRequest,
    IngestionRequest,
    ReportFinalizeRequest,
    ReportGenerateRequest,
    ValuationRequest,
    parse_request,
)
from core.stores import KeyedStore
from utils.config import Config


logger = logging.getLogger(__name__)

STRATEGY_ERROR = "strategy must be mean | weighted-mean | hedonic"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class AppraisalService:
    """
    Facade over the ingestion, comparable, valuation, report and audit cores.

    Every state-changing call appends exactly one audit event.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        repository: Optional[IngestionRunRepository] = None,
        comparable_runs: Optional[KeyedStore[ComparableRun]] = None,
        reports: Optional[KeyedStore[Report]] = None,
        ledger: Optional[AuditLedger] = None,
        reference_date: Optional[date] = None,
    ):
        """
        Initialise service.

        Args:
            config: Configuration (default: loaded from environment)
            repository: Ingestion run store (default: in-memory only)
            comparable_runs: Comparable run store
            reports: Report store
            ledger: Audit ledger
            reference_date: "Now" for recency scoring (default: today)
        """
        self.config = config or Config.load()
        self.repository = repository if repository is not None else IngestionRunRepository()
        self.comparable_runs = (
            comparable_runs if comparable_runs is not None else KeyedStore("comparable-runs")
        )
        self.reports = reports if reports is not None else KeyedStore("reports")
        self.ledger = ledger if ledger is not None else AuditLedger()

        self._reference_date = reference_date
        self._scorer = FeatureScorer(
            missing_coordinates_as_origin=self.config.missing_coordinates_as_origin
        )

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "AppraisalService":
        """Service with file-backed ingestion runs at the configured path."""
        config = config or Config.load()
        return cls(
            config=config,
            repository=IngestionRunRepository(config.ingestion_runs_path),
        )

    @property
    def reference_date(self) -> date:
        return self._reference_date or date.today()

    # =========================================================================
    # Ingestion
    # =========================================================================

    def run_ingestion(self, body: Any) -> dict[str, Any]:
        """
        Clean, score and de-duplicate transactions and listings, then persist the run.

        Per-record failures land in each kind's errors list; only a
        malformed body raises.

        Raises:
            ValidationError: If transactions or listings is not a list
        """
        request = parse_request(IngestionRequest, body)
        run_id = f"ing_{uuid.uuid4()}"
        started = time.perf_counter()

        pipeline = IngestionPipeline(reference_date=self.reference_date)
        transactions = pipeline.run(request.transactions, RecordKind.TRANSACTION)
        listings = pipeline.run(request.listings, RecordKind.LISTING)

        run = IngestionRun(
            run_id=run_id,
            created_by=request.created_by,
            created_at=utc_now_iso(),
            elapsed_ms=_elapsed_ms(started),
            transactions=transactions,
            listings=listings,
        )
        self.repository.save(run)

        self.ledger.record(
            EntityType.INGESTION_RUN,
            run_id,
            EventType.CREATE,
            {
                "createdBy": request.created_by,
                "totalTransactions": len(request.transactions),
                "totalListings": len(request.listings),
                "elapsedMs": run.elapsed_ms,
            },
        )
        logger.info(
            "Ingestion run %s by %s: %d cleaned, %d duplicates, %d errors",
            run_id,
            request.created_by,
            run.summary.cleaned,
            run.summary.duplicates,
            run.summary.errors,
        )
        return run.to_dict()

    def get_ingestion_run(self, run_id: str) -> dict[str, Any]:
        """
        Raises:
            NotFoundError: If no run has this id
        """
        run = self.repository.get(run_id)
        if run is None:
            raise NotFoundError("Ingestion run not found")
        return run.to_dict()

    def list_ingestion_runs(self, limit: Optional[int] = None) -> dict[str, Any]:
        """Run summaries, most recent first."""
        if limit is None:
            limit = self.config.ingestion_list_limit
        runs = [run.summary_dict() for run in self.repository.list(limit)]
        return {"count": len(runs), "runs": runs}

    # =========================================================================
    # Comparables
    # =========================================================================

    def search_comparables(self, body: Any) -> dict[str, Any]:
        """
        Rank a comparable pool against a subject and store the run.

        Raises:
            ValidationError: If subject or pool is missing, or the pool
                exceeds the configured maximum size
        """
        request = parse_request(ComparableSearchRequest, body)
        pool_size = len(request.comparables_pool)
        if pool_size > self.config.max_pool_size:
            raise ValidationError(
                f"comparablesPool exceeds maximum size of {self.config.max_pool_size}"
            )

        top_k = request.top_k if request.top_k is not None else self.config.default_top_k
        run_id = f"run_{uuid.uuid4()}"
        started = time.perf_counter()

        subject = PropertyProfile.from_dict(request.subject)
        pool = [PropertyProfile.from_dict(comp) for comp in request.comparables_pool]
        ranker = ComparableRanker(reference_date=self.reference_date, scorer=self._scorer)
        ranked = ranker.rank(subject, pool, top_k)

        run = ComparableRun(
            run_id=run_id,
            subject=subject,
            comparables=tuple(ranked),
            created_at=utc_now_iso(),
            requested_by=request.requested_by,
            elapsed_ms=_elapsed_ms(started),
        )
        self.comparable_runs.put(run_id, run)

        self.ledger.record(
            EntityType.COMPARABLE_RUN,
            run_id,
            EventType.CREATE,
            {"requestedBy": request.requested_by, "topK": top_k},
        )
        logger.info(
            "Comparable run %s: %d of %d candidates kept", run_id, len(ranked), pool_size
        )
        return {
            "runId": run_id,
            "elapsedMs": run.elapsed_ms,
            "comparables": [c.to_public_dict() for c in run.comparables],
        }

    def get_comparable_run(self, run_id: str) -> ComparableRun:
        """
        Raises:
            NotFoundError: If no comparable run has this id
        """
        run = self.comparable_runs.get(run_id)
        if run is None:
            raise NotFoundError("Comparable run not found")
        return run

    def override_adjustment(self, run_id: str, body: Any) -> dict[str, Any]:
        """
        Patch one candidate's adjustment and recompute its adjusted price.

        The total is re-summed from all ten components and re-clamped.
        The run is replaced as a whole value; one audit event is appended.

        Raises:
            NotFoundError: If the run or the candidate does not exist
            ValidationError: If candidateId, patch, appraiserId or reason is missing
        """
        self.get_comparable_run(run_id)
        request = parse_request(AdjustmentOverrideRequest, body)
        components = request.patch.components()

        def apply(run: ComparableRun) -> ComparableRun:
            idx = run.find_candidate(request.candidate_id)
            if idx is None:
                raise NotFoundError("Candidate not found in run")
            current = run.comparables[idx]
            adjustment = current.adjustment.merge(components)
            updated = replace(
                current,
                adjustment=adjustment,
                adjusted_price=adjusted_price(
                    current.comparable.sale_price, adjustment.total_percent
                ),
            )
            return run.with_candidate(idx, updated)

        run = self.comparable_runs.update(run_id, apply)
        if run is None:
            raise NotFoundError("Comparable run not found")
        candidate: ComparableCandidate = run.comparables[run.find_candidate(request.candidate_id)]

        event = self.ledger.record(
            EntityType.ADJUSTMENT_OVERRIDE,
            request.candidate_id,
            EventType.UPDATE,
            {
                "runId": run_id,
                "appraiserId": request.appraiser_id,
                "reason": request.reason,
                "patch": request.patch.model_dump(by_alias=True, exclude_none=True),
            },
        )
        logger.info(
            "Adjustment override on %s by %s: total %.4f",
            request.candidate_id,
            request.appraiser_id,
            candidate.adjustment.total_percent,
        )
        return {
            "runId": run_id,
            "candidateId": request.candidate_id,
            "adjustedPrice": candidate.adjusted_price,
            "updatedAdjustment": candidate.adjustment.to_dict(),
            "auditEventId": event.id,
        }

    # =========================================================================
    # Valuation
    # =========================================================================

    def _aggregator(self) -> ValuationAggregator:
        return ValuationAggregator(
            reference_date=self.reference_date,
            iqr_multiplier=self.config.iqr_multiplier,
            hedonic_weighted_share=self.config.hedonic_weighted_share,
        )

    def estimate_valuation(self, body: Any) -> dict[str, Any]:
        """
        Value the subject of a comparable run.

        Raises:
            ValidationError: If runId is missing or strategy is unknown
            NotFoundError: If the run does not exist
        """
        request = parse_request(ValuationRequest, body)
        strategy = ValuationStrategy.from_string(request.strategy)
        if strategy is None:
            raise ValidationError(STRATEGY_ERROR)

        run = self.get_comparable_run(request.run_id)
        result = self._aggregator().valuate(run.comparables, strategy)

        self.ledger.record(
            EntityType.VALUATION,
            run.run_id,
            EventType.CREATE,
            {"strategy": strategy.value, "result": result.to_dict()},
        )
        if result.degenerate:
            logger.warning("Valuation for run %s had no adjusted prices", run.run_id)
        return {"runId": run.run_id, **result.to_dict()}

    # =========================================================================
    # Reports
    # =========================================================================

    def generate_report(self, body: Any) -> dict[str, Any]:
        """
        Build a report from a comparable run using a weighted-mean valuation.

        Raises:
            ValidationError: If subjectProperty or runId is missing
            NotFoundError: If the run does not exist
        """
        request = parse_request(ReportGenerateRequest, body)
        run = self.get_comparable_run(request.run_id)

        language = parse_language(request.language)
        facts = [DocumentFact.from_dict(f) for f in request.document_facts]
        images = [ImageEvidence.from_dict(i) for i in request.image_evidence]
        valuation = self._aggregator().valuate(run.comparables, ValuationStrategy.WEIGHTED_MEAN)

        report = Report(
            report_id=f"report_{uuid.uuid4()}",
            version=1,
            template_id=request.template_id,
            language=language,
            created_at=utc_now_iso(),
            run_id=run.run_id,
            sections=build_sections(
                PropertyProfile.from_dict(request.subject_property),
                valuation,
                run.comparables,
                facts,
                images,
                language,
            ),
            validations=validate_report(valuation, facts, run.comparables),
        )
        self.reports.put(report.report_id, report)

        self.ledger.record(
            EntityType.REPORT,
            report.report_id,
            EventType.CREATE,
            {
                "runId": run.run_id,
                "templateId": report.template_id,
                "language": language.value,
            },
        )
        logger.info(
            "Report %s generated for run %s (%d issues)",
            report.report_id,
            run.run_id,
            len(report.validations),
        )
        return report.to_dict()

    def get_report(self, report_id: str) -> Report:
        """
        Raises:
            NotFoundError: If no report has this id
        """
        report = self.reports.get(report_id)
        if report is None:
            raise NotFoundError("Report not found")
        return report

    def validate_report(self, report_id: str) -> dict[str, Any]:
        report = self.get_report(report_id)
        return {
            "reportId": report_id,
            "status": "pass" if report.ready_for_final_approval else "fail",
            "issues": [i.to_dict() for i in report.validations],
        }

    def finalize_report(self, report_id: str, body: Any) -> dict[str, Any]:
        """
        Sign off a report.

        Raises:
            NotFoundError: If the report does not exist
            ValidationError: If appraiserId or approvalComment is missing
            ConflictError: If the report has error issues or is already finalized
        """
        self.get_report(report_id)
        request = parse_request(ReportFinalizeRequest, body)

        def finalize(report: Report) -> Report:
            if report.is_finalized:
                raise ConflictError("Report is already finalized")
            if report.errors:
                raise ConflictError(
                    "Report has validation errors and cannot be finalized",
                    [i.message for i in report.errors],
                )
            approval = ReportApproval(
                report_id=report.report_id,
                version=report.version + 1,
                pdf_url=f"/api/v1/reports/{report.report_id}/pdf",
                signature_id=f"sig_{uuid.uuid4()}",
                approved_by=request.appraiser_id,
                approval_comment=request.approval_comment,
                approved_at=utc_now_iso(),
            )
            return replace(report, version=approval.version, approval=approval)

        report = self.reports.update(report_id, finalize)
        if report is None:
            raise NotFoundError("Report not found")
        approval = report.approval.to_dict()

        self.ledger.record(EntityType.REPORT, report_id, EventType.FINALIZE, approval)
        logger.info("Report %s finalized by %s", report_id, request.appraiser_id)
        return approval

    # =========================================================================
    # Audit and health
    # =========================================================================

    def audit_events(self, limit: Optional[int] = None) -> dict[str, Any]:
        """Total event count plus the most recent events, newest first."""
        if limit is None:
            limit = self.config.audit_query_limit
        return {
            "count": len(self.ledger),
            "events": [e.to_dict() for e in self.ledger.recent(limit)],
        }

    def health(self) -> dict[str, Any]:
        return {"status": "ok", "timestamp": utc_now_iso()}

    def persistence_health(self) -> dict[str, Any]:
        return self.repository.check_health()
