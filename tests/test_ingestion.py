"""
Tests for the ingestion pipeline.

Verifies:
- Record validation reasons, in check order
- Duplicate detection by binned dedupe key
- Duplicate conservation (clean + duplicate == valid input)
- Dedupe key is insensitive to casing and field order
- Scores are always within [0, 1]
- Per-record errors never abort a run
"""

import pytest
from datetime import date
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.ingestion import (
    IngestionPipeline,
    IngestionSummary,
    RecordKind,
    make_dedupe_key,
    validate_record,
)
from core.ingestion.pipeline import (
    RELIABILITY_DEFAULT,
    RELIABILITY_MARKET,
    RELIABILITY_OFFICIAL,
    completeness_score,
    recency_score,
    source_reliability,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def reference_date():
    """Fixed reference date for deterministic tests."""
    return date(2024, 6, 1)


@pytest.fixture
def pipeline(reference_date):
    return IngestionPipeline(reference_date=reference_date)


@pytest.fixture
def make_transaction():
    """Factory fixture for raw transaction records."""
    def _create(**overrides):
        record = {
            "source": "gov-tax-authority",
            "sourceRecordId": "TX-1",
            "address": "רח' הרצל 10, תל אביב",
            "price": 2_500_000,
            "transactionDate": "2024-03-15",
            "lat": 32.0853,
            "lon": 34.7818,
            "area": 85,
            "floor": 3,
            "rooms": 4,
        }
        record.update(overrides)
        return record
    return _create


@pytest.fixture
def make_listing():
    """Factory fixture for raw listing records."""
    def _create(**overrides):
        record = {
            "source": "yad2-listing",
            "sourceRecordId": "L-1",
            "address": "ויצמן 3 נתניה",
            "price": 1_900_000,
            "listingDate": "2024-05-01",
            "status": "active",
        }
        record.update(overrides)
        return record
    return _create


# =============================================================================
# Test: Record Validation
# =============================================================================

class TestRecordValidation:
    """Validator returns a reason string and never raises."""

    def test_valid_transaction(self, make_transaction):
        assert validate_record(make_transaction(), RecordKind.TRANSACTION) is None

    def test_valid_listing(self, make_listing):
        assert validate_record(make_listing(), RecordKind.LISTING) is None

    @pytest.mark.parametrize("record", [None, "text", 42, ["a"]])
    def test_non_object(self, record):
        assert validate_record(record, RecordKind.TRANSACTION) == "record must be an object"

    @pytest.mark.parametrize(
        "field,reason",
        [
            ("source", "missing source"),
            ("sourceRecordId", "missing sourceRecordId"),
            ("address", "missing address"),
            ("price", "invalid price"),
            ("transactionDate", "missing transactionDate"),
        ],
    )
    def test_missing_field(self, make_transaction, field, reason):
        record = make_transaction()
        del record[field]
        assert validate_record(record, RecordKind.TRANSACTION) == reason

    @pytest.mark.parametrize("price", [0, -100, "abc", float("nan"), float("inf"), True])
    def test_invalid_price(self, make_transaction, price):
        record = make_transaction(price=price)
        assert validate_record(record, RecordKind.TRANSACTION) == "invalid price"

    def test_numeric_string_price_accepted(self, make_transaction):
        record = make_transaction(price="2500000")
        assert validate_record(record, RecordKind.TRANSACTION) is None

    def test_listing_requires_listing_date(self, make_listing):
        record = make_listing()
        del record["listingDate"]
        assert validate_record(record, RecordKind.LISTING) == "missing listingDate"

    def test_transaction_date_not_enough_for_listing(self, make_listing):
        record = make_listing()
        del record["listingDate"]
        record["transactionDate"] = "2024-05-01"
        assert validate_record(record, RecordKind.LISTING) == "missing listingDate"

    def test_first_failing_check_wins(self):
        record = {"price": -1}
        assert validate_record(record, RecordKind.TRANSACTION) == "missing source"


# =============================================================================
# Test: Sub-scores
# =============================================================================

class TestSubScores:
    """Reliability, recency and completeness heuristics."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("GOV-Nadlan", RELIABILITY_OFFICIAL),
            ("israel-tax-authority", RELIABILITY_OFFICIAL),
            ("Official Registry", RELIABILITY_OFFICIAL),
            ("yad2-LISTING", RELIABILITY_MARKET),
            ("market-feed", RELIABILITY_MARKET),
            ("broker-sheet", RELIABILITY_DEFAULT),
            (None, RELIABILITY_DEFAULT),
        ],
    )
    def test_source_reliability(self, source, expected):
        assert source_reliability(source) == expected

    def test_recency_current_month(self, reference_date):
        assert recency_score("2024-06-20", reference_date) == 1.0

    def test_recency_two_years(self, reference_date):
        assert recency_score("2022-06-15", reference_date) == pytest.approx(0.5)

    def test_recency_saturates(self, reference_date):
        assert recency_score("2010-01-01", reference_date) == 0.0

    @pytest.mark.parametrize("value", ["garbage", "", None, "2024-13-45"])
    def test_recency_unparseable(self, reference_date, value):
        assert recency_score(value, reference_date) == 0.0

    def test_completeness_base(self):
        record = {"source": "x", "sourceRecordId": "1", "address": "a", "price": 1}
        assert completeness_score(record, RecordKind.TRANSACTION) == pytest.approx(0.4)

    def test_completeness_full(self, make_transaction):
        assert completeness_score(make_transaction(), RecordKind.TRANSACTION) == pytest.approx(1.0)

    def test_coordinates_need_both(self, make_transaction):
        record = make_transaction()
        del record["lon"]
        assert completeness_score(record, RecordKind.TRANSACTION) == pytest.approx(0.8)

    def test_listing_status_bonus(self, make_listing):
        assert completeness_score(make_listing(), RecordKind.LISTING) == pytest.approx(0.45)

    def test_status_ignored_for_transactions(self, make_transaction):
        full = make_transaction(status="sold")
        assert completeness_score(full, RecordKind.TRANSACTION) == pytest.approx(1.0)


# =============================================================================
# Test: Dedupe Key
# =============================================================================

class TestDedupeKey:
    """Fingerprint binning and sentinels."""

    def test_components_and_bins(self):
        key = make_dedupe_key(
            normalized_address="תל אביב | הרצל | 10",
            city="תל אביב",
            lat=32.08534,
            lon=34.78176,
            area=86,
            event_date="2024-03-15T10:30:00Z",
            price=2_500_400,
        )
        assert key == "תל אביב | הרצל | 10|תל אביב|32085|34782|85|2024-03-15|2500"

    def test_missing_components_become_sentinel(self):
        key = make_dedupe_key("", None, None, None, None, None, None)
        assert key == "||na|na|na|na|na"

    def test_casing_does_not_split_key(self):
        upper = make_dedupe_key("SPRINGFIELD | MAIN ST | 12", "SPRINGFIELD", 1, 2, 50, "2024-01-01", 1000)
        lower = make_dedupe_key("springfield | main st | 12", "springfield", 1, 2, 50, "2024-01-01", 1000)
        assert upper == lower

    def test_small_noise_forgiven(self):
        a = make_dedupe_key("k", "c", 32.0851, 34.7811, 84, "2024-01-01", 1_000_200)
        b = make_dedupe_key("k", "c", 32.0849, 34.7809, 86, "2024-01-01", 999_800)
        assert a == b

    def test_material_difference_distinguished(self):
        a = make_dedupe_key("k", "c", 32.085, 34.781, 85, "2024-01-01", 1_000_000)
        b = make_dedupe_key("k", "c", 32.085, 34.781, 85, "2024-01-01", 1_100_000)
        assert a != b


# =============================================================================
# Test: Pipeline
# =============================================================================

class TestIngestionPipeline:
    """Partitioning, scores and determinism."""

    def test_same_event_from_two_sources_is_duplicate(self, pipeline, make_transaction):
        first = make_transaction(source="gov-tax", price=2_500_200)
        second = make_transaction(
            source="broker-sheet",
            sourceRecordId="B-77",
            address="רחוב הרצל 10 תל אביב",
            price=2_500_400,
        )
        result = pipeline.run([first, second], RecordKind.TRANSACTION)

        assert len(result.cleaned) == 1
        assert len(result.duplicates) == 1
        assert result.cleaned[0].source == "gov-tax"
        assert result.duplicates[0].dedupe_key == result.cleaned[0].dedupe_key

    def test_missing_price_is_rejected(self, pipeline, make_transaction):
        bad = make_transaction()
        del bad["price"]
        result = pipeline.run([bad, make_transaction(price=0)], RecordKind.TRANSACTION)

        assert result.cleaned == ()
        assert [(e.index, e.reason) for e in result.errors] == [
            (0, "invalid price"),
            (1, "invalid price"),
        ]

    def test_errors_do_not_abort_run(self, pipeline, make_transaction):
        records = [None, make_transaction(), {"source": "x"}]
        result = pipeline.run(records, RecordKind.TRANSACTION)

        assert result.total == 3
        assert len(result.cleaned) == 1
        assert [e.index for e in result.errors] == [0, 2]

    def test_duplicate_conservation(self, pipeline, make_transaction):
        records = [
            make_transaction(price=1_000_000),
            make_transaction(price=1_000_000),
            make_transaction(price=2_000_000),
            make_transaction(price=2_000_000),
            make_transaction(price=2_000_000),
            make_transaction(price=3_000_000),
        ]
        result = pipeline.run(records, RecordKind.TRANSACTION)
        distinct = {r.dedupe_key for r in result.cleaned + result.duplicates}

        assert result.stats.clean_count == len(distinct) == 3
        assert result.stats.duplicate_count == len(records) - len(distinct)
        assert result.stats.error_count == 0

    def test_key_independent_of_field_order(self, pipeline, make_transaction):
        record = make_transaction()
        reordered = dict(reversed(list(record.items())))
        a = pipeline.clean_record(record, RecordKind.TRANSACTION)
        b = pipeline.clean_record(reordered, RecordKind.TRANSACTION)
        assert a.dedupe_key == b.dedupe_key

    def test_city_field_casing_does_not_split_key(self, pipeline, make_transaction):
        a = pipeline.clean_record(
            make_transaction(address="12 Main Street", city="Springfield"),
            RecordKind.TRANSACTION,
        )
        b = pipeline.clean_record(
            make_transaction(address="12 MAIN STREET", city="SPRINGFIELD"),
            RecordKind.TRANSACTION,
        )
        assert a.dedupe_key == b.dedupe_key

    def test_scores_within_bounds(self, pipeline, make_transaction, make_listing):
        records = [
            make_transaction(),
            make_transaction(address="???", transactionDate="bad", source="x", area=None),
            make_transaction(lat=None, lon=None, floor=None, rooms=None, price=1),
        ]
        rows = pipeline.run(records, RecordKind.TRANSACTION).cleaned
        rows += pipeline.run([make_listing()], RecordKind.LISTING).cleaned

        for row in rows:
            assert 0.0 <= row.confidence_score <= 1.0
            assert 0.0 <= row.completeness_score <= 1.0

    def test_record_id_prefixed_by_kind(self, pipeline, make_transaction, make_listing):
        tx = pipeline.run([make_transaction()], RecordKind.TRANSACTION).cleaned[0]
        ls = pipeline.run([make_listing()], RecordKind.LISTING).cleaned[0]

        assert tx.id.startswith("transaction_")
        assert ls.id.startswith("listing_")
        assert tx.id != ls.id

    def test_confidence_combination(self, pipeline, make_transaction):
        row = pipeline.clean_record(make_transaction(), RecordKind.TRANSACTION)

        # official source, 3 months old, full address, complete record
        expected = 0.35 * 0.95 + 0.25 * (1 - 3 / 48) + 0.25 * 1.0 + 0.15 * 1.0
        assert row.confidence_score == pytest.approx(expected)

    def test_city_falls_back_to_address(self, pipeline, make_transaction):
        with_city = pipeline.clean_record(make_transaction(city="תל אביב"), RecordKind.TRANSACTION)
        without = pipeline.clean_record(make_transaction(), RecordKind.TRANSACTION)
        assert with_city.dedupe_key == without.dedupe_key

    def test_caller_mutation_does_not_leak(self, pipeline, make_transaction):
        record = make_transaction()
        row = pipeline.clean_record(record, RecordKind.TRANSACTION)
        record["price"] = 1

        assert row.price == 2_500_000

    def test_idempotent_for_same_input(self, pipeline, make_transaction):
        records = [make_transaction(price=p) for p in (1_000_000, 1_000_000, 2_000_000)]
        first = pipeline.run(records, RecordKind.TRANSACTION)
        second = pipeline.run(records, RecordKind.TRANSACTION)

        assert [r.dedupe_key for r in first.cleaned] == [r.dedupe_key for r in second.cleaned]
        assert first.stats.to_dict() == second.stats.to_dict()

    def test_empty_input(self, pipeline):
        result = pipeline.run([], RecordKind.LISTING)

        assert result.total == 0
        assert result.stats.avg_confidence == 0.0


class TestIngestionSummary:
    """Run-level totals across both kinds."""

    def test_avg_confidence_weighted_by_clean_count(
        self, pipeline, make_transaction, make_listing
    ):
        tx = pipeline.run(
            [make_transaction(price=1_000_000), make_transaction(price=2_000_000)],
            RecordKind.TRANSACTION,
        )
        ls = pipeline.run([make_listing()], RecordKind.LISTING)
        summary = IngestionSummary.from_results(tx, ls)

        expected = (tx.stats.avg_confidence * 2 + ls.stats.avg_confidence) / 3
        assert summary.input == 3
        assert summary.cleaned == 3
        assert summary.avg_confidence == pytest.approx(expected)

    def test_no_clean_records(self, pipeline):
        tx = pipeline.run([None], RecordKind.TRANSACTION)
        summary = IngestionSummary.from_results(tx)

        assert summary.errors == 1
        assert summary.avg_confidence == 0.0
