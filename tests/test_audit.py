"""
Tests for the append-only audit ledger and keyed stores.
"""

import dataclasses
import threading

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.audit import AuditLedger, EntityType, EventType
from core.stores import KeyedStore


@pytest.fixture
def ledger():
    return AuditLedger()


class TestAuditLedger:
    """Events are immutable and kept in creation order."""

    def test_record_returns_event(self, ledger):
        event = ledger.record(
            EntityType.COMPARABLE_RUN, "run_1", EventType.CREATE, {"topK": 5}
        )

        assert event.id.startswith("audit_")
        assert event.entity_type is EntityType.COMPARABLE_RUN
        assert event.payload == {"topK": 5}
        assert len(ledger) == 1

    def test_event_is_frozen(self, ledger):
        event = ledger.record(EntityType.VALUATION, "run_1", EventType.CREATE)
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.entity_id = "other"

    def test_payload_snapshot(self, ledger):
        payload = {"patch": {"floor": 0.1}}
        event = ledger.record(EntityType.ADJUSTMENT_OVERRIDE, "cand_1", EventType.UPDATE, payload)
        payload["patch"]["floor"] = 0.2

        assert event.payload["patch"]["floor"] == 0.1

    def test_to_dict_does_not_expose_payload(self, ledger):
        event = ledger.record(EntityType.REPORT, "report_1", EventType.CREATE, {"a": [1]})
        event.to_dict()["payload"]["a"].append(2)

        assert event.payload == {"a": [1]}

    def test_wire_shape(self, ledger):
        data = ledger.record(EntityType.INGESTION_RUN, "ing_1", EventType.CREATE).to_dict()

        assert data["entityType"] == "ingestion-run"
        assert data["eventType"] == "create"
        assert data["createdAt"].endswith("Z")
        assert set(data) == {"id", "entityType", "entityId", "eventType", "payload", "createdAt"}

    def test_recent_is_newest_first(self, ledger):
        for i in range(5):
            ledger.record(EntityType.VALUATION, f"run_{i}", EventType.CREATE)

        assert [e.entity_id for e in ledger.recent(3)] == ["run_4", "run_3", "run_2"]
        assert [e.entity_id for e in ledger.events] == [f"run_{i}" for i in range(5)]

    def test_recent_zero(self, ledger):
        ledger.record(EntityType.VALUATION, "run_1", EventType.CREATE)
        assert ledger.recent(0) == []

    def test_for_entity(self, ledger):
        ledger.record(EntityType.REPORT, "report_1", EventType.CREATE)
        ledger.record(EntityType.REPORT, "report_2", EventType.CREATE)
        ledger.record(EntityType.REPORT, "report_1", EventType.FINALIZE)

        events = ledger.for_entity("report_1")
        assert [e.event_type for e in events] == [EventType.CREATE, EventType.FINALIZE]

    def test_concurrent_appends_all_kept(self, ledger):
        def worker(n):
            for i in range(100):
                ledger.record(EntityType.VALUATION, f"{n}-{i}", EventType.CREATE)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ledger) == 400
        assert len({e.id for e in ledger.events}) == 400


class TestKeyedStore:
    """Whole-value replacement under a lock."""

    def test_put_and_get(self):
        store = KeyedStore("runs")
        store.put("a", 1)

        assert store.get("a") == 1
        assert store.get("missing") is None
        assert "a" in store
        assert len(store) == 1

    def test_update_replaces_value(self):
        store = KeyedStore()
        store.put("a", (1,))

        assert store.update("a", lambda v: v + (2,)) == (1, 2)
        assert store.get("a") == (1, 2)

    def test_update_missing_key(self):
        store = KeyedStore()
        assert store.update("missing", lambda v: v) is None

    def test_failed_update_leaves_value(self):
        store = KeyedStore()
        store.put("a", 1)

        def fail(_):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update("a", fail)
        assert store.get("a") == 1

    def test_list_in_insertion_order(self):
        store = KeyedStore()
        store.put("b", 2)
        store.put("a", 1)
        store.put("b", 3)

        assert store.list() == [3, 1]
