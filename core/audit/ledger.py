"""
Audit Ledger - Append-Only Event Log

Every ingestion run, comparable search, adjustment override, valuation
and report action appends exactly one event. Events are immutable and
are never edited or removed.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


logger = logging.getLogger(__name__)


class EntityType(Enum):
    """Kind of entity an audit event refers to."""

    INGESTION_RUN = "ingestion-run"
    COMPARABLE_RUN = "comparable-run"
    ADJUSTMENT_OVERRIDE = "adjustment-override"
    VALUATION = "valuation"
    REPORT = "report"


class EventType(Enum):
    """What happened to the entity."""

    CREATE = "create"
    UPDATE = "update"
    FINALIZE = "finalize"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class AuditEvent:
    """
    Immutable audit entry.

    The payload is deep-copied at creation so later changes to the
    caller's objects cannot alter history.
    """

    id: str
    entity_type: EntityType
    entity_id: str
    event_type: EventType
    payload: dict[str, Any]
    created_at: str

    @classmethod
    def create(
        cls,
        entity_type: EntityType,
        entity_id: str,
        event_type: EventType,
        payload: Optional[dict[str, Any]] = None,
    ) -> "AuditEvent":
        return cls(
            id=f"audit_{uuid.uuid4()}",
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            payload=copy.deepcopy(payload or {}),
            created_at=utc_now_iso(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entityType": self.entity_type.value,
            "entityId": self.entity_id,
            "eventType": self.event_type.value,
            "payload": copy.deepcopy(self.payload),
            "createdAt": self.created_at,
        }


class AuditLedger:
    """
    Append-only audit log held in creation order.

    Appends are serialised by a lock so the log stays ordered under
    concurrent writers.
    """

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    def record(
        self,
        entity_type: EntityType,
        entity_id: str,
        event_type: EventType,
        payload: Optional[dict[str, Any]] = None,
    ) -> AuditEvent:
        """
        Append one event.

        Returns:
            The appended event
        """
        event = AuditEvent.create(entity_type, entity_id, event_type, payload)
        with self._lock:
            self._events.append(event)
        logger.debug(
            "Audit %s %s %s (%s)",
            entity_type.value,
            entity_id,
            event_type.value,
            event.id,
        )
        return event

    @property
    def events(self) -> tuple[AuditEvent, ...]:
        """All events, oldest first (read-only)."""
        return tuple(self._events)

    def recent(self, limit: int = 500) -> list[AuditEvent]:
        """The most recent `limit` events, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._events[-limit:]))

    def for_entity(self, entity_id: str) -> list[AuditEvent]:
        """Events for one entity, oldest first."""
        return [e for e in self._events if e.entity_id == entity_id]

    def __len__(self) -> int:
        return len(self._events)
