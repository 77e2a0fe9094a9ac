"""
Append-only audit ledger for state-changing actions.
"""

from .ledger import AuditEvent, AuditLedger, EntityType, EventType, utc_now_iso

__all__ = [
    "AuditEvent",
    "AuditLedger",
    "EntityType",
    "EventType",
    "utc_now_iso",
]
