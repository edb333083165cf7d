"""
Audit Models for Household Ledger

Every mutation of the ledger and every persistence round-trip is logged
for audit purposes. This provides:
1. Traceability of who-changed-what in the household books
2. Debugging information when an import or save goes wrong
3. The ability to reconstruct the sequence of edits

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from household_ledger.models.snapshot import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Entity lifecycle
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    CASCADE_DELETED = "cascade_deleted"
    CATEGORY_DELETE_BLOCKED = "category_delete_blocked"
    LEDGER_RESET = "ledger_reset"

    # Snapshots
    SNAPSHOT_EXPORTED = "snapshot_exported"
    SNAPSHOT_IMPORTED = "snapshot_imported"
    SNAPSHOT_IMPORT_FAILED = "snapshot_import_failed"

    # Persistence
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_SAVED = "snapshot_saved"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Column order of the audit worksheet
AUDIT_FIELDS = (
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "description",
    "details",
    "error_message",
)


class AuditEvent(BaseModel):
    """
    One entry of the audit trail.

    `entity_type`/`entity_id` name the record the event is about
    ("person"/"p1", or "snapshot" for persistence events).
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="UTC time the event was recorded"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload, e.g. removed counts of a cascade"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Flat, JSON-friendly dict for the structlog renderer."""
        data = self.model_dump(mode="json")
        data["event_id"] = str(self.event_id)
        data["timestamp"] = self.timestamp.isoformat()
        return {name: data[name] for name in AUDIT_FIELDS}

    def to_sheets_row(self) -> list:
        """
        Row for the audit worksheet, in AUDIT_FIELDS order.

        Empty optionals become "" and details are stored as JSON text.
        """
        data = self.to_log_dict()
        data["details"] = json.dumps(self.details, default=str) if self.details else ""
        return ["" if data[name] is None else data[name] for name in AUDIT_FIELDS]


class AuditEventBuilder:
    """
    Factory methods for the events the ledger emits.

    Usage:
        event = AuditEventBuilder.entity_created("transaction", txn_id)
        event = AuditEventBuilder.cascade_deleted("person", person_id, removed)
    """

    @staticmethod
    def _entity_event(
        event_type: AuditEventType,
        verb: str,
        entity_type: str,
        entity_id: str,
        details: Optional[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{verb} {entity_type} {entity_id}",
            details=details or {},
        )

    @staticmethod
    def entity_created(entity_type: str, entity_id: str, details: Optional[dict] = None) -> AuditEvent:
        return AuditEventBuilder._entity_event(
            AuditEventType.ENTITY_CREATED, "Created", entity_type, entity_id, details
        )

    @staticmethod
    def entity_updated(entity_type: str, entity_id: str, details: Optional[dict] = None) -> AuditEvent:
        return AuditEventBuilder._entity_event(
            AuditEventType.ENTITY_UPDATED, "Updated", entity_type, entity_id, details
        )

    @staticmethod
    def entity_deleted(entity_type: str, entity_id: str, details: Optional[dict] = None) -> AuditEvent:
        return AuditEventBuilder._entity_event(
            AuditEventType.ENTITY_DELETED, "Deleted", entity_type, entity_id, details
        )

    @staticmethod
    def cascade_deleted(
        entity_type: str,
        entity_id: str,
        removed: dict[str, int],
    ) -> AuditEvent:
        """A delete that took `removed` dependent records (per collection) with it."""
        total = sum(removed.values())
        return AuditEvent(
            event_type=AuditEventType.CASCADE_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Deleted {entity_type} {entity_id} and {total} dependent records",
            details={"removed": removed},
        )

    @staticmethod
    def category_delete_blocked(
        category_id: str,
        references: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETE_BLOCKED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            description="Category deletion blocked: category is still in use",
            details={"references": references},
        )

    @staticmethod
    def ledger_reset() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            description="Ledger reset to first-run state",
        )

    # Snapshot events carry per-collection record counts
    @staticmethod
    def snapshot_exported(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_EXPORTED,
            entity_type="snapshot",
            description="Snapshot exported",
            details={"counts": counts},
        )

    @staticmethod
    def snapshot_imported(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_IMPORTED,
            entity_type="snapshot",
            description="Snapshot imported, all collections replaced",
            details={"counts": counts},
        )

    @staticmethod
    def snapshot_import_failed(issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description=f"Snapshot import rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def snapshot_loaded(found: bool, backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            entity_type="snapshot",
            description=(
                f"Snapshot loaded from {backend}"
                if found
                else f"No snapshot in {backend}, starting with defaults"
            ),
            details={"found": found, "backend": backend},
        )

    @staticmethod
    def snapshot_saved(backend: str, timestamp: datetime) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            entity_type="snapshot",
            description=f"Snapshot saved to {backend}",
            details={"backend": backend, "snapshot_timestamp": timestamp.isoformat()},
        )

    @staticmethod
    def storage_error(backend: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            description=f"Storage error: {backend}",
            error_message=error_message,
            details={"backend": backend},
        )
