"""
Audit Logger

Every ledger mutation, import, export, load and save produces an
AuditEvent. Events always go to the local structlog output; a storage
backend (in-memory or a Google Sheets worksheet) can keep them too.

The logger is synchronous like the store it observes. A failing audit
backend is reported in the local log and never breaks a mutation.
"""

import logging
from typing import Optional

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from household_ledger.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "info") -> None:
    """Route structlog's JSON lines through the stdlib root logger."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


_LEVELS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Writes every audit event to the local structured log and, when a
    storage backend is given, to the persistent audit trail as well.

    Usage:
        audit = AuditLogger(InMemoryAuditStorage())
        audit.log_entity_created("person", person_id, name="Alex")
    """

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("household_ledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when the storage backend rejected the event;
        the failure is logged locally and never raised to the caller.
        """
        emit = getattr(self._logger, _LEVELS[event.severity])
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True

        try:
            return self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def log_entity_created(self, entity_type: str, entity_id: str, **details) -> None:
        self.log(AuditEventBuilder.entity_created(entity_type, entity_id, details))

    def log_entity_updated(self, entity_type: str, entity_id: str, **details) -> None:
        self.log(AuditEventBuilder.entity_updated(entity_type, entity_id, details))

    def log_entity_deleted(self, entity_type: str, entity_id: str, **details) -> None:
        self.log(AuditEventBuilder.entity_deleted(entity_type, entity_id, details))

    def log_cascade_deleted(
        self,
        entity_type: str,
        entity_id: str,
        removed: dict[str, int],
    ) -> None:
        """Log a delete that took dependent records with it."""
        self.log(AuditEventBuilder.cascade_deleted(entity_type, entity_id, removed))

    def log_category_delete_blocked(
        self,
        category_id: str,
        references: dict[str, int],
    ) -> None:
        self.log(AuditEventBuilder.category_delete_blocked(category_id, references))

    def log_ledger_reset(self) -> None:
        self.log(AuditEventBuilder.ledger_reset())

    def log_snapshot_exported(self, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.snapshot_exported(counts))

    def log_snapshot_imported(self, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.snapshot_imported(counts))

    def log_snapshot_import_failed(self, issues: list[dict]) -> None:
        """Log a rejected import with the issues that caused it."""
        self.log(AuditEventBuilder.snapshot_import_failed(issues))

    def log_snapshot_loaded(self, found: bool, backend: str) -> None:
        self.log(AuditEventBuilder.snapshot_loaded(found, backend))

    def log_snapshot_saved(self, backend: str, timestamp) -> None:
        self.log(AuditEventBuilder.snapshot_saved(backend, timestamp))

    def log_storage_error(self, backend: str, error_message: str) -> None:
        """Log a failed load or save."""
        self.log(AuditEventBuilder.storage_error(backend, error_message))
