"""
In-Memory Storage

Keeps the saved snapshot and audit events in process memory.
Used by tests and by the "memory" storage backend.
"""

from typing import Optional

from household_ledger.models.audit import AuditEvent
from household_ledger.models.snapshot import Snapshot
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    SnapshotStorageInterface,
)


class InMemorySnapshotStorage(SnapshotStorageInterface):
    """Snapshot storage backed by an attribute. Snapshots are immutable, so no copy is needed."""

    backend_name = "memory"

    def __init__(self, snapshot: Optional[Snapshot] = None):
        self._snapshot = snapshot
        self.save_count = 0

    def load(self) -> Optional[Snapshot]:
        return self._snapshot

    def save(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.save_count += 1


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        # Reverse insertion order keeps same-timestamp events stable
        return list(reversed(self._events))[:limit]
