"""
Abstract Storage Interface

DESIGN DECISION: The ledger never talks to a storage technology directly.
It hands a Snapshot to whatever implements this interface:
1. JSON file on disk (default)
2. Google Sheets
3. In-memory storage for testing

The contract is two calls: load the whole ledger and save the
whole ledger. There are no per-record writes.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional, Union

from household_ledger.models.audit import AuditEvent
from household_ledger.models.snapshot import Snapshot


class SnapshotStorageInterface(ABC):
    """
    Persistence of the whole ledger as one Snapshot.

    A backend stores exactly one snapshot, the latest save.
    """

    #: Short backend name used in logs and audit events
    backend_name: str = "unknown"

    @abstractmethod
    def load(self) -> Optional[Union[Snapshot, Mapping[str, Any]]]:
        """
        Load the most recently saved snapshot.

        Backends that read serialized data return it as a raw mapping;
        the store runs the full import validation on it before use.

        Returns:
            The snapshot or its raw mapping, or None if nothing has
            been saved yet (first run)

        Raises:
            StorageError: If stored data exists but cannot be read
        """
        pass

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        """
        Persist a snapshot, replacing the previous one.

        Args:
            snapshot: The complete ledger state to store

        Raises:
            StorageError: If the snapshot could not be written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Where audit events end up besides the local structlog output.

    Append-only: events are written once and never edited or removed.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """Store one event. Returns True once it is stored."""
        pass

    @abstractmethod
    def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        """History of one record, oldest event first."""
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Up to `limit` events, newest first."""
        pass


class StorageError(Exception):
    """A backend failed to load or save."""
    pass


class StorageConnectionError(StorageError):
    """The backend could not be reached or authorized."""
    pass
