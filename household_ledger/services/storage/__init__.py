"""
Storage Services Package

Provides abstract interfaces and concrete implementations for snapshot
and audit persistence: in-memory, JSON file and Google Sheets.
"""

from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    SnapshotStorageInterface,
    StorageConnectionError,
    StorageError,
)
from household_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
)
from household_ledger.services.storage.json_file import JsonFileSnapshotStorage
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSnapshotStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "SnapshotStorageInterface",
    # Exceptions
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemorySnapshotStorage",
    # JSON file implementation
    "JsonFileSnapshotStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSnapshotStorage",
]
