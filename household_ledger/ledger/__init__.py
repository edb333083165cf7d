"""Ledger store package."""

from household_ledger.ledger.errors import (
    CategoryInUseError,
    DanglingReferenceError,
    LedgerError,
    NotFoundError,
    SnapshotImportError,
    ValidationError,
)
from household_ledger.ledger.store import ENTITY_NAMES, LedgerStore

__all__ = [
    # Store
    "ENTITY_NAMES",
    "LedgerStore",
    # Errors
    "CategoryInUseError",
    "DanglingReferenceError",
    "LedgerError",
    "NotFoundError",
    "SnapshotImportError",
    "ValidationError",
]
