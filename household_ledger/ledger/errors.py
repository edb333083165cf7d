"""
Ledger Errors

Every failure of a ledger operation is one of these. Mutations that raise
leave the store exactly as it was before the call.
"""

from typing import Optional

from household_ledger.models.snapshot import ValidationResult


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class NotFoundError(LedgerError):
    """Mutation targets an id that does not exist."""

    def __init__(self, entity_type: str, entity_id: str, message: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type} not found: {entity_id}")


class DanglingReferenceError(NotFoundError):
    """A record points at a person, account, category or entry that does not exist."""

    def __init__(self, entity_type: str, entity_id: str, field: str):
        self.field = field
        super().__init__(
            entity_type,
            entity_id,
            f"{field} references a {entity_type} that does not exist: {entity_id}",
        )


class CategoryInUseError(LedgerError):
    """Category deletion blocked by live references."""

    def __init__(self, category_id: str, references: dict[str, int]):
        self.category_id = category_id
        self.references = references
        used_by = ", ".join(f"{count} {name}" for name, count in references.items() if count)
        super().__init__(
            f"Cannot delete category {category_id}: still used by {used_by}"
        )


class SnapshotImportError(LedgerError):
    """Snapshot failed validation; nothing was imported."""

    def __init__(self, result: ValidationResult):
        self.result = result
        preview = "; ".join(issue.message for issue in result.errors[:5])
        more = f" (+{result.error_count - 5} more)" if result.error_count > 5 else ""
        super().__init__(f"Snapshot rejected: {preview}{more}")


class ValidationError(LedgerError, ValueError):
    """Field values outside their required domain."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        self.errors = errors or []
        super().__init__(message)
