"""
Snapshot and Validation Models

A Snapshot is the complete, serializable state of the nine ledger
collections at one instant. It is the only thing that crosses the
boundary to persistence, export/import and the forecast engine.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from household_ledger.models.entities import (
    Account,
    AmountSchedule,
    Category,
    Debt,
    Investment,
    LedgerModel,
    Person,
    RecurringEntry,
    Subscription,
    Transaction,
)


# Snapshot key -> entity model, in the order collections are serialized
COLLECTION_MODELS: dict[str, type[LedgerModel]] = {
    "persons": Person,
    "accounts": Account,
    "categories": Category,
    "transactions": Transaction,
    "recurringEntries": RecurringEntry,
    "amountSchedules": AmountSchedule,
    "subscriptions": Subscription,
    "debts": Debt,
    "investments": Investment,
}

# Snapshot key -> Python attribute name
COLLECTION_ATTRS: dict[str, str] = {
    "persons": "persons",
    "accounts": "accounts",
    "categories": "categories",
    "transactions": "transactions",
    "recurringEntries": "recurring_entries",
    "amountSchedules": "amount_schedules",
    "subscriptions": "subscriptions",
    "debts": "debts",
    "investments": "investments",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Snapshot(BaseModel):
    """
    Immutable copy of the whole ledger.

    Collections are tuples so a snapshot handed to a reader can never
    be changed behind the store's back.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the snapshot was generated (UTC)"
    )
    persons: tuple[Person, ...] = ()
    accounts: tuple[Account, ...] = ()
    categories: tuple[Category, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    recurring_entries: tuple[RecurringEntry, ...] = ()
    amount_schedules: tuple[AmountSchedule, ...] = ()
    subscriptions: tuple[Subscription, ...] = ()
    debts: tuple[Debt, ...] = ()
    investments: tuple[Investment, ...] = ()

    def collection(self, key: str) -> tuple[LedgerModel, ...]:
        """Get a collection by its snapshot key (e.g. 'recurringEntries')."""
        return getattr(self, COLLECTION_ATTRS[key])

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dict with the snapshot's camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)

    def same_contents(self, other: "Snapshot") -> bool:
        """Compare all nine collections, ignoring the timestamp."""
        return all(
            self.collection(key) == other.collection(key)
            for key in COLLECTION_MODELS
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Collection or field with the issue (e.g. 'accounts[2].personId')"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_a_list', 'dangling_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the offending record, when known"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a raw snapshot.

    Stage 1: Structure (nine collections, each a list)
    Stage 2: Records (schema of every entity)
    Stage 3: Integrity (unique ids, references, balances)
    """

    validated_at: datetime = Field(
        default_factory=utc_now
    )

    structure_valid: bool = Field(
        ...,
        description="Did the structural check pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
