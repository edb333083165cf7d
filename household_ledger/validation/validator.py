"""
Three-Stage Snapshot Validation

Validation happens in three distinct stages:

STAGE 1 - STRUCTURE:
- All nine collection keys present
- Each collection is a list

STAGE 2 - RECORDS:
- Every record conforms to its entity schema
- Field domains (amounts, dates, day-of-month, colours)

STAGE 3 - INTEGRITY:
- Ids unique within their collection
- Every reference resolves (no dangling ids)
- Account balances equal the sum of their transactions

A later stage only runs when the earlier ones passed.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the store refuses the snapshot.
"""

from collections import defaultdict
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from household_ledger.models.entities import LedgerModel
from household_ledger.models.snapshot import (
    COLLECTION_ATTRS,
    COLLECTION_MODELS,
    Snapshot,
    ValidationIssue,
    ValidationResult,
)


# collection key -> [(attribute, snapshot field name, target collection key)]
REFERENCE_RULES: dict[str, list[tuple[str, str, str]]] = {
    "accounts": [
        ("person_id", "personId", "persons"),
    ],
    "transactions": [
        ("person_id", "personId", "persons"),
        ("account_id", "accountId", "accounts"),
        ("category_id", "categoryId", "categories"),
    ],
    "recurringEntries": [
        ("person_id", "personId", "persons"),
        ("account_id", "accountId", "accounts"),
        ("category_id", "categoryId", "categories"),
    ],
    "amountSchedules": [
        ("entry_id", "entryId", "recurringEntries"),
    ],
    "subscriptions": [
        ("person_id", "personId", "persons"),
        ("account_id", "accountId", "accounts"),
        ("category_id", "categoryId", "categories"),
    ],
    "debts": [
        ("person_id", "personId", "persons"),
        ("account_id", "accountId", "accounts"),
    ],
    "investments": [
        ("person_id", "personId", "persons"),
    ],
}

_timestamp_adapter = TypeAdapter(datetime)


def _error(field: str, issue_type: str, message: str, entity_id: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        entity_id=entity_id,
    )


class SnapshotValidator:
    """
    Validates raw snapshots before they are allowed into a store.

    Accepts either a Snapshot model (stage 3 only) or a mapping as read
    from JSON (all three stages).
    """

    def _validate_structure(
        self,
        raw: Mapping,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: every collection key present and holding a list.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for key in COLLECTION_MODELS:
            value = raw.get(key, raw.get(COLLECTION_ATTRS[key]))
            if value is None:
                issues.append(_error(key, "missing", f"Collection '{key}' is missing"))
            elif not isinstance(value, (list, tuple)):
                issues.append(_error(
                    key,
                    "not_a_list",
                    f"Collection '{key}' must be a list, got {type(value).__name__}",
                ))

        if "timestamp" not in raw:
            issues.append(ValidationIssue(
                field="timestamp",
                issue_type="missing",
                message="Snapshot has no timestamp; the import time will be used",
                severity="warning",
            ))

        return not any(i.severity == "error" for i in issues), issues

    def _validate_records(
        self,
        raw: Mapping,
    ) -> tuple[dict[str, list[LedgerModel]], list[ValidationIssue]]:
        """
        Stage 2: parse every record into its entity model.

        Returns: (parsed_collections, list_of_issues)
        """
        issues = []
        parsed: dict[str, list[LedgerModel]] = {}

        for key, model in COLLECTION_MODELS.items():
            items = raw.get(key, raw.get(COLLECTION_ATTRS[key]))
            records = []
            for index, item in enumerate(items):
                if isinstance(item, model):
                    records.append(item)
                    continue
                try:
                    records.append(model.model_validate(item))
                except PydanticValidationError as e:
                    entity_id = item.get("id") if isinstance(item, Mapping) else None
                    for err in e.errors():
                        loc = ".".join(str(part) for part in err["loc"])
                        field = f"{key}[{index}].{loc}" if loc else f"{key}[{index}]"
                        issues.append(_error(
                            field,
                            "invalid_record",
                            f"{field}: {err['msg']}",
                            entity_id=entity_id,
                        ))
            parsed[key] = records

        return parsed, issues

    def _validate_integrity(
        self,
        collections: Mapping[str, "list[LedgerModel] | tuple[LedgerModel, ...]"],
    ) -> list[ValidationIssue]:
        """
        Stage 3: unique ids, resolvable references, consistent balances.
        """
        issues = []
        ids: dict[str, set[str]] = {}

        for key, records in collections.items():
            seen: set[str] = set()
            for record in records:
                if record.id in seen:
                    issues.append(_error(
                        key,
                        "duplicate_id",
                        f"Duplicate id in '{key}': {record.id}",
                        entity_id=record.id,
                    ))
                seen.add(record.id)
            ids[key] = seen

        for key, rules in REFERENCE_RULES.items():
            for index, record in enumerate(collections[key]):
                for attr, field_name, target in rules:
                    target_id = getattr(record, attr)
                    if target_id not in ids[target]:
                        issues.append(_error(
                            f"{key}[{index}].{field_name}",
                            "dangling_reference",
                            f"{key}[{index}] references missing {target} id {target_id}",
                            entity_id=record.id,
                        ))

        # Balance invariant
        sums: dict[str, Decimal] = defaultdict(Decimal)
        for txn in collections["transactions"]:
            sums[txn.account_id] += txn.amount
        for index, account in enumerate(collections["accounts"]):
            expected = sums.get(account.id, Decimal("0"))
            if account.balance != expected:
                issues.append(_error(
                    f"accounts[{index}].balance",
                    "balance_mismatch",
                    (
                        f"Account {account.name!r} has balance {account.balance} "
                        f"but its transactions sum to {expected}"
                    ),
                    entity_id=account.id,
                ))

        return issues

    def check(self, raw: Any) -> tuple[ValidationResult, Optional[Snapshot]]:
        """
        Run the full pipeline.

        Returns:
            (validation_result, snapshot) - snapshot is None unless valid
        """
        if isinstance(raw, Snapshot):
            collections = {key: raw.collection(key) for key in COLLECTION_MODELS}
            issues = self._validate_integrity(collections)
            is_valid = not any(i.severity == "error" for i in issues)
            result = ValidationResult(structure_valid=True, is_valid=is_valid, issues=issues)
            return result, (raw if is_valid else None)

        if not isinstance(raw, Mapping):
            result = ValidationResult(
                structure_valid=False,
                is_valid=False,
                issues=[_error(
                    "snapshot",
                    "not_a_mapping",
                    f"Snapshot must be a mapping of collections, got {type(raw).__name__}",
                )],
            )
            return result, None

        all_issues = []

        # Stage 1
        structure_valid, structure_issues = self._validate_structure(raw)
        all_issues.extend(structure_issues)
        if not structure_valid:
            return ValidationResult(structure_valid=False, is_valid=False, issues=all_issues), None

        # Stage 2
        parsed, record_issues = self._validate_records(raw)
        all_issues.extend(record_issues)

        # Stage 3 only makes sense on fully parsed collections
        if not record_issues:
            all_issues.extend(self._validate_integrity(parsed))

        timestamp = None
        if "timestamp" in raw:
            try:
                timestamp = _timestamp_adapter.validate_python(raw["timestamp"])
            except PydanticValidationError:
                all_issues.append(ValidationIssue(
                    field="timestamp",
                    issue_type="invalid_format",
                    message=f"Unreadable timestamp {raw['timestamp']!r}; the import time will be used",
                    severity="warning",
                ))

        is_valid = not any(i.severity == "error" for i in all_issues)
        result = ValidationResult(structure_valid=True, is_valid=is_valid, issues=all_issues)
        if not is_valid:
            return result, None

        fields = {COLLECTION_ATTRS[key]: tuple(records) for key, records in parsed.items()}
        if timestamp is not None:
            fields["timestamp"] = timestamp
        return result, Snapshot(**fields)

    def validate(self, raw: Any) -> ValidationResult:
        """Validate without building the snapshot."""
        result, _ = self.check(raw)
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a readable summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "Snapshot is valid."

        lines = []

        if result.has_errors:
            lines.append(f"Snapshot rejected ({result.error_count} problems):")
            for issue in result.errors:
                lines.append(f"   - {issue.message}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Warnings:")
            for warning in result.warnings:
                lines.append(f"   - {warning}")

        return "\n".join(lines)
