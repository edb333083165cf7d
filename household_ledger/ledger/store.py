"""
Ledger Store

The single source of truth for the household books. Owns the nine
collections and guarantees, after every public operation:

- Every account balance equals the sum of its transactions
- No record references an id that does not exist
- 0 <= debt remaining amount <= debt total amount

DESIGN DECISION: Mutations are validate-then-apply.
Everything that can fail (schema, references, category guard) runs
before the first write, and multi-record changes (balance revert/apply,
cascades) are staged and written in one step. A raising call therefore
leaves the store exactly as it was.

DESIGN DECISION: Balances are maintained incrementally.
A transaction change adjusts the affected account(s) by the amount
difference; the store never recomputes a balance from scratch.

Persistence is not the store's concern: callers export a Snapshot and
hand it to a storage backend (see household_ledger.orchestrator).
"""

import threading
from collections import defaultdict
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from household_ledger.audit import AuditLogger
from household_ledger.data import default_categories
from household_ledger.ledger.errors import (
    CategoryInUseError,
    DanglingReferenceError,
    NotFoundError,
    SnapshotImportError,
    ValidationError,
)
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
from household_ledger.models.snapshot import (
    COLLECTION_ATTRS,
    COLLECTION_MODELS,
    Snapshot,
    ValidationResult,
)
from household_ledger.validation import REFERENCE_RULES, SnapshotValidator


# Snapshot key -> entity name used in errors and audit events
ENTITY_NAMES: dict[str, str] = {
    "persons": "person",
    "accounts": "account",
    "categories": "category",
    "transactions": "transaction",
    "recurringEntries": "recurring_entry",
    "amountSchedules": "amount_schedule",
    "subscriptions": "subscription",
    "debts": "debt",
    "investments": "investment",
}

# Collections whose records block a category delete
CATEGORY_REFERRERS = ("transactions", "recurringEntries", "subscriptions")

EntityData = Union[Mapping[str, Any], BaseModel]


def _payload(data: EntityData) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump()
    if isinstance(data, Mapping):
        return dict(data)
    raise ValidationError(f"Expected a mapping or a model, got {type(data).__name__}")


class LedgerStore:
    """
    In-process ledger with integrity invariants.

    Every public mutation runs under one re-entrant lock, so a store
    shared between threads never interleaves a cascade or a balance
    revert/apply with another mutation.

    Usage:
        store = LedgerStore.from_snapshot(storage.load())
        person_id = store.add_person({"name": "Alex"})
    """

    def __init__(
        self,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[SnapshotValidator] = None,
        default_currency: str = "EUR",
    ):
        """
        Create an empty store (no categories either).

        Use from_snapshot() to start from saved data or the defaults.

        Args:
            default_currency: Filled into new accounts and investments
                             that do not name a currency
        """
        self._default_currency = default_currency.upper()
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or SnapshotValidator()
        self._lock = threading.RLock()
        self._data: dict[str, dict[str, LedgerModel]] = {
            key: {} for key in COLLECTION_MODELS
        }

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Optional[Union[Snapshot, Mapping[str, Any]]] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[SnapshotValidator] = None,
        default_currency: str = "EUR",
    ) -> "LedgerStore":
        """
        Build a store from a loaded snapshot.

        Args:
            snapshot: Saved ledger, or None on first run. A first-run
                     store is empty except for the starter categories.

        Raises:
            SnapshotImportError: If the snapshot fails validation
        """
        store = cls(
            audit_logger=audit_logger,
            validator=validator,
            default_currency=default_currency,
        )
        if snapshot is None:
            store._data["categories"] = {c.id: c for c in default_categories()}
        else:
            result, checked = store._validator.check(snapshot)
            if checked is None:
                raise SnapshotImportError(result)
            store._replace(checked)
        return store

    # =========================================================================
    # READ ACCESSORS
    # =========================================================================

    @property
    def persons(self) -> tuple[Person, ...]:
        return tuple(self._data["persons"].values())

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(self._data["accounts"].values())

    @property
    def categories(self) -> tuple[Category, ...]:
        return tuple(self._data["categories"].values())

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return tuple(self._data["transactions"].values())

    @property
    def recurring_entries(self) -> tuple[RecurringEntry, ...]:
        return tuple(self._data["recurringEntries"].values())

    @property
    def amount_schedules(self) -> tuple[AmountSchedule, ...]:
        return tuple(self._data["amountSchedules"].values())

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return tuple(self._data["subscriptions"].values())

    @property
    def debts(self) -> tuple[Debt, ...]:
        return tuple(self._data["debts"].values())

    @property
    def investments(self) -> tuple[Investment, ...]:
        return tuple(self._data["investments"].values())

    def get_person(self, person_id: str) -> Person:
        return self._require("persons", person_id)

    def get_account(self, account_id: str) -> Account:
        return self._require("accounts", account_id)

    def get_category(self, category_id: str) -> Category:
        return self._require("categories", category_id)

    def get_transaction(self, transaction_id: str) -> Transaction:
        return self._require("transactions", transaction_id)

    def get_recurring_entry(self, entry_id: str) -> RecurringEntry:
        return self._require("recurringEntries", entry_id)

    def get_amount_schedule(self, schedule_id: str) -> AmountSchedule:
        return self._require("amountSchedules", schedule_id)

    def get_subscription(self, subscription_id: str) -> Subscription:
        return self._require("subscriptions", subscription_id)

    def get_debt(self, debt_id: str) -> Debt:
        return self._require("debts", debt_id)

    def get_investment(self, investment_id: str) -> Investment:
        return self._require("investments", investment_id)

    def counts(self) -> dict[str, int]:
        """Number of records per collection, keyed like a snapshot."""
        return {key: len(records) for key, records in self._data.items()}

    # =========================================================================
    # PERSONS
    # =========================================================================

    def add_person(self, data: EntityData) -> str:
        return self._add("persons", data)

    def update_person(self, person: EntityData) -> None:
        self._update("persons", person)

    def delete_person(self, person_id: str) -> None:
        """
        Delete a person and everything they own.

        Removes their accounts and investments, every transaction,
        recurring entry, subscription and debt that belongs to them or
        to one of their accounts, and the amount schedules of the
        removed recurring entries.
        """
        with self._lock:
            self._require("persons", person_id)
            account_ids = {
                a.id for a in self._data["accounts"].values()
                if a.person_id == person_id
            }
            removals = self._collect_cascade({person_id}, account_ids)
            removed = self._apply_removals(removals)
            self._log_delete("persons", person_id, removed)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def add_account(self, data: EntityData) -> str:
        """
        Add an account. New accounts always start at balance 0.

        Raises:
            ValidationError: If a non-zero balance is supplied
        """
        with self._lock:
            account = self._build("accounts", self._with_new_id(data, with_currency=True))
            if account.balance != 0:
                raise ValidationError(
                    "New accounts start at balance 0; record the opening balance as a transaction"
                )
            self._check_references("accounts", account)
            self._data["accounts"][account.id] = account
            self._audit.log_entity_created("account", account.id)
            return account.id

    def update_account(self, account: EntityData) -> None:
        """
        Replace an account record.

        Raises:
            ValidationError: If the balance differs from the stored one
        """
        with self._lock:
            record = self._coerce("accounts", account)
            current = self._require("accounts", record.id)
            if record.balance != current.balance:
                raise ValidationError(
                    f"Account balance is maintained by the ledger and cannot be set "
                    f"(stored {current.balance}, got {record.balance})"
                )
            self._check_references("accounts", record)
            self._data["accounts"][record.id] = record
            self._audit.log_entity_updated("account", record.id)

    def delete_account(self, account_id: str) -> None:
        """
        Delete an account with its transactions, recurring entries,
        subscriptions and debts. Investments belong to the person and stay.
        """
        with self._lock:
            self._require("accounts", account_id)
            removals = self._collect_cascade(set(), {account_id})
            removed = self._apply_removals(removals)
            self._log_delete("accounts", account_id, removed)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def add_category(self, data: EntityData) -> str:
        return self._add("categories", data)

    def update_category(self, category: EntityData) -> None:
        self._update("categories", category)

    def delete_category(self, category_id: str) -> None:
        """
        Delete an unused category.

        Raises:
            CategoryInUseError: If any transaction, recurring entry or
                               subscription still references it
        """
        with self._lock:
            self._require("categories", category_id)
            references = {
                key: sum(
                    1 for record in self._data[key].values()
                    if record.category_id == category_id
                )
                for key in CATEGORY_REFERRERS
            }
            if any(references.values()):
                self._audit.log_category_delete_blocked(category_id, references)
                raise CategoryInUseError(category_id, references)

            del self._data["categories"][category_id]
            self._audit.log_entity_deleted("category", category_id)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(self, data: EntityData) -> str:
        """
        Record a transaction and add its amount to the account balance.

        Raises:
            DanglingReferenceError: If person, account or category is missing
        """
        with self._lock:
            txn = self._build("transactions", self._with_new_id(data))
            self._check_references("transactions", txn)

            account = self._data["accounts"][txn.account_id]
            self._data["transactions"][txn.id] = txn
            self._data["accounts"][account.id] = account.model_copy(
                update={"balance": account.balance + txn.amount}
            )
            self._audit.log_entity_created(
                "transaction",
                txn.id,
                account_id=txn.account_id,
                amount=str(txn.amount),
            )
            return txn.id

    def update_transaction(self, transaction: EntityData) -> None:
        """
        Replace a transaction.

        When the amount or the account changed, the old amount is taken
        off the old account and the new amount put on the new account.
        Both balances are computed before anything is written.
        """
        with self._lock:
            new = self._coerce("transactions", transaction)
            old = self._require("transactions", new.id)
            self._check_references("transactions", new)

            accounts = self._data["accounts"]
            balances: dict[str, Decimal] = {}
            if new.amount != old.amount or new.account_id != old.account_id:
                balances[old.account_id] = accounts[old.account_id].balance - old.amount
                balances[new.account_id] = (
                    balances.get(new.account_id, accounts[new.account_id].balance)
                    + new.amount
                )

            self._data["transactions"][new.id] = new
            for account_id, balance in balances.items():
                accounts[account_id] = accounts[account_id].model_copy(
                    update={"balance": balance}
                )
            self._audit.log_entity_updated(
                "transaction",
                new.id,
                rebalanced=sorted(balances),
            )

    def delete_transaction(self, transaction_id: str) -> None:
        """Remove a transaction and take its amount off the account balance."""
        with self._lock:
            txn = self._require("transactions", transaction_id)
            account = self._data["accounts"][txn.account_id]
            del self._data["transactions"][transaction_id]
            self._data["accounts"][account.id] = account.model_copy(
                update={"balance": account.balance - txn.amount}
            )
            self._audit.log_entity_deleted(
                "transaction",
                transaction_id,
                account_id=txn.account_id,
                amount=str(txn.amount),
            )

    # =========================================================================
    # RECURRING ENTRIES AND AMOUNT SCHEDULES
    # =========================================================================

    def add_recurring_entry(self, data: EntityData) -> str:
        return self._add("recurringEntries", data)

    def update_recurring_entry(self, entry: EntityData) -> None:
        self._update("recurringEntries", entry)

    def delete_recurring_entry(self, entry_id: str) -> None:
        """Delete a recurring entry together with its amount schedules."""
        with self._lock:
            self._require("recurringEntries", entry_id)
            removals = {
                "recurringEntries": {entry_id},
                "amountSchedules": {
                    s.id for s in self._data["amountSchedules"].values()
                    if s.entry_id == entry_id
                },
            }
            removed = self._apply_removals(removals)
            self._log_delete("recurringEntries", entry_id, removed)

    def add_amount_schedule(self, data: EntityData) -> str:
        return self._add("amountSchedules", data)

    def update_amount_schedule(self, schedule: EntityData) -> None:
        self._update("amountSchedules", schedule)

    def delete_amount_schedule(self, schedule_id: str) -> None:
        self._delete("amountSchedules", schedule_id)

    # =========================================================================
    # SUBSCRIPTIONS, DEBTS, INVESTMENTS
    # =========================================================================

    def add_subscription(self, data: EntityData) -> str:
        return self._add("subscriptions", data)

    def update_subscription(self, subscription: EntityData) -> None:
        self._update("subscriptions", subscription)

    def delete_subscription(self, subscription_id: str) -> None:
        self._delete("subscriptions", subscription_id)

    def add_debt(self, data: EntityData) -> str:
        """Add a debt; remaining amount defaults to the total amount."""
        return self._add("debts", data)

    def update_debt(self, debt: EntityData) -> None:
        self._update("debts", debt)

    def delete_debt(self, debt_id: str) -> None:
        self._delete("debts", debt_id)

    def add_investment(self, data: EntityData) -> str:
        return self._add("investments", data)

    def update_investment(self, investment: EntityData) -> None:
        self._update("investments", investment)

    def delete_investment(self, investment_id: str) -> None:
        self._delete("investments", investment_id)

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def snapshot(self) -> Snapshot:
        """
        Immutable copy of all nine collections with a fresh timestamp.

        Records are frozen models, so sharing them is safe.
        """
        with self._lock:
            return Snapshot(**{
                COLLECTION_ATTRS[key]: tuple(records.values())
                for key, records in self._data.items()
            })

    def export_snapshot(self) -> Snapshot:
        """Snapshot for backup or transfer; the export is audited."""
        snapshot = self.snapshot()
        self._audit.log_snapshot_exported(
            {key: len(snapshot.collection(key)) for key in COLLECTION_MODELS}
        )
        return snapshot

    def import_snapshot(
        self,
        snapshot: Union[Snapshot, Mapping[str, Any]],
    ) -> ValidationResult:
        """
        Replace all nine collections with the snapshot's contents.

        The snapshot is validated completely (structure, records,
        unique ids, references, balances) before anything is replaced.

        Returns:
            The validation result (may carry warnings)

        Raises:
            SnapshotImportError: If validation found errors; the store
                                is left untouched
        """
        result, checked = self._validator.check(snapshot)
        if checked is None:
            self._audit.log_snapshot_import_failed(
                [issue.model_dump() for issue in result.errors]
            )
            raise SnapshotImportError(result)

        with self._lock:
            self._replace(checked)
            self._audit.log_snapshot_imported(self.counts())
        return result

    def reset(self) -> None:
        """Drop everything and start over with the starter categories."""
        with self._lock:
            data: dict[str, dict[str, LedgerModel]] = {key: {} for key in COLLECTION_MODELS}
            data["categories"] = {c.id: c for c in default_categories()}
            self._data = data
            self._audit.log_ledger_reset()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _replace(self, snapshot: Snapshot) -> None:
        self._data = {
            key: {record.id: record for record in snapshot.collection(key)}
            for key in COLLECTION_MODELS
        }

    def _require(self, key: str, entity_id: str) -> Any:
        try:
            return self._data[key][entity_id]
        except KeyError:
            raise NotFoundError(ENTITY_NAMES[key], entity_id) from None

    def _with_new_id(self, data: EntityData, with_currency: bool = False) -> dict[str, Any]:
        payload = _payload(data)
        if with_currency and payload.get("currency") is None:
            payload["currency"] = self._default_currency
        payload["id"] = str(uuid4())
        return payload

    def _build(self, key: str, payload: dict[str, Any]) -> Any:
        """Validate a payload into the collection's model."""
        try:
            return COLLECTION_MODELS[key].model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {ENTITY_NAMES[key]}: "
                + "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
                    for err in e.errors()
                ),
                errors=e.errors(include_url=False, include_context=False),
            ) from e

    def _coerce(self, key: str, entity: EntityData) -> Any:
        # model_copy(update=...) skips validation, so instances are re-checked too
        return self._build(key, _payload(entity))

    def _check_references(self, key: str, record: LedgerModel) -> None:
        for attr, field_name, target in REFERENCE_RULES.get(key, ()):
            target_id = getattr(record, attr)
            if target_id not in self._data[target]:
                raise DanglingReferenceError(ENTITY_NAMES[target], target_id, field_name)

    def _add(self, key: str, data: EntityData) -> str:
        with self._lock:
            record = self._build(
                key,
                self._with_new_id(data, with_currency=key == "investments"),
            )
            self._check_references(key, record)
            self._data[key][record.id] = record
            self._audit.log_entity_created(ENTITY_NAMES[key], record.id)
            return record.id

    def _update(self, key: str, entity: EntityData) -> None:
        with self._lock:
            record = self._coerce(key, entity)
            self._require(key, record.id)
            self._check_references(key, record)
            self._data[key][record.id] = record
            self._audit.log_entity_updated(ENTITY_NAMES[key], record.id)

    def _delete(self, key: str, entity_id: str) -> None:
        """Delete a record nothing else depends on."""
        with self._lock:
            self._require(key, entity_id)
            del self._data[key][entity_id]
            self._audit.log_entity_deleted(ENTITY_NAMES[key], entity_id)

    def _collect_cascade(
        self,
        person_ids: set[str],
        account_ids: set[str],
    ) -> dict[str, set[str]]:
        """
        Phase 1 of a cascade delete: gather every id to remove.

        Records owned by a removed person or drawing on a removed
        account go, and so do the amount schedules of removed entries.
        """
        def owned(record: Any) -> bool:
            return record.person_id in person_ids or record.account_id in account_ids

        removals: dict[str, set[str]] = {
            "persons": set(person_ids),
            "accounts": set(account_ids),
        }
        for key in ("transactions", "recurringEntries", "subscriptions", "debts"):
            removals[key] = {r.id for r in self._data[key].values() if owned(r)}
        removals["amountSchedules"] = {
            s.id for s in self._data["amountSchedules"].values()
            if s.entry_id in removals["recurringEntries"]
        }
        removals["investments"] = {
            i.id for i in self._data["investments"].values()
            if i.person_id in person_ids
        }
        return removals

    def _apply_removals(self, removals: dict[str, set[str]]) -> dict[str, int]:
        """
        Phase 2 of a cascade delete: stage every collection, then swap.

        A removed transaction whose account survives (a person's
        transaction on someone else's account) is taken off that
        account's balance.

        Returns: removed record counts per collection
        """
        removed_accounts = removals.get("accounts", set())
        deltas: dict[str, Decimal] = defaultdict(Decimal)
        for txn_id in removals.get("transactions", ()):
            txn = self._data["transactions"][txn_id]
            if txn.account_id not in removed_accounts:
                deltas[txn.account_id] -= txn.amount

        staged: dict[str, dict[str, LedgerModel]] = {}
        for key, ids in removals.items():
            if ids:
                staged[key] = {
                    rid: record for rid, record in self._data[key].items()
                    if rid not in ids
                }

        if deltas:
            accounts = staged.get("accounts", dict(self._data["accounts"]))
            for account_id, delta in deltas.items():
                account = accounts[account_id]
                accounts[account_id] = account.model_copy(
                    update={"balance": account.balance + delta}
                )
            staged["accounts"] = accounts

        self._data.update(staged)
        return {key: len(ids) for key, ids in removals.items() if ids}

    def _log_delete(self, key: str, entity_id: str, removed: dict[str, int]) -> None:
        dependents = {k: n for k, n in removed.items() if k != key}
        if dependents:
            self._audit.log_cascade_deleted(ENTITY_NAMES[key], entity_id, dependents)
        else:
            self._audit.log_entity_deleted(ENTITY_NAMES[key], entity_id)
