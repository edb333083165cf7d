"""
Tests for the LedgerStore

Every test checks both the result of the operation and that the
invariants still hold afterwards: balances equal transaction sums,
no dangling references, failed mutations change nothing.
"""

import threading

import pytest
from datetime import date
from decimal import Decimal

from household_ledger.audit import AuditLogger
from household_ledger.ledger import (
    CategoryInUseError,
    DanglingReferenceError,
    LedgerStore,
    NotFoundError,
    ValidationError,
)
from household_ledger.models import AuditEventType


def balance_matches_transactions(store: LedgerStore) -> bool:
    sums = {account.id: Decimal("0") for account in store.accounts}
    for txn in store.transactions:
        sums[txn.account_id] += txn.amount
    return all(account.balance == sums[account.id] for account in store.accounts)


def add_txn(store, household, amount, account=None, category=None, when=date(2024, 3, 1)):
    return store.add_transaction({
        "date": when,
        "person_id": household["person"],
        "account_id": account or household["account"],
        "category_id": category or household["income"],
        "amount": amount,
    })


class TestFirstRun:
    """Tests for store construction."""

    def test_first_run_has_only_default_categories(self, store):
        """Test that a store built from no snapshot has starter categories only."""
        counts = store.counts()
        assert counts["categories"] == 18
        assert sum(counts.values()) == 18

    def test_empty_constructor_has_nothing(self):
        """Test that the bare constructor does not seed categories."""
        assert LedgerStore().categories == ()

    def test_reset_restores_first_run(self, store, household, audit_storage):
        """Test reset drops everything and re-seeds categories."""
        add_txn(store, household, "100")
        old_ids = {c.id for c in store.categories}

        store.reset()

        assert store.persons == ()
        assert store.transactions == ()
        assert len(store.categories) == 18
        assert old_ids.isdisjoint({c.id for c in store.categories})
        assert audit_storage.get_recent_events(1)[0].event_type == AuditEventType.LEDGER_RESET


class TestCrud:
    """Tests for generic add/update/delete behaviour."""

    def test_add_assigns_fresh_id(self, store):
        """Test that the store assigns ids and ignores supplied ones."""
        first = store.add_person({"id": "chosen", "name": "Alex"})
        second = store.add_person({"name": "Sam"})
        assert first != "chosen"
        assert first != second
        assert store.get_person(first).name == "Alex"

    def test_update_replaces_record(self, store, household):
        """Test that an update replaces the whole record."""
        person = store.get_person(household["person"])
        store.update_person(person.model_copy(update={"name": "Alexandra"}))
        assert store.get_person(household["person"]).name == "Alexandra"

    def test_update_unknown_id_raises(self, store):
        """Test NotFoundError on update of a missing record."""
        with pytest.raises(NotFoundError):
            store.update_person({"id": "missing", "name": "Nobody"})

    def test_delete_unknown_id_raises(self, store):
        """Test NotFoundError on delete of a missing record."""
        with pytest.raises(NotFoundError):
            store.delete_investment("missing")

    def test_get_unknown_id_raises(self, store):
        """Test NotFoundError on lookup of a missing record."""
        with pytest.raises(NotFoundError, match="person not found"):
            store.get_person("missing")

    def test_invalid_fields_raise_validation_error(self, store, household):
        """Test that pydantic errors surface as the ledger ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            store.add_subscription({
                "person_id": household["person"],
                "account_id": household["account"],
                "category_id": household["expense"],
                "name": "Streaming",
                "amount": "9.99",
                "start_date": date(2024, 1, 1),
                "day_of_month": 0,
            })
        assert exc_info.value.errors
        assert isinstance(exc_info.value, ValueError)
        assert store.subscriptions == ()

    def test_dangling_reference_on_add(self, store, household):
        """Test that a reference to a missing account is refused."""
        with pytest.raises(DanglingReferenceError) as exc_info:
            store.add_recurring_entry({
                "person_id": household["person"],
                "account_id": "missing",
                "category_id": household["income"],
                "name": "Salary",
                "amount": "2000",
                "start_date": date(2024, 1, 1),
            })
        assert exc_info.value.field == "accountId"
        assert exc_info.value.entity_type == "account"
        assert store.recurring_entries == ()

    def test_dangling_reference_is_not_found(self, store):
        """Test the error hierarchy."""
        with pytest.raises(NotFoundError):
            store.add_investment({
                "person_id": "missing",
                "asset_name": "ETF",
                "purchase_date": date(2024, 1, 1),
                "units": "1",
                "purchase_price_per_unit": "1",
                "current_price_per_unit": "1",
            })

    def test_amount_schedule_requires_entry(self, store):
        """Test that an override must point at an existing recurring entry."""
        with pytest.raises(DanglingReferenceError):
            store.add_amount_schedule({
                "entry_id": "missing",
                "amount": "100",
                "start_date": date(2024, 1, 1),
            })

    def test_default_currency_is_filled(self):
        """Test the configured default currency applies to new accounts."""
        store = LedgerStore.from_snapshot(None, default_currency="usd")
        person_id = store.add_person({"name": "Alex"})
        account_id = store.add_account({"person_id": person_id, "name": "Checking"})
        assert store.get_account(account_id).currency == "USD"


class TestAccountBalanceOwnership:
    """Tests that only transactions move balances."""

    def test_new_account_must_start_at_zero(self, store, household):
        """Test that an opening balance is refused."""
        with pytest.raises(ValidationError, match="start at balance 0"):
            store.add_account({
                "person_id": household["person"],
                "name": "Savings",
                "balance": "500",
            })

    def test_update_cannot_change_balance(self, store, household):
        """Test that a balance edit is refused."""
        account = store.get_account(household["account"])
        with pytest.raises(ValidationError):
            store.update_account(account.model_copy(update={"balance": Decimal("999")}))
        assert store.get_account(household["account"]).balance == Decimal("0")

    def test_update_keeps_balance(self, store, household):
        """Test that renaming an account keeps its balance."""
        add_txn(store, household, "250")
        account = store.get_account(household["account"])
        store.update_account(account.model_copy(update={"name": "Household"}))
        updated = store.get_account(household["account"])
        assert updated.name == "Household"
        assert updated.balance == Decimal("250")


class TestBalanceInvariant:
    """Tests for incremental balance maintenance."""

    def test_add_transaction_adjusts_balance(self, store, household):
        """Test that income and expenses move the balance."""
        add_txn(store, household, "1000")
        add_txn(store, household, "-45.50", category=household["expense"])
        assert store.get_account(household["account"]).balance == Decimal("954.50")
        assert balance_matches_transactions(store)

    def test_update_amount_only(self, store, household):
        """Test that an amount change applies the difference."""
        txn_id = add_txn(store, household, "100")
        txn = store.get_transaction(txn_id)
        store.update_transaction(txn.model_copy(update={"amount": Decimal("80")}))
        assert store.get_account(household["account"]).balance == Decimal("80")
        assert balance_matches_transactions(store)

    def test_update_moves_between_accounts(self, store, household):
        """Test that moving a transaction reverts the old account and applies the new one."""
        savings_id = store.add_account({"person_id": household["person"], "name": "Savings"})
        txn_id = add_txn(store, household, "300")

        txn = store.get_transaction(txn_id)
        store.update_transaction(txn.model_copy(update={
            "account_id": savings_id,
            "amount": Decimal("200"),
        }))

        assert store.get_account(household["account"]).balance == Decimal("0")
        assert store.get_account(savings_id).balance == Decimal("200")
        assert balance_matches_transactions(store)

    def test_update_without_money_change_keeps_balance(self, store, household):
        """Test that a description edit leaves balances alone."""
        txn_id = add_txn(store, household, "100")
        txn = store.get_transaction(txn_id)
        store.update_transaction(txn.model_copy(update={"description": "March salary"}))
        assert store.get_transaction(txn_id).description == "March salary"
        assert store.get_account(household["account"]).balance == Decimal("100")

    def test_failed_update_changes_nothing(self, store, household):
        """Test that a refused update leaves record and balance untouched."""
        txn_id = add_txn(store, household, "100")
        txn = store.get_transaction(txn_id)
        with pytest.raises(DanglingReferenceError):
            store.update_transaction(txn.model_copy(update={
                "amount": Decimal("50"),
                "category_id": "missing",
            }))
        assert store.get_transaction(txn_id).amount == Decimal("100")
        assert store.get_account(household["account"]).balance == Decimal("100")

    def test_delete_transaction_reverts_balance(self, store, household):
        """Test that deleting takes the amount off the balance."""
        keep = add_txn(store, household, "100")
        drop = add_txn(store, household, "-30", category=household["expense"])
        store.delete_transaction(drop)
        assert store.get_account(household["account"]).balance == Decimal("100")
        assert [t.id for t in store.transactions] == [keep]
        assert balance_matches_transactions(store)

    def test_transaction_on_missing_account_refused(self, store, household):
        """Test that the balance adjustment never silently no-ops."""
        with pytest.raises(DanglingReferenceError):
            add_txn(store, household, "10", account="missing")
        assert store.transactions == ()

    def test_sequence_keeps_invariant(self, store, household):
        """Test the invariant after every step of a mixed sequence."""
        second = store.add_account({"person_id": household["person"], "name": "Cash", "type": "cash"})
        ids = []
        for amount in ("10", "-3", "7.25", "-1.25"):
            ids.append(add_txn(store, household, amount))
            assert balance_matches_transactions(store)
        txn = store.get_transaction(ids[1])
        store.update_transaction(txn.model_copy(update={"account_id": second}))
        assert balance_matches_transactions(store)
        store.delete_transaction(ids[0])
        assert balance_matches_transactions(store)
        assert store.get_account(household["account"]).balance == Decimal("6.00")
        assert store.get_account(second).balance == Decimal("-3")

    def test_concurrent_adds_keep_invariant(self, store, household):
        """Test that threads adding transactions never lose an update."""
        def worker():
            for _ in range(25):
                add_txn(store, household, "1")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get_account(household["account"]).balance == Decimal("200")
        assert balance_matches_transactions(store)


class TestCascades:
    """Tests for cascading deletes."""

    def populate(self, store, household):
        entry_id = store.add_recurring_entry({
            "person_id": household["person"],
            "account_id": household["account"],
            "category_id": household["income"],
            "name": "Salary",
            "amount": "2000",
            "start_date": date(2024, 1, 1),
        })
        store.add_amount_schedule({
            "entry_id": entry_id,
            "amount": "2100",
            "start_date": date(2024, 6, 1),
        })
        store.add_subscription({
            "person_id": household["person"],
            "account_id": household["account"],
            "category_id": household["expense"],
            "name": "Streaming",
            "amount": "9.99",
            "start_date": date(2024, 1, 1),
            "day_of_month": 15,
        })
        store.add_debt({
            "person_id": household["person"],
            "account_id": household["account"],
            "name": "Car loan",
            "total_amount": "2400",
            "monthly_payment": "200",
            "start_date": date(2024, 1, 1),
        })
        store.add_investment({
            "person_id": household["person"],
            "asset_name": "ETF",
            "purchase_date": date(2023, 1, 1),
            "units": "10",
            "purchase_price_per_unit": "100",
            "current_price_per_unit": "110",
        })
        add_txn(store, household, "500")
        return entry_id

    def test_delete_person_removes_everything_owned(self, store, household, audit_storage):
        """Test cascade completeness on person delete."""
        self.populate(store, household)
        other = store.add_person({"name": "Sam"})

        store.delete_person(household["person"])

        assert [p.id for p in store.persons] == [other]
        for collection in (
            store.accounts, store.transactions, store.recurring_entries,
            store.amount_schedules, store.subscriptions, store.debts,
            store.investments,
        ):
            assert collection == ()
        assert len(store.categories) == 18

        event = audit_storage.get_recent_events(1)[0]
        assert event.event_type == AuditEventType.CASCADE_DELETED
        assert event.details["removed"]["amountSchedules"] == 1

    def test_delete_person_fixes_foreign_account_balance(self, store, household):
        """Test that a person's transaction on another person's account is taken off that balance."""
        other = store.add_person({"name": "Sam"})
        store.add_transaction({
            "date": date(2024, 3, 1),
            "person_id": other,
            "account_id": household["account"],
            "category_id": household["income"],
            "amount": "40",
        })
        add_txn(store, household, "60")

        store.delete_person(other)

        assert store.get_account(household["account"]).balance == Decimal("60")
        assert balance_matches_transactions(store)

    def test_delete_account_keeps_investments(self, store, household):
        """Test that investments survive an account delete."""
        self.populate(store, household)

        store.delete_account(household["account"])

        assert store.accounts == ()
        assert store.transactions == ()
        assert store.recurring_entries == ()
        assert store.amount_schedules == ()
        assert store.subscriptions == ()
        assert store.debts == ()
        assert len(store.investments) == 1
        assert [p.id for p in store.persons] == [household["person"]]

    def test_delete_recurring_entry_removes_schedules(self, store, household):
        """Test that overrides go with their entry."""
        entry_id = self.populate(store, household)
        store.delete_recurring_entry(entry_id)
        assert store.recurring_entries == ()
        assert store.amount_schedules == ()
        assert len(store.subscriptions) == 1


class TestCategoryGuard:
    """Tests for blocked category deletes."""

    def test_used_category_cannot_be_deleted(self, store, household, audit_storage):
        """Test CategoryInUseError and an unchanged category collection."""
        add_txn(store, household, "-20", category=household["expense"])
        before = store.categories

        with pytest.raises(CategoryInUseError) as exc_info:
            store.delete_category(household["expense"])

        assert exc_info.value.references["transactions"] == 1
        assert store.categories == before
        event = audit_storage.get_recent_events(1)[0]
        assert event.event_type == AuditEventType.CATEGORY_DELETE_BLOCKED

    def test_subscription_blocks_delete(self, store, household):
        """Test that declarative records also block the delete."""
        store.add_subscription({
            "person_id": household["person"],
            "account_id": household["account"],
            "category_id": household["expense"],
            "name": "Gym",
            "amount": "30",
            "start_date": date(2024, 1, 1),
        })
        with pytest.raises(CategoryInUseError):
            store.delete_category(household["expense"])

    def test_unused_category_can_be_deleted(self, store, household):
        """Test a plain delete."""
        store.delete_category(household["expense"])
        assert len(store.categories) == 17


class TestDebtBounds:
    """Tests for debt bounds through the store."""

    def test_add_debt_defaults_remaining(self, store, household):
        """Test the remaining amount default."""
        debt_id = store.add_debt({
            "person_id": household["person"],
            "account_id": household["account"],
            "name": "Loan",
            "type": "personal",
            "total_amount": "1200",
            "monthly_payment": "100",
            "start_date": date(2024, 1, 1),
            "day_of_month": 5,
        })
        debt = store.get_debt(debt_id)
        assert debt.remaining_amount == Decimal("1200")
        assert Decimal("0") <= debt.payoff_percentage <= Decimal("100")

    def test_update_cannot_break_bounds(self, store, household):
        """Test that model_copy shortcuts are re-validated."""
        debt_id = store.add_debt({
            "person_id": household["person"],
            "account_id": household["account"],
            "name": "Loan",
            "total_amount": "1200",
            "start_date": date(2024, 1, 1),
        })
        debt = store.get_debt(debt_id)
        with pytest.raises(ValidationError):
            store.update_debt(debt.model_copy(update={"remaining_amount": Decimal("5000")}))
        assert store.get_debt(debt_id).remaining_amount == Decimal("1200")

    def test_update_repayment(self, store, household):
        """Test a valid repayment update."""
        debt_id = store.add_debt({
            "person_id": household["person"],
            "account_id": household["account"],
            "name": "Loan",
            "total_amount": "1200",
            "start_date": date(2024, 1, 1),
        })
        debt = store.get_debt(debt_id)
        store.update_debt(debt.model_copy(update={"remaining_amount": Decimal("900")}))
        assert store.get_debt(debt_id).payoff_percentage == Decimal("25")


class TestAuditTrail:
    """Tests for mutation auditing."""

    def test_mutations_are_audited(self, store, audit_storage):
        """Test created/updated/deleted events."""
        person_id = store.add_person({"name": "Alex"})
        store.update_person({"id": person_id, "name": "Alexandra"})
        store.delete_person(person_id)

        events = audit_storage.get_events_by_entity("person", person_id)
        assert [e.event_type for e in events] == [
            AuditEventType.ENTITY_CREATED,
            AuditEventType.ENTITY_UPDATED,
            AuditEventType.ENTITY_DELETED,
        ]

    def test_failing_audit_sink_does_not_break_mutations(self):
        """Test that a broken audit storage is tolerated."""
        class BrokenStorage:
            def append_event(self, event):
                raise RuntimeError("sink down")

        store = LedgerStore.from_snapshot(None, audit_logger=AuditLogger(BrokenStorage()))
        person_id = store.add_person({"name": "Alex"})
        assert store.get_person(person_id).name == "Alex"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
