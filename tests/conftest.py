"""Shared fixtures: an audited first-run store and a small household in it."""

import pytest

from household_ledger.audit import AuditLogger
from household_ledger.ledger import LedgerStore
from household_ledger.services.storage import InMemoryAuditStorage


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def store(audit_storage):
    """First-run store: starter categories, nothing else."""
    return LedgerStore.from_snapshot(None, audit_logger=AuditLogger(audit_storage))


@pytest.fixture
def household(store):
    """One person with a giro account, plus the Salary and Groceries category ids."""
    person_id = store.add_person({"name": "Alex"})
    account_id = store.add_account({
        "person_id": person_id,
        "name": "Main account",
        "type": "giro_account",
    })
    return {
        "person": person_id,
        "account": account_id,
        "income": next(c.id for c in store.categories if c.name == "Salary"),
        "expense": next(c.id for c in store.categories if c.name == "Groceries"),
    }
