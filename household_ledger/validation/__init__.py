"""Snapshot validation package."""

from household_ledger.validation.validator import REFERENCE_RULES, SnapshotValidator

__all__ = ["REFERENCE_RULES", "SnapshotValidator"]
