"""Transaction queries package."""

from household_ledger.queries.executor import TransactionQueryExecutor

__all__ = ["TransactionQueryExecutor"]
