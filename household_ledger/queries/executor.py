"""
Transaction Query Execution

DESIGN DECISION: Queries are DETERMINISTIC filters over a Snapshot.
They only return records that exist in the snapshot they were given,
newest first, and never touch the live store.
"""

from typing import Optional

from household_ledger.models.entities import Transaction
from household_ledger.models.query import TransactionFilter
from household_ledger.models.snapshot import Snapshot


class TransactionQueryExecutor:
    """
    Lists transactions matching a TransactionFilter.

    Every criterion is optional; the ones that are set must all match.
    """

    def filter(
        self,
        snapshot: Snapshot,
        criteria: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """
        Transactions matching `criteria`, newest first.

        Ties on the same date keep their order in the ledger.
        """
        criteria = criteria or TransactionFilter()
        matches = [txn for txn in snapshot.transactions if self._matches(txn, criteria)]
        matches.sort(key=lambda txn: txn.date, reverse=True)

        if criteria.limit is not None:
            matches = matches[:criteria.limit]
        return matches

    def recent(self, snapshot: Snapshot, limit: int = 5) -> list[Transaction]:
        """The `limit` most recent transactions."""
        return self.filter(snapshot, TransactionFilter(limit=limit))

    def _matches(self, txn: Transaction, criteria: TransactionFilter) -> bool:
        if criteria.person_ids and txn.person_id not in criteria.person_ids:
            return False
        if criteria.account_ids and txn.account_id not in criteria.account_ids:
            return False
        if criteria.category_ids and txn.category_id not in criteria.category_ids:
            return False

        if criteria.date_from and txn.date < criteria.date_from:
            return False
        if criteria.date_to and txn.date > criteria.date_to:
            return False

        if criteria.amount_min is not None and txn.amount < criteria.amount_min:
            return False
        if criteria.amount_max is not None and txn.amount > criteria.amount_max:
            return False

        if criteria.search_term:
            if criteria.search_term.lower() not in txn.description.lower():
                return False

        return True
