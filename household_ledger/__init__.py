"""
Household Ledger

People, accounts, categorized transactions and recurring obligations,
with cash-flow forecasts computed from ledger snapshots.
"""

__version__ = "0.1.0"
