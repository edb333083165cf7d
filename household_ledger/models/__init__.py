"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.entities import (
    Account,
    AccountType,
    AmountSchedule,
    AssetType,
    Category,
    CategoryType,
    Debt,
    DebtType,
    Frequency,
    Investment,
    LedgerModel,
    Person,
    RecurringEntry,
    ScheduledModel,
    Subscription,
    Transaction,
)
from household_ledger.models.snapshot import (
    COLLECTION_ATTRS,
    COLLECTION_MODELS,
    Snapshot,
    ValidationIssue,
    ValidationResult,
)
from household_ledger.models.forecast import (
    DashboardSummary,
    DebtSummary,
    Forecast,
    ForecastDetail,
    ForecastHorizon,
    ForecastPeriod,
    InvestmentPerformance,
    InvestmentSummary,
    MonthlySummary,
    ObligationKind,
    UpcomingPayment,
)
from household_ledger.models.query import TransactionFilter
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entity models
    "Account",
    "AccountType",
    "AmountSchedule",
    "AssetType",
    "Category",
    "CategoryType",
    "Debt",
    "DebtType",
    "Frequency",
    "Investment",
    "LedgerModel",
    "Person",
    "RecurringEntry",
    "ScheduledModel",
    "Subscription",
    "Transaction",
    # Snapshot models
    "COLLECTION_ATTRS",
    "COLLECTION_MODELS",
    "Snapshot",
    "ValidationIssue",
    "ValidationResult",
    # Forecast models
    "DashboardSummary",
    "DebtSummary",
    "Forecast",
    "ForecastDetail",
    "ForecastHorizon",
    "ForecastPeriod",
    "InvestmentPerformance",
    "InvestmentSummary",
    "MonthlySummary",
    "ObligationKind",
    "UpcomingPayment",
    # Query models
    "TransactionFilter",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
