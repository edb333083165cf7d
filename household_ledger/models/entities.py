"""
Core Data Models for Household Ledger

These models define the strict schemas for every record the ledger owns.
They are designed to:
1. Enforce field domains at the point data enters the store
2. Provide clear validation error messages
3. Serialize to the snapshot format (camelCase keys) and back
4. Be immutable: an update replaces the whole record

DESIGN DECISION: Entity models are frozen pydantic v2 models.
The store hands out the same objects it holds, so they must not be
mutable from the outside.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of accounts a person can hold."""
    DEBIT_CARD = "debit_card"
    GIRO_ACCOUNT = "giro_account"
    SAVINGS = "savings"
    CASH = "cash"
    OTHER = "other"


class CategoryType(str, Enum):
    """Whether a category books money in or out."""
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """
    Recurrence frequency of an obligation.

    Expansion rules live in household_ledger.forecast.schedule.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DebtType(str, Enum):
    """Debt flavour."""
    PERSONAL = "personal"
    CREDIT = "credit"


class AssetType(str, Enum):
    """Investment asset classes."""
    STOCK = "stock"
    BOND = "bond"
    CRYPTO = "crypto"
    REAL_ESTATE = "real_estate"
    OTHER = "other"


# =============================================================================
# BASE MODELS
# =============================================================================

def _coerce_date(value: Any) -> Any:
    """
    Accept full ISO timestamps where a calendar date is expected.

    Older backups store dates as "2024-03-20T00:00:00.000Z".
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class LedgerModel(BaseModel):
    """
    Base class for every ledger record.

    Attributes are snake_case in Python and camelCase in snapshots.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque identifier assigned by the store"
    )


class ScheduledModel(LedgerModel):
    """A record bounded by a start date and an optional end date."""

    start_date: date
    end_date: Optional[date] = Field(
        default=None,
        description="Last day the record applies; None means open-ended"
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def truncate_timestamps(cls, v: Any) -> Any:
        return _coerce_date(v)

    @model_validator(mode="after")
    def validate_date_range(self) -> "ScheduledModel":
        """End date cannot precede start date."""
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self

    def has_ended(self, on: date) -> bool:
        """True when the record's end date lies strictly before `on`."""
        return self.end_date is not None and self.end_date < on


# =============================================================================
# PEOPLE, ACCOUNTS, CATEGORIES
# =============================================================================

class Person(LedgerModel):
    """A household member. Root of the ownership tree."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )


class Account(LedgerModel):
    """
    A money account belonging to one person.

    CRITICAL: `balance` is maintained by the store from the transactions
    referencing this account. Callers never set it directly.
    """

    person_id: str = Field(..., min_length=1)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Account name"
    )
    type: AccountType = AccountType.GIRO_ACCOUNT
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Sum of all transaction amounts on this account"
    )
    currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="ISO currency code"
    )

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class Category(LedgerModel):
    """Income or expense category used to classify cash movements."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    type: CategoryType
    color: str = Field(
        default="#8777D9",
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Display colour as #RRGGBB"
    )


# =============================================================================
# REALIZED CASH MOVEMENTS
# =============================================================================

class Transaction(LedgerModel):
    """
    A realized cash movement.

    Amount sign carries direction: positive is income, negative is expense.
    """

    date: date
    person_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        description="Signed amount; positive = income, negative = expense"
    )
    description: str = Field(default="", max_length=500)
    is_recurring: bool = Field(
        default=False,
        description="Booked from a recurring entry by the user"
    )

    @field_validator("date", mode="before")
    @classmethod
    def truncate_timestamp(cls, v: Any) -> Any:
        return _coerce_date(v)

    @property
    def is_income(self) -> bool:
        return self.amount > 0


# =============================================================================
# RECURRING OBLIGATIONS
# =============================================================================

class RecurringEntry(ScheduledModel):
    """
    Declarative recurring income.

    Never materializes into transactions on its own; it only feeds the
    forecast.
    """

    person_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    frequency: Frequency = Frequency.MONTHLY
    description: str = Field(default="", max_length=500)


class AmountSchedule(ScheduledModel):
    """Time-sliced override of a recurring entry's amount."""

    entry_id: str = Field(
        ...,
        min_length=1,
        description="RecurringEntry this override applies to"
    )
    amount: Decimal = Field(..., gt=0)


class Subscription(ScheduledModel):
    """Declarative recurring expense."""

    person_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    frequency: Frequency = Frequency.MONTHLY
    day_of_month: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Billing day for monthly subscriptions"
    )
    description: str = Field(default="", max_length=500)


class Debt(ScheduledModel):
    """
    A recurring repayment obligation with amortization state.

    `remaining_amount` defaults to `total_amount` when omitted.
    """

    person_id: str = Field(..., min_length=1)
    account_id: str = Field(
        ...,
        min_length=1,
        description="Account the payments are drawn from"
    )
    name: str = Field(..., min_length=1, max_length=100)
    type: DebtType = DebtType.CREDIT
    total_amount: Decimal = Field(..., ge=0)
    remaining_amount: Decimal = Field(..., ge=0)
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    monthly_payment: Decimal = Field(default=Decimal("0"), ge=0)
    day_of_month: int = Field(default=1, ge=1, le=31)
    description: str = Field(default="", max_length=500)

    @model_validator(mode="before")
    @classmethod
    def default_remaining_amount(cls, data: Any) -> Any:
        """Without an explicit remaining amount, nothing has been repaid yet."""
        if isinstance(data, dict):
            remaining = data.get("remaining_amount", data.get("remainingAmount"))
            if remaining is None:
                data = dict(data)
                data.pop("remainingAmount", None)
                data["remaining_amount"] = data.get(
                    "total_amount", data.get("totalAmount")
                )
        return data

    @model_validator(mode="after")
    def validate_remaining_bounds(self) -> "Debt":
        if self.remaining_amount > self.total_amount:
            raise ValueError("Remaining amount cannot exceed total amount")
        return self

    @property
    def paid_amount(self) -> Decimal:
        return self.total_amount - self.remaining_amount

    @property
    def payoff_percentage(self) -> Decimal:
        """Share of the debt already repaid, 0 for a zero-total debt."""
        if self.total_amount == 0:
            return Decimal("0")
        return self.paid_amount / self.total_amount * 100

    @property
    def is_settled(self) -> bool:
        return self.remaining_amount <= 0


# =============================================================================
# VALUATION
# =============================================================================

class Investment(LedgerModel):
    """An asset position. Valued, never scheduled."""

    person_id: str = Field(..., min_length=1)
    asset_name: str = Field(..., min_length=1, max_length=100)
    asset_type: AssetType = AssetType.OTHER
    purchase_date: date
    units: Decimal = Field(..., ge=0)
    purchase_price_per_unit: Decimal = Field(..., ge=0)
    current_price_per_unit: Decimal = Field(..., ge=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    notes: str = Field(default="", max_length=1000)

    @field_validator("purchase_date", mode="before")
    @classmethod
    def truncate_timestamp(cls, v: Any) -> Any:
        return _coerce_date(v)

    @property
    def cost_basis(self) -> Decimal:
        return self.units * self.purchase_price_per_unit

    @property
    def current_value(self) -> Decimal:
        return self.units * self.current_price_per_unit

    @property
    def profit(self) -> Decimal:
        return self.current_value - self.cost_basis

    @property
    def profit_percentage(self) -> Decimal:
        """Performance relative to cost, 0 when nothing was paid."""
        cost = self.cost_basis
        if cost == 0:
            return Decimal("0")
        return self.profit / cost * 100
