"""
Query Models

Criteria for listing realized transactions. Every filter is optional;
an empty TransactionFilter matches everything.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class TransactionFilter(BaseModel):
    """Filter criteria for the transaction list."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    person_ids: list[str] = Field(default_factory=list)
    account_ids: list[str] = Field(default_factory=list)
    category_ids: list[str] = Field(default_factory=list)

    # Inclusive on both ends
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None

    search_term: str = Field(
        default="",
        max_length=200,
        description="Case-insensitive match against the description"
    )

    limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of results (newest first)"
    )

    @model_validator(mode="after")
    def validate_ranges(self) -> "TransactionFilter":
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        if (
            self.amount_min is not None
            and self.amount_max is not None
            and self.amount_max < self.amount_min
        ):
            raise ValueError("amount_max cannot be below amount_min")
        return self
