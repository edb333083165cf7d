"""Static default data package."""

from household_ledger.data.defaults import DEFAULT_CATEGORY_SPECS, default_categories

__all__ = [
    "DEFAULT_CATEGORY_SPECS",
    "default_categories",
]
