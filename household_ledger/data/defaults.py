"""
Default Data

Static starter data for a fresh ledger. The starter categories are what
a first run (no snapshot yet) and a reset begin with.
"""

from uuid import uuid4

from household_ledger.models.entities import Category, CategoryType


# (name, type, color)
DEFAULT_CATEGORY_SPECS: tuple[tuple[str, CategoryType, str], ...] = (
    # Income categories
    ("Salary", CategoryType.INCOME, "#36B37E"),
    ("Bonus", CategoryType.INCOME, "#00B8D9"),
    ("Gift", CategoryType.INCOME, "#6554C0"),
    ("Refund", CategoryType.INCOME, "#00875A"),
    ("Investments", CategoryType.INCOME, "#0052CC"),
    ("Other income", CategoryType.INCOME, "#8777D9"),
    # Expense categories
    ("Groceries", CategoryType.EXPENSE, "#FF5630"),
    ("Housing", CategoryType.EXPENSE, "#FF8B00"),
    ("Transport", CategoryType.EXPENSE, "#FFAB00"),
    ("Health", CategoryType.EXPENSE, "#36B37E"),
    ("Insurance", CategoryType.EXPENSE, "#00B8D9"),
    ("Entertainment", CategoryType.EXPENSE, "#6554C0"),
    ("Shopping", CategoryType.EXPENSE, "#FF5630"),
    ("Restaurants", CategoryType.EXPENSE, "#FF8B00"),
    ("Education", CategoryType.EXPENSE, "#00B8D9"),
    ("Subscriptions", CategoryType.EXPENSE, "#6554C0"),
    ("Debt", CategoryType.EXPENSE, "#FF5630"),
    ("Other expenses", CategoryType.EXPENSE, "#8777D9"),
)


def default_categories() -> list[Category]:
    """
    Build the starter category set.

    Each call mints fresh ids, so two ledgers never share category ids.
    """
    return [
        Category(id=str(uuid4()), name=name, type=category_type, color=color)
        for name, category_type, color in DEFAULT_CATEGORY_SPECS
    ]
