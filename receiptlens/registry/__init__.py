"""Category and budget registries."""

from receiptlens.registry.budgets import BudgetRegistry
from receiptlens.registry.categories import (
    DEFAULT_CATEGORIES,
    CategoryLimitReached,
    CategoryRegistry,
)

__all__ = [
    "BudgetRegistry",
    "CategoryLimitReached",
    "CategoryRegistry",
    "DEFAULT_CATEGORIES",
]
