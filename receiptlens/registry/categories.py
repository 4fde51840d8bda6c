"""
Category Registry

Owns the `categories` blob: an ordered list of unique names.

CRITICAL: Renaming a category cascades. Every expense filed under the
old name and the budget keyed by it are moved to the new name. The
three blobs are written in a fixed order (categories, expenses,
budgets). If a later write fails after an earlier one succeeded, the
caller gets PartialCascadeFailure, not StorageUnavailable, because the
stores now disagree.
"""

from typing import Iterable, Optional

from receiptlens.audit import AuditLogger
from receiptlens.config import AppSettings, get_settings
from receiptlens.ledger import Ledger
from receiptlens.models.audit import AuditEventBuilder
from receiptlens.models.profile import SubscriptionStatus
from receiptlens.registry.budgets import BudgetRegistry
from receiptlens.services.storage import (
    JsonBlobRepository,
    PartialCascadeFailure,
    RecordStore,
    StorageError,
)
from receiptlens.subscription import SubscriptionLifecycle


DEFAULT_CATEGORIES = (
    "Food & Dining",
    "Transport",
    "Shopping",
    "Bills & Utilities",
    "Health",
    "Entertainment",
    "Other",
)


class CategoryLimitReached(Exception):
    """The current tier does not allow another category. Nothing changed."""

    def __init__(self, name: str, tier: Optional[SubscriptionStatus], limit: int):
        self.name = name
        self.tier = tier
        self.limit = limit
        tier_label = tier.value if tier else "logged out"
        super().__init__(
            f"Cannot add category '{name}': {tier_label} tier allows {limit} categories"
        )


def _normalize(names: Iterable[str]) -> list[str]:
    """Strip names, drop blanks and duplicates, keep first-seen order."""
    result = []
    for name in names:
        if not isinstance(name, str):
            continue
        name = name.strip()
        if name and name not in result:
            result.append(name)
    return result


class CategoryRegistry(JsonBlobRepository):
    """Ordered category names with tier-based limits."""

    key = "categories"

    def __init__(
        self,
        store: RecordStore,
        lifecycle: SubscriptionLifecycle,
        ledger: Ledger,
        budgets: BudgetRegistry,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store)
        self._lifecycle = lifecycle
        self._ledger = ledger
        self._budgets = budgets
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()

    @property
    def free_tier_limit(self) -> int:
        return len(DEFAULT_CATEGORIES) + self._settings.free_extra_categories

    def _load(self):
        snapshot = self._snapshot()
        value = snapshot.value
        if isinstance(value, list):
            names = _normalize(value)
            if names:
                return snapshot, names
        return snapshot, list(DEFAULT_CATEGORIES)

    def can_add(self) -> bool:
        """
        Trial and premium users may always add. Free users may add
        while below the defaults plus the free allowance. Logged-out
        users may not add at all.
        """
        tier = self._lifecycle.current_tier()
        if tier is None:
            return False
        if tier in (SubscriptionStatus.TRIAL, SubscriptionStatus.PREMIUM):
            return True
        return len(self._load()[1]) < self.free_tier_limit

    def add(self, name: str) -> list[str]:
        """
        Append a category.

        Raises:
            CategoryLimitReached: The tier does not allow another one

        Returns:
            The updated list. Adding an existing or blank name changes
            nothing.
        """
        name = name.strip()
        if not self.can_add():
            tier = self._lifecycle.current_tier()
            self._audit.log(
                AuditEventBuilder.category_limit_reached(name, tier.value if tier else None)
            )
            raise CategoryLimitReached(name, tier, self.free_tier_limit)

        snapshot, names = self._load()
        if not name or name in names:
            return names

        names.append(name)
        self._write(names, snapshot)
        self._audit.log(AuditEventBuilder.category_added(name, len(names)))
        return names

    def remove(self, name: str) -> list[str]:
        """
        Drop a category from the list.

        Expenses and budgets keep the old name.
        """
        snapshot, names = self._load()
        if name not in names:
            return names
        names.remove(name)
        self._write(names, snapshot)
        self._audit.log(AuditEventBuilder.category_removed(name))
        return self._load()[1]

    def save(self, names: Iterable[str]) -> list[str]:
        """Replace the whole list (onboarding, bulk edits)."""
        snapshot = self._snapshot()
        self._write(_normalize(names), snapshot)
        return self._load()[1]

    def rename(self, old_name: str, new_name: str) -> list[str]:
        """
        Rename a category in place and cascade to expenses and budgets.

        If `old_name` is not in the list, the list is left alone but
        expenses and budgets still using it are moved. If `new_name`
        already exists, the two entries merge at the position of the
        first.

        Raises:
            StorageUnavailable: The first write failed; nothing changed
            PartialCascadeFailure: A later write failed after an earlier
                one was committed
        """
        old_name = old_name.strip()
        new_name = new_name.strip()
        if not new_name or old_name == new_name:
            return self._load()[1]

        snapshot, names = self._load()
        committed: list[str] = []

        if old_name in names:
            renamed = [new_name if name == old_name else name for name in names]
            self._write(_normalize(renamed), snapshot)
            committed.append(self.key)

        counts = {}
        for key, step in (
            (self._ledger.key, self._ledger.rename_category_references),
            (self._budgets.key, self._budgets.rename_category),
        ):
            try:
                counts[key] = step(old_name, new_name)
            except StorageError as e:
                if not committed:
                    raise
                self._audit.log(
                    AuditEventBuilder.partial_cascade_failed(
                        old_name, new_name, committed, key, str(e)
                    )
                )
                raise PartialCascadeFailure(committed, key, e) from e
            if counts[key]:
                committed.append(key)

        self._audit.log(
            AuditEventBuilder.category_renamed(
                old_name,
                new_name,
                counts[self._ledger.key],
                counts[self._budgets.key],
            )
        )
        return self._load()[1]

    def list(self) -> list[str]:
        """Stored names, or the built-in defaults. Never empty."""
        return self._load()[1]
