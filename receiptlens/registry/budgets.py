"""
Budget Registry

Owns the `budgets` blob: one monthly ceiling per category name.
Budgets are not checked against the category list, and are never
removed when their category goes away.
"""

from decimal import Decimal
from typing import Optional, Union

from receiptlens.audit import AuditLogger
from receiptlens.models.audit import AuditEventBuilder
from receiptlens.models.expense import Budget
from receiptlens.services.storage import JsonBlobRepository, RecordStore


def _dedupe(budgets: list[Budget]) -> list[Budget]:
    """Keep the first budget per category."""
    seen = set()
    unique = []
    for budget in budgets:
        if budget.category in seen:
            continue
        seen.add(budget.category)
        unique.append(budget)
    return unique


class BudgetRegistry(JsonBlobRepository):

    key = "budgets"

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store)
        self._audit = audit_logger or AuditLogger()

    @staticmethod
    def _encode(budgets: list[Budget]) -> list[dict]:
        return [b.model_dump(mode="json") for b in budgets]

    def _load_all(self):
        snapshot = self._snapshot()
        budgets, unreadable = self._partition_list(snapshot.value, Budget) or ([], [])
        return snapshot, _dedupe(budgets), unreadable

    def _load(self):
        snapshot, budgets, _ = self._load_all()
        return snapshot, budgets

    def upsert(self, category: str, amount: Union[Decimal, float, str]) -> list[Budget]:
        """Set the ceiling for `category`, replacing any existing one."""
        budget = Budget(category=category, amount=amount)
        snapshot, budgets, unreadable = self._load_all()

        created = True
        for index, current in enumerate(budgets):
            if current.category == budget.category:
                budgets[index] = budget
                created = False
                break
        else:
            budgets.append(budget)

        self._write(self._encode(budgets) + unreadable, snapshot)
        self._audit.log(
            AuditEventBuilder.budget_upserted(budget.category, str(budget.amount), created)
        )
        return budgets

    def rename_category(self, old_name: str, new_name: str) -> int:
        """
        Re-key the budget for `old_name` to `new_name` in one write.

        If `new_name` already had a budget, the one earlier in the list
        wins. Returns the number of budgets re-keyed.
        """
        snapshot, budgets, unreadable = self._load_all()
        renamed = 0
        result = []
        for budget in budgets:
            if budget.category == old_name:
                budget = budget.model_copy(update={"category": new_name})
                renamed += 1
            result.append(budget)

        if renamed:
            self._write(self._encode(_dedupe(result)) + unreadable, snapshot)
        return renamed

    def get(self, category: str) -> Optional[Budget]:
        return next((b for b in self._load()[1] if b.category == category), None)

    def list(self) -> list[Budget]:
        """Every budget, at most one per category."""
        return self._load()[1]
