"""
Tests for the Budget Registry
"""

import json
from decimal import Decimal

from receiptlens.registry import BudgetRegistry
from receiptlens.services.storage import InMemoryRecordStore


class TestBudgetRegistry:

    def test_empty_by_default(self, store, audit):
        assert BudgetRegistry(store, audit).list() == []

    def test_upsert_appends(self, store, audit):
        budgets = BudgetRegistry(store, audit)
        budgets.upsert("Transport", Decimal("300"))
        result = budgets.upsert("Health", "150.50")
        assert [(b.category, b.amount) for b in result] == [
            ("Transport", Decimal("300")),
            ("Health", Decimal("150.50")),
        ]

    def test_upsert_replaces(self, store, audit):
        budgets = BudgetRegistry(store, audit)
        budgets.upsert("Transport", Decimal("300"))
        budgets.upsert("Health", Decimal("100"))
        result = budgets.upsert("Transport", Decimal("450"))
        assert [b.category for b in result] == ["Transport", "Health"]
        assert budgets.get("Transport").amount == Decimal("450")

    def test_upsert_does_not_check_categories(self, store, audit):
        budgets = BudgetRegistry(store, audit)
        budgets.upsert("Not A Category", 10)
        assert budgets.get("Not A Category") is not None

    def test_stored_as_json_numbers(self, store, audit):
        BudgetRegistry(store, audit).upsert("Transport", Decimal("300.25"))
        assert json.loads(store.read("budgets")) == [
            {"category": "Transport", "amount": 300.25}
        ]

    def test_duplicates_in_blob_collapse_to_first(self, audit):
        store = InMemoryRecordStore({"budgets": json.dumps([
            {"category": "Transport", "amount": 300},
            {"category": "Transport", "amount": 999},
        ])})
        budgets = BudgetRegistry(store, audit).list()
        assert len(budgets) == 1
        assert budgets[0].amount == Decimal("300")

    def test_unreadable_entry_survives_upsert(self, audit):
        broken = {"category": "Travel", "amount": "a lot"}
        store = InMemoryRecordStore({"budgets": json.dumps([broken])})
        BudgetRegistry(store, audit).upsert("Transport", Decimal("300"))
        stored = json.loads(store.read("budgets"))
        assert stored == [{"category": "Transport", "amount": 300.0}, broken]


class TestBudgetRename:

    def test_rename_rekeys(self, store, audit):
        budgets = BudgetRegistry(store, audit)
        budgets.upsert("Food", Decimal("800"))
        assert budgets.rename_category("Food", "Groceries") == 1
        assert budgets.get("Groceries").amount == Decimal("800")
        assert budgets.get("Food") is None

    def test_rename_onto_existing_keeps_first(self, store, audit):
        budgets = BudgetRegistry(store, audit)
        budgets.upsert("Food", Decimal("800"))
        budgets.upsert("Groceries", Decimal("200"))
        budgets.rename_category("Food", "Groceries")
        result = budgets.list()
        assert len(result) == 1
        assert result[0].amount == Decimal("800")

    def test_rename_without_match_does_not_write(self, store, audit):
        budgets = BudgetRegistry(store, audit)
        budgets.upsert("Food", Decimal("800"))
        before = store.read("budgets")
        assert budgets.rename_category("Travel", "Trips") == 0
        assert store.read("budgets") == before
