"""
Tests for the Ledger
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from receiptlens.audit import AuditLogger
from receiptlens.config import AppSettings
from receiptlens.ledger import Ledger
from receiptlens.models.audit import AuditEventType
from receiptlens.models.expense import Expense, ExpenseDraft
from receiptlens.services.storage import InMemoryRecordStore


def make_draft(**overrides):
    fields = dict(
        merchant_name="Padaria",
        amount=Decimal("12.00"),
        category="Food & Dining",
        date=date(2024, 2, 1),
    )
    fields.update(overrides)
    return ExpenseDraft(**fields)


@pytest.fixture
def ledger(store, settings, audit):
    return Ledger(store, settings, audit)


class TestLedgerSeeding:
    """First access behaviour."""

    def test_seeds_example_records(self, store, audit):
        ledger = Ledger(store, AppSettings(seed_example_data=True), audit)
        expenses = ledger.list()
        assert [e.merchant_name for e in expenses] == ["Starbucks", "Uber", "Pão de Açúcar"]
        assert len(json.loads(store.read("expenses"))) == 3
        assert audit.recent_events[-1].event_type == AuditEventType.LEDGER_SEEDED

    def test_seeding_happens_once(self, store, audit):
        ledger = Ledger(store, AppSettings(seed_example_data=True), audit)
        first = [e.id for e in ledger.list()]
        second = [e.id for e in ledger.list()]
        assert first == second

    def test_corrupt_blob_is_reseeded(self, audit):
        store = InMemoryRecordStore({"expenses": "not json"})
        ledger = Ledger(store, AppSettings(seed_example_data=True), audit)
        assert len(ledger.list()) == 3

    def test_no_seed_when_disabled(self, ledger, store):
        assert ledger.list() == []
        assert store.read("expenses") is None

    def test_empty_list_is_not_reseeded(self, audit):
        store = InMemoryRecordStore({"expenses": "[]"})
        ledger = Ledger(store, AppSettings(seed_example_data=True), audit)
        assert ledger.list() == []


class TestLedgerOperations:

    def test_create_prepends(self, ledger):
        first = ledger.create(make_draft(merchant_name="First"))
        second = ledger.create(make_draft(merchant_name="Second"))
        assert [e.id for e in ledger.list()] == [second.id, first.id]

    def test_create_assigns_identity(self, ledger):
        now = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)
        expense = ledger.create(make_draft(), now=now)
        assert expense.id
        assert expense.user_id == "local_user"
        assert expense.created_at == now

    def test_create_from_existing_expense_gets_new_id(self, ledger):
        original = ledger.create(make_draft())
        copy = ledger.create(original)
        assert copy.id != original.id
        assert len(ledger.list()) == 2

    def test_update_replaces_in_place(self, ledger):
        first = ledger.create(make_draft(merchant_name="First"))
        ledger.create(make_draft(merchant_name="Second"))
        edited = first.model_copy(update={"amount": Decimal("99.99")})

        ledger.update(edited)

        expenses = ledger.list()
        assert len(expenses) == 2
        assert expenses[1].id == first.id
        assert expenses[1].amount == Decimal("99.99")

    def test_update_unknown_id_creates(self, ledger):
        stray = Expense(**make_draft().model_dump(), id="missing")
        created = ledger.update(stray)
        assert created.id != "missing"
        assert [e.id for e in ledger.list()] == [created.id]

    def test_get(self, ledger):
        expense = ledger.create(make_draft())
        assert ledger.get(expense.id) == expense
        assert ledger.get("nope") is None

    def test_apply_none_means_no_write(self, ledger, store):
        ledger.create(make_draft())
        before = store.read("expenses")
        ledger.apply(lambda expenses: None)
        assert store.read("expenses") == before

    def test_invalid_records_are_skipped(self, store, settings, audit):
        good = Expense(**make_draft().model_dump()).model_dump(mode="json")
        store.write("expenses", json.dumps([good, {"merchant_name": "broken"}]))
        ledger = Ledger(store, settings, audit)
        with capture_logs() as logs:
            expenses = ledger.list()
        assert [e.id for e in expenses] == [good["id"]]
        assert any(e["event"] == "decode_skipped_records" for e in logs)


class TestStoredDataIsNeverDropped:
    """Writes must carry every stored record, readable or not."""

    def test_unreadable_record_survives_create(self, store, settings, audit):
        good = Expense(**make_draft().model_dump()).model_dump(mode="json")
        broken = {"id": "broken", "merchant_name": "Sem valor", "amount": None}
        store.write("expenses", json.dumps([good, broken]))
        ledger = Ledger(store, settings, audit)

        created = ledger.create(make_draft(merchant_name="Nova"))

        stored = json.loads(store.read("expenses"))
        assert [entry["id"] for entry in stored] == [created.id, good["id"], "broken"]
        assert stored[-1] == broken
        assert [e.id for e in ledger.list()] == [created.id, good["id"]]

    def test_unreadable_record_survives_rename(self, store, settings, audit):
        good = Expense(**make_draft(category="Health").model_dump()).model_dump(mode="json")
        broken = {"id": "broken", "category": "Health"}
        store.write("expenses", json.dumps([good, broken]))
        ledger = Ledger(store, settings, audit)

        assert ledger.rename_category_references("Health", "Saúde") == 1

        stored = json.loads(store.read("expenses"))
        assert stored[0]["category"] == "Saúde"
        assert stored[1] == broken

    def test_web_app_template_survives_recurrence_write(self, store, settings, audit):
        store.write("expenses", json.dumps([{
            "id": "abc",
            "user_id": "local_user",
            "created_at": "2024-01-15T10:00:00.000Z",
            "merchant_name": "Aluguel",
            "amount": 1500,
            "currency": "BRL",
            "category": "Bills & Utilities",
            "date": "2024-01-05",
            "ai_summary": "",
            "is_recurring": True,
            "recurrence_frequency": "Monthly",
            "recurrence_end_date": "",
        }]))
        ledger = Ledger(store, settings, audit)

        ledger.create(make_draft())

        assert "abc" in [e.id for e in ledger.list()]
        assert ledger.get("abc").is_template


class TestUpdateKeepsIdentity:

    def test_created_at_is_immutable(self, ledger):
        stamped = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)
        expense = ledger.create(make_draft(), now=stamped)
        edited = expense.model_copy(update={
            "merchant_name": "Padaria Nova",
            "created_at": datetime(1999, 1, 1, tzinfo=timezone.utc),
            "user_id": "someone_else",
        })

        result = ledger.update(edited)

        stored = ledger.get(expense.id)
        assert stored.merchant_name == "Padaria Nova"
        assert stored.created_at == stamped
        assert stored.user_id == "local_user"
        assert result.created_at == stamped

    def test_update_keeps_newest_first_order(self, ledger):
        older = ledger.create(make_draft(merchant_name="Older"))
        newer = ledger.create(make_draft(merchant_name="Newer"))
        ledger.update(older.model_copy(update={"amount": Decimal("1.00")}))
        assert [e.id for e in ledger.list()] == [newer.id, older.id]


class TestRenameCategoryReferences:

    def test_rewrites_matching_records(self, ledger):
        ledger.create(make_draft(category="Food & Dining"))
        ledger.create(make_draft(category="Transport"))
        ledger.create(make_draft(category="Food & Dining"))

        assert ledger.rename_category_references("Food & Dining", "Groceries") == 2
        assert sorted(e.category for e in ledger.list()) == [
            "Groceries", "Groceries", "Transport",
        ]

    def test_no_match_no_write(self, ledger, store):
        ledger.create(make_draft(category="Transport"))
        before = store.read("expenses")
        assert ledger.rename_category_references("Health", "Saúde") == 0
        assert store.read("expenses") == before


class TestHasOccurrence:

    def test_matches_generated_occurrence(self, ledger):
        ledger.create(make_draft(parent_id="tpl", date=date(2024, 2, 15)))
        assert ledger.has_occurrence("tpl", date(2024, 2, 15))
        assert not ledger.has_occurrence("tpl", date(2024, 3, 15))

    def test_matches_template_itself(self, ledger):
        template = ledger.create(make_draft(
            is_recurring=True,
            recurrence_frequency="Monthly",
            date=date(2024, 1, 15),
        ))
        assert ledger.has_occurrence(template.id, date(2024, 1, 15))
