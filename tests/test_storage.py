"""
Tests for the record stores and the JSON blob repository base.
"""

import json

import pytest
from structlog.testing import capture_logs

from receiptlens.models.expense import Budget
from receiptlens.services.storage import (
    ConcurrentModificationError,
    InMemoryRecordStore,
    JsonBlobRepository,
    JsonFileRecordStore,
    PartialCascadeFailure,
    StorageError,
    StorageUnavailable,
)


class BudgetBlob(JsonBlobRepository):
    key = "budgets"


class TestInMemoryRecordStore:

    def test_read_missing_key(self):
        assert InMemoryRecordStore().read("expenses") is None

    def test_write_then_read(self):
        store = InMemoryRecordStore()
        store.write("expenses", "[]")
        assert store.read("expenses") == "[]"
        assert store.keys() == ["expenses"]

    def test_remove_is_idempotent(self):
        store = InMemoryRecordStore({"userProfile": "{}"})
        store.remove("userProfile")
        store.remove("userProfile")
        assert store.read("userProfile") is None


class TestJsonFileRecordStore:

    def test_write_creates_file(self, tmp_path):
        store = JsonFileRecordStore(tmp_path / "data")
        store.write("categories", '["Food"]')
        assert (tmp_path / "data" / "categories.json").read_text(encoding="utf-8") == '["Food"]'
        assert store.read("categories") == '["Food"]'

    def test_read_missing_blob(self, tmp_path):
        assert JsonFileRecordStore(tmp_path).read("expenses") is None

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        store = JsonFileRecordStore(tmp_path)
        store.write("budgets", "[]")
        store.write("budgets", '[{"category": "Transport", "amount": 300}]')
        assert sorted(p.name for p in tmp_path.iterdir()) == ["budgets.json"]

    def test_unicode_round_trip(self, tmp_path):
        store = JsonFileRecordStore(tmp_path)
        store.write("categories", '["Alimentação"]')
        assert store.read("categories") == '["Alimentação"]'

    def test_remove(self, tmp_path):
        store = JsonFileRecordStore(tmp_path)
        store.write("userProfile", "{}")
        store.remove("userProfile")
        store.remove("userProfile")
        assert store.read("userProfile") is None

    def test_rejects_path_like_keys(self, tmp_path):
        with pytest.raises(ValueError):
            JsonFileRecordStore(tmp_path).read("../secrets")

    def test_unwritable_directory_raises_storage_unavailable(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("", encoding="utf-8")
        store = JsonFileRecordStore(blocker)
        with pytest.raises(StorageUnavailable) as exc_info:
            store.write("expenses", "[]")
        assert exc_info.value.key == "expenses"


class TestJsonBlobRepository:

    def test_corrupt_blob_treated_as_absent(self):
        repo = BudgetBlob(InMemoryRecordStore({"budgets": "{not json"}))
        with capture_logs() as logs:
            snapshot = repo._snapshot()
        assert snapshot.value is None
        assert snapshot.raw == "{not json"
        assert not snapshot.exists
        assert logs[0]["event"] == "corrupt_blob_ignored"

    def test_invalid_entries_are_skipped_and_logged(self):
        blob = json.dumps([
            {"category": "Transport", "amount": 300},
            {"category": "Food"},
            "garbage",
        ])
        repo = BudgetBlob(InMemoryRecordStore({"budgets": blob}))
        with capture_logs() as logs:
            budgets = repo._decode_list(repo._snapshot().value, Budget)
        assert [b.category for b in budgets] == ["Transport"]
        skipped = [e for e in logs if e["event"] == "decode_skipped_records"]
        assert skipped[0]["skipped"] == 2
        assert skipped[0]["kept"] == 1

    def test_non_list_blob_decodes_to_none(self):
        repo = BudgetBlob(InMemoryRecordStore({"budgets": '{"a": 1}'}))
        with capture_logs() as logs:
            assert repo._decode_list(repo._snapshot().value, Budget) is None
        assert logs[0]["event"] == "unexpected_blob_shape"

    def test_write_refuses_when_blob_changed(self):
        store = InMemoryRecordStore({"budgets": "[]"})
        repo = BudgetBlob(store)
        snapshot = repo._snapshot()
        store.write("budgets", '[{"category": "Health", "amount": 50}]')
        with pytest.raises(ConcurrentModificationError):
            repo._write([], snapshot)
        assert "Health" in store.read("budgets")

    def test_write_keeps_non_ascii(self):
        store = InMemoryRecordStore()
        repo = BudgetBlob(store)
        repo._write([{"category": "Saúde", "amount": 10}], repo._snapshot())
        assert "Saúde" in store.read("budgets")


class TestStorageErrors:

    def test_partial_cascade_is_not_storage_unavailable(self):
        cause = StorageUnavailable("budgets", "disk full")
        error = PartialCascadeFailure(["categories", "expenses"], "budgets", cause)
        assert isinstance(error, StorageError)
        assert not isinstance(error, StorageUnavailable)
        assert error.committed == ["categories", "expenses"]
        assert error.failed_key == "budgets"
        assert error.cause is cause
