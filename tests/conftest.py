"""Shared fixtures: every test gets a fresh in-memory store."""

import pytest

from receiptlens.audit import AuditLogger
from receiptlens.config import AppSettings
from receiptlens.engine import ExpenseTracker
from receiptlens.services.storage import InMemoryRecordStore


@pytest.fixture
def settings():
    return AppSettings(seed_example_data=False)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def tracker(store, settings, audit):
    return ExpenseTracker(store, settings=settings, audit_logger=audit)
