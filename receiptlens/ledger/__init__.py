"""Ledger and recurrence package."""

from receiptlens.ledger.ledger import Ledger, has_occurrence
from receiptlens.ledger.recurrence import RecurrenceEngine, candidate_date

__all__ = ["Ledger", "RecurrenceEngine", "candidate_date", "has_occurrence"]
