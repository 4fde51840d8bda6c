"""Data models package."""

from receiptlens.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from receiptlens.models.chat import ChatAction, ChatActionType, ChatMessage, ChatRole
from receiptlens.models.expense import (
    Budget,
    Expense,
    ExpenseDraft,
    LineItem,
    ReceiptDraft,
    RecurrenceFrequency,
    ValidationIssue,
    ValidationResult,
    new_record_id,
    utc_now,
)
from receiptlens.models.profile import SubscriptionStatus, UserProfile

__all__ = [
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Chat
    "ChatAction",
    "ChatActionType",
    "ChatMessage",
    "ChatRole",
    # Ledger
    "Budget",
    "Expense",
    "ExpenseDraft",
    "LineItem",
    "ReceiptDraft",
    "RecurrenceFrequency",
    "ValidationIssue",
    "ValidationResult",
    "new_record_id",
    "utc_now",
    # Profile
    "SubscriptionStatus",
    "UserProfile",
]
