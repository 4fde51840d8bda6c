"""
Audit Models for ReceiptLens

Every mutation the engine performs is described by an audit event.
This provides:
1. Traceability of derived data (which template produced an occurrence)
2. Debugging information when a cascade fails half-way
3. A record of tier transitions and quota decisions

DESIGN DECISION: Audit events are emitted, never edited.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from receiptlens.models.expense import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    LEDGER_SEEDED = "ledger_seeded"
    OCCURRENCE_MATERIALIZED = "occurrence_materialized"

    # Categories & budgets
    CATEGORY_ADDED = "category_added"
    CATEGORY_LIMIT_REACHED = "category_limit_reached"
    CATEGORY_RENAMED = "category_renamed"
    CATEGORY_REMOVED = "category_removed"
    BUDGET_UPSERTED = "budget_upserted"

    # Profile & subscription
    PROFILE_CREATED = "profile_created"
    PROFILE_UPDATED = "profile_updated"
    PROFILE_CLEARED = "profile_cleared"
    TRIAL_STARTED = "trial_started"
    TRIAL_EXPIRED = "trial_expired"
    SUBSCRIBED = "subscribed"
    AI_INTERACTION_CONSUMED = "ai_interaction_consumed"
    AI_INTERACTION_DENIED = "ai_interaction_denied"

    # Failures
    STORAGE_FAILED = "storage_failed"
    PARTIAL_CASCADE_FAILED = "partial_cascade_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'category', 'profile')"
    )
    entity_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(expense_id, merchant, amount)
        event = AuditEventBuilder.trial_expired(profile_id, elapsed_days)
    """

    @staticmethod
    def expense_created(expense_id: str, merchant: str, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense recorded: {merchant} - {amount}",
            details={"merchant": merchant, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(expense_id: str, created: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description=(
                "Expense not found, recorded as new" if created
                else "Expense updated"
            ),
            details={"created": created},
            is_user_action=True,
        )

    @staticmethod
    def ledger_seeded(record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_SEEDED,
            entity_type="ledger",
            description=f"Empty ledger seeded with {record_count} example records",
            details={"record_count": record_count},
        )

    @staticmethod
    def occurrence_materialized(
        occurrence_id: str,
        template_id: str,
        due_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_MATERIALIZED,
            entity_type="expense",
            entity_id=occurrence_id,
            description=f"Recurring expense generated for {due_date}",
            details={"template_id": template_id, "due_date": due_date},
        )

    @staticmethod
    def category_added(name: str, total: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=name,
            description=f"Category added: {name}",
            details={"category_count": total},
            is_user_action=True,
        )

    @staticmethod
    def category_limit_reached(name: str, tier: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_LIMIT_REACHED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=name,
            description="Category limit reached for current tier",
            details={"tier": tier},
            is_user_action=True,
        )

    @staticmethod
    def category_renamed(
        old_name: str,
        new_name: str,
        expenses_updated: int,
        budgets_updated: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RENAMED,
            entity_type="category",
            entity_id=new_name,
            description=f"Category renamed: {old_name} -> {new_name}",
            details={
                "old_name": old_name,
                "new_name": new_name,
                "expenses_updated": expenses_updated,
                "budgets_updated": budgets_updated,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_removed(name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_REMOVED,
            entity_type="category",
            entity_id=name,
            description=f"Category removed: {name}",
            is_user_action=True,
        )

    @staticmethod
    def budget_upserted(category: str, amount: str, created: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPSERTED,
            entity_type="budget",
            entity_id=category,
            description=f"Budget {'set' if created else 'changed'}: {category} = {amount}",
            details={"amount": amount, "created": created},
            is_user_action=True,
        )

    @staticmethod
    def profile_created(profile_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CREATED,
            entity_type="profile",
            entity_id=profile_id,
            description="Profile created at login",
            is_user_action=True,
        )

    @staticmethod
    def profile_updated(profile_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="profile",
            entity_id=profile_id,
            description=f"Profile updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def profile_cleared() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CLEARED,
            entity_type="profile",
            description="Profile removed at logout",
            is_user_action=True,
        )

    @staticmethod
    def trial_started(profile_id: str, started_at: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRIAL_STARTED,
            entity_type="profile",
            entity_id=profile_id,
            description="Trial started",
            details={"trial_start_date": started_at},
            is_user_action=True,
        )

    @staticmethod
    def trial_expired(profile_id: str, elapsed_days: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRIAL_EXPIRED,
            entity_type="profile",
            entity_id=profile_id,
            description=f"Trial expired after {elapsed_days} days",
            details={"elapsed_days": elapsed_days},
        )

    @staticmethod
    def subscribed(profile_id: str, previous_status: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIBED,
            entity_type="profile",
            entity_id=profile_id,
            description="Premium subscription activated",
            details={"previous_status": previous_status},
            is_user_action=True,
        )

    @staticmethod
    def ai_interaction(profile_id: str, allowed: bool, count: int, tier: str) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.AI_INTERACTION_CONSUMED if allowed
                else AuditEventType.AI_INTERACTION_DENIED
            ),
            severity=AuditSeverity.INFO if allowed else AuditSeverity.WARNING,
            entity_type="profile",
            entity_id=profile_id,
            description=(
                f"AI interaction {'allowed' if allowed else 'denied'} ({count} used)"
            ),
            details={"ai_interaction_count": count, "tier": tier},
            is_user_action=True,
        )

    @staticmethod
    def storage_failed(operation: str, key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="blob",
            entity_id=key,
            description=f"Storage write failed during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def partial_cascade_failed(
        old_name: str,
        new_name: str,
        committed: list[str],
        failed_key: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_CASCADE_FAILED,
            severity=AuditSeverity.CRITICAL,
            entity_type="category",
            entity_id=old_name,
            description=f"Rename {old_name} -> {new_name} left stores inconsistent",
            error_message=error_message,
            details={
                "old_name": old_name,
                "new_name": new_name,
                "committed": committed,
                "failed_key": failed_key,
            },
        )
