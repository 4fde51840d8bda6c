"""
Main Engine Facade for ReceiptLens

This module ties the components together and is the only surface the
presentation layer talks to.

Session start:
1. Recurrence engine runs once against the ledger
2. A stale trial is expired

After that, every UI action calls exactly one method here, which does
one read-modify-write against the record store and returns the
updated view.

DESIGN DECISION: Expected refusals (category limit, AI quota) and
storage failures are kept apart so the UI can tell "you can't do that"
from "something is broken".
"""

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Iterator, Optional, Union

from pydantic import BaseModel, Field

from receiptlens.agents import ChatHistory, GeminiReceiptParser, ReceiptParser
from receiptlens.audit import AuditLogger, configure_logging
from receiptlens.config import AppSettings, get_settings
from receiptlens.ledger import Ledger, RecurrenceEngine
from receiptlens.models.audit import AuditEventBuilder
from receiptlens.models.expense import (
    Budget,
    Expense,
    ExpenseDraft,
    ReceiptDraft,
    ValidationResult,
)
from receiptlens.models.profile import UserProfile
from receiptlens.registry import BudgetRegistry, CategoryRegistry
from receiptlens.services.storage import (
    ConcurrentModificationError,
    InMemoryRecordStore,
    JsonFileRecordStore,
    RecordStore,
    StorageUnavailable,
)
from receiptlens.subscription import ProfileRepository, SubscriptionLifecycle
from receiptlens.validation import DraftValidator


class SessionState(BaseModel):
    """What the UI needs right after start-up."""

    profile: Optional[UserProfile] = None
    expenses: list[Expense] = Field(default_factory=list)
    new_occurrences: list[Expense] = Field(default_factory=list)


class ScanOutcome(BaseModel):
    """Result of one receipt scan."""
    allowed: bool = Field(
        ...,
        description="False when the AI quota blocked the scan"
    )
    profile: Optional[UserProfile] = None
    draft: Optional[ReceiptDraft] = None
    validation: Optional[ValidationResult] = None
    message: str = ""


class ExpenseTracker:
    """
    The ledger and domain-rules engine.

    Components are reachable as properties for callers that need the
    finer-grained API (e.g. `tracker.ledger.get(id)`).
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        receipt_parser: Optional[ReceiptParser] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()
        self._receipt_parser = receipt_parser

        self._profiles = ProfileRepository(store, self._settings, self._audit)
        self._lifecycle = SubscriptionLifecycle(self._profiles, self._settings, self._audit)
        self._ledger = Ledger(store, self._settings, self._audit)
        self._budgets = BudgetRegistry(store, self._audit)
        self._categories = CategoryRegistry(
            store,
            lifecycle=self._lifecycle,
            ledger=self._ledger,
            budgets=self._budgets,
            settings=self._settings,
            audit_logger=self._audit,
        )
        self._recurrence = RecurrenceEngine(self._ledger, self._settings, self._audit)
        self._validator = DraftValidator(self._settings)
        self._chat_history = ChatHistory(store)

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def budgets(self) -> BudgetRegistry:
        return self._budgets

    @property
    def categories(self) -> CategoryRegistry:
        return self._categories

    @property
    def profiles(self) -> ProfileRepository:
        return self._profiles

    @property
    def lifecycle(self) -> SubscriptionLifecycle:
        return self._lifecycle

    @property
    def recurrence(self) -> RecurrenceEngine:
        return self._recurrence

    @property
    def validator(self) -> DraftValidator:
        return self._validator

    @property
    def chat_history(self) -> ChatHistory:
        return self._chat_history

    @contextmanager
    def _storage_guard(self, operation: str) -> Iterator[None]:
        """Audit storage failures, then let them propagate."""
        try:
            yield
        except (StorageUnavailable, ConcurrentModificationError) as e:
            self._audit.log(
                AuditEventBuilder.storage_failed(operation, getattr(e, "key", ""), str(e))
            )
            raise

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def start_session(
        self,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> SessionState:
        """Run the once-per-session jobs and return the initial view."""
        with self._storage_guard("start_session"):
            new_occurrences = self._recurrence.run(today=today, now=now)
            profile = self._profiles.get()
            if profile is not None:
                profile = self._lifecycle.check_trial_expiry(profile, now=now)
            return SessionState(
                profile=profile,
                expenses=self._ledger.list(),
                new_occurrences=new_occurrences,
            )

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    def current_profile(self) -> Optional[UserProfile]:
        return self._profiles.get()

    def login(self, email: str = "user@example.com") -> UserProfile:
        with self._storage_guard("login"):
            return self._profiles.login(email=email)

    def complete_onboarding(self, name: str) -> Optional[UserProfile]:
        with self._storage_guard("complete_onboarding"):
            return self._profiles.complete_onboarding(name)

    def logout(self) -> None:
        with self._storage_guard("logout"):
            self._profiles.clear()

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def list_expenses(self) -> list[Expense]:
        with self._storage_guard("list_expenses"):
            return self._ledger.list()

    def create_expense(self, draft: ExpenseDraft) -> Expense:
        with self._storage_guard("create_expense"):
            return self._ledger.create(draft)

    def update_expense(self, expense: Expense) -> Expense:
        with self._storage_guard("update_expense"):
            return self._ledger.update(expense)

    # -------------------------------------------------------------------------
    # Categories & budgets
    # -------------------------------------------------------------------------

    def list_categories(self) -> list[str]:
        return self._categories.list()

    def can_add_category(self) -> bool:
        return self._categories.can_add()

    def add_category(self, name: str) -> list[str]:
        with self._storage_guard("add_category"):
            return self._categories.add(name)

    def remove_category(self, name: str) -> list[str]:
        with self._storage_guard("remove_category"):
            return self._categories.remove(name)

    def rename_category(self, old_name: str, new_name: str) -> list[str]:
        with self._storage_guard("rename_category"):
            return self._categories.rename(old_name, new_name)

    def list_budgets(self) -> list[Budget]:
        return self._budgets.list()

    def upsert_budget(
        self,
        category: str,
        amount: Union[Decimal, float, str],
    ) -> list[Budget]:
        with self._storage_guard("upsert_budget"):
            return self._budgets.upsert(category, amount)

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    def check_trial_expiry(self, now: Optional[datetime] = None) -> Optional[UserProfile]:
        profile = self._profiles.get()
        if profile is None:
            return None
        with self._storage_guard("check_trial_expiry"):
            return self._lifecycle.check_trial_expiry(profile, now=now)

    def start_trial(self, now: Optional[datetime] = None) -> Optional[UserProfile]:
        profile = self._profiles.get()
        if profile is None:
            return None
        with self._storage_guard("start_trial"):
            return self._lifecycle.start_trial(profile, now=now)

    def subscribe(self) -> Optional[UserProfile]:
        profile = self._profiles.get()
        if profile is None:
            return None
        with self._storage_guard("subscribe"):
            return self._lifecycle.subscribe(profile)

    def try_consume_ai_interaction(self) -> tuple[Optional[UserProfile], bool]:
        """Logged-out users are always denied."""
        profile = self._profiles.get()
        if profile is None:
            return None, False
        with self._storage_guard("consume_ai_interaction"):
            return self._lifecycle.try_consume_ai_interaction(profile)

    # -------------------------------------------------------------------------
    # Receipt intake
    # -------------------------------------------------------------------------

    async def scan_receipt(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
        today: Optional[date] = None,
    ) -> ScanOutcome:
        """
        Spend one AI interaction on parsing a receipt.

        The draft is validated but NOT saved. The user reviews it and
        calls `create_expense` with `draft_to_expense(...)`.
        """
        profile, allowed = self.try_consume_ai_interaction()
        if not allowed:
            return ScanOutcome(
                allowed=False,
                profile=profile,
                message="AI interaction limit reached for your plan",
            )

        if self._receipt_parser is None:
            self._receipt_parser = GeminiReceiptParser()

        categories = self._categories.list()
        draft = await self._receipt_parser.parse(image_bytes, mime_type, categories)
        result = self._validator.validate(draft, categories, today=today)
        return ScanOutcome(
            allowed=True,
            profile=profile,
            draft=draft,
            validation=result,
            message=self._validator.get_user_friendly_summary(result),
        )

    def draft_to_expense(self, draft: ReceiptDraft, **overrides) -> ExpenseDraft:
        return self._validator.to_expense_draft(draft, **overrides)


def create_engine(
    use_storage: bool = True,
    storage_dir: Optional[str] = None,
    receipt_parser: Optional[ReceiptParser] = None,
) -> ExpenseTracker:
    """
    Factory function to create a fully wired engine.

    Args:
        use_storage: Persist to JSON files. Set to False for an
            in-memory session that forgets everything on exit.
        storage_dir: Overrides the configured storage directory
        receipt_parser: Overrides the Gemini-backed parser
    """
    settings = get_settings().app
    configure_logging(settings.log_level)

    if use_storage:
        store: RecordStore = JsonFileRecordStore(storage_dir or settings.storage_dir)
    else:
        store = InMemoryRecordStore()

    return ExpenseTracker(
        store,
        settings=settings,
        audit_logger=AuditLogger(),
        receipt_parser=receipt_parser,
    )
