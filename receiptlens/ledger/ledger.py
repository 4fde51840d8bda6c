"""
Ledger

Owns the `expenses` blob: every transaction the user recorded plus the
occurrences generated from recurring templates, newest first.

Every mutation goes through `apply`, which reads the blob, hands the
decoded records to a transform and writes the result back in a single
step. Nothing is ever deleted here.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional, Sequence

from receiptlens.audit import AuditLogger
from receiptlens.config import AppSettings, get_settings
from receiptlens.models.audit import AuditEventBuilder
from receiptlens.models.expense import (
    Expense,
    ExpenseDraft,
    LineItem,
    new_record_id,
    utc_now,
)
from receiptlens.services.storage import JsonBlobRepository, RecordStore


LedgerTransform = Callable[[list[Expense]], Optional[list[Expense]]]


def _example_records(currency: str, now: datetime) -> list[Expense]:
    """A few sample transactions so a brand-new ledger isn't empty."""
    today = now.date()
    return [
        Expense(
            id=new_record_id(),
            created_at=now,
            merchant_name="Starbucks",
            amount=Decimal("18.50"),
            category="Food & Dining",
            date=today,
            ai_summary="Café da manhã",
            currency=currency,
            line_items=[LineItem(item="Latte", price=Decimal("18.50"), quantity=1)],
        ),
        Expense(
            id=new_record_id(),
            created_at=now - timedelta(days=1),
            merchant_name="Uber",
            amount=Decimal("32.40"),
            category="Transport",
            date=today - timedelta(days=1),
            ai_summary="Corrida para o trabalho",
            currency=currency,
        ),
        Expense(
            id=new_record_id(),
            created_at=now - timedelta(days=2),
            merchant_name="Pão de Açúcar",
            amount=Decimal("145.99"),
            category="Shopping",
            date=today - timedelta(days=2),
            ai_summary="Compras semanais",
            currency=currency,
        ),
    ]


def has_occurrence(
    expenses: Sequence[Expense],
    template_id: str,
    due_date: date,
) -> bool:
    """
    True when the template already has a record dated `due_date`.

    Matches a generated occurrence (`parent_id == template_id`) as well
    as the template itself sitting on that date.
    """
    return any(
        expense.date == due_date
        and (expense.parent_id == template_id or expense.id == template_id)
        for expense in expenses
    )


class Ledger(JsonBlobRepository):
    """Collection of expense records, most recently created first."""

    key = "expenses"

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        user_id: str = "local_user",
    ):
        super().__init__(store)
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()
        self._user_id = user_id

    @staticmethod
    def _encode(expenses: Sequence[Expense]) -> list[dict]:
        return [e.model_dump(mode="json", exclude_none=True) for e in expenses]

    def _load_all(self):
        """
        Read and decode the blob, seeding it on first access.

        Returns (snapshot, expenses, unreadable). `unreadable` holds the
        raw entries that failed validation; they are written back as-is.
        """
        snapshot = self._snapshot()
        decoded = self._partition_list(snapshot.value, Expense)
        if decoded is not None:
            return snapshot, decoded[0], decoded[1]

        if not self._settings.seed_example_data:
            return snapshot, [], []

        expenses = _example_records(self._settings.default_currency, utc_now())
        self._write(self._encode(expenses), snapshot)
        self._audit.log(AuditEventBuilder.ledger_seeded(len(expenses)))
        return self._snapshot(), expenses, []

    def _load(self):
        snapshot, expenses, _ = self._load_all()
        return snapshot, expenses

    def apply(self, transform: LedgerTransform) -> list[Expense]:
        """
        Run one read-modify-write cycle.

        `transform` receives the current records and returns the new
        full list, or None to leave the blob untouched. Stored entries
        that failed to decode are kept as they are.

        Returns:
            The records as persisted after the cycle
        """
        snapshot, expenses, unreadable = self._load_all()
        updated = transform(list(expenses))
        if updated is None:
            return expenses
        # Entries we could not decode stay in the blob, after the rest
        self._write(self._encode(updated) + unreadable, snapshot)
        return updated

    def create(self, draft: ExpenseDraft, now: Optional[datetime] = None) -> Expense:
        """Assign identity and creation time, then prepend."""
        expense = Expense(
            **draft.model_dump(include=set(ExpenseDraft.model_fields)),
            id=new_record_id(),
            user_id=self._user_id,
            created_at=now or utc_now(),
        )
        self.apply(lambda expenses: [expense] + expenses)
        self._audit.log(
            AuditEventBuilder.expense_created(
                expense.id, expense.merchant_name, str(expense.amount)
            )
        )
        return expense

    def update(self, expense: Expense) -> Expense:
        """
        Replace the record with the same id, or create it if unknown.

        `created_at` and `user_id` are immutable: the stored values win
        over whatever the caller passes.
        """
        replaced: Optional[Expense] = None

        def replace(expenses: list[Expense]) -> Optional[list[Expense]]:
            nonlocal replaced
            for index, current in enumerate(expenses):
                if current.id == expense.id:
                    replaced = expense.model_copy(
                        update={
                            "created_at": current.created_at,
                            "user_id": current.user_id,
                        }
                    )
                    expenses[index] = replaced
                    return expenses
            return None

        self.apply(replace)
        if replaced is None:
            created = self.create(expense)
            self._audit.log(AuditEventBuilder.expense_updated(created.id, created=True))
            return created

        self._audit.log(AuditEventBuilder.expense_updated(replaced.id, created=False))
        return replaced

    def rename_category_references(self, old_name: str, new_name: str) -> int:
        """
        Point every record filed under `old_name` at `new_name`.

        Done in one write. Returns how many records changed; nothing is
        written when none match.
        """
        renamed = 0

        def rename(expenses: list[Expense]) -> Optional[list[Expense]]:
            nonlocal renamed
            result = []
            for expense in expenses:
                if expense.category == old_name:
                    expense = expense.model_copy(update={"category": new_name})
                    renamed += 1
                result.append(expense)
            return result if renamed else None

        self.apply(rename)
        return renamed

    def has_occurrence(self, template_id: str, due_date: date) -> bool:
        return has_occurrence(self._load()[1], template_id, due_date)

    def get(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self._load()[1] if e.id == expense_id), None)

    def list(self) -> list[Expense]:
        """All records, most recently created first."""
        return self._load()[1]
