"""
Recurrence Engine

Materializes the next due occurrence of each recurring template, exactly
once per due date. Runs once per session.

ALGORITHM:
1. Templates are records with is_recurring set and no parent_id
2. Each template yields at most one candidate date for "today":
   - Monthly: this month, same day-of-month, once that day is reached
   - Yearly: this year, same month/day, once that date is reached
   - Weekly: never (deferred, weekly templates are skipped)
3. Candidates past the template's end date are skipped
4. Candidates that already have a record, or that fall on the
   template's own date, are skipped
5. Everything generated in one run is written in one batch

Missed periods are not back-filled: a template only ever produces the
candidate for the current month (or year).
"""

from datetime import date, datetime
from typing import Optional

from receiptlens.audit import AuditLogger
from receiptlens.config import AppSettings, get_settings
from receiptlens.ledger.ledger import Ledger, has_occurrence
from receiptlens.models.audit import AuditEventBuilder
from receiptlens.models.expense import (
    Expense,
    RecurrenceFrequency,
    new_record_id,
    utc_now,
)


_SUMMARY_MAX_LENGTH = 1000


def _same_day_in_year(origin: date, year: int) -> date:
    """Anniversary of `origin` in `year`; 29 February rolls to 1 March."""
    try:
        return origin.replace(year=year)
    except ValueError:
        return date(year, 3, 1)


def candidate_date(template: Expense, today: date) -> Optional[date]:
    """The date this template comes due for `today`, if any."""
    frequency = template.recurrence_frequency

    if frequency == RecurrenceFrequency.MONTHLY:
        if today.day < template.date.day:
            return None
        # today.day >= template day, so this month has that day
        return date(today.year, today.month, template.date.day)

    if frequency == RecurrenceFrequency.YEARLY:
        anniversary = _same_day_in_year(template.date, today.year)
        return anniversary if today >= anniversary else None

    return None


class RecurrenceEngine:
    """Scans the ledger for templates and appends due occurrences."""

    def __init__(
        self,
        ledger: Ledger,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()

    def _occurrence_of(self, template: Expense, due: date, now: datetime) -> Expense:
        summary = f"{self._settings.recurring_summary_prefix}{template.ai_summary}"
        return template.model_copy(
            update={
                "id": new_record_id(),
                "created_at": now,
                "date": due,
                "parent_id": template.id,
                "is_recurring": False,
                "recurrence_frequency": None,
                "recurrence_end_date": None,
                "ai_summary": summary[:_SUMMARY_MAX_LENGTH],
            }
        )

    def due_occurrences(
        self,
        expenses: list[Expense],
        today: date,
        now: Optional[datetime] = None,
    ) -> list[Expense]:
        """Occurrences that should exist for `today` but don't yet."""
        now = now or utc_now()
        generated = []

        for template in expenses:
            if not template.is_template:
                continue

            due = candidate_date(template, today)
            if due is None:
                continue
            if template.recurrence_end_date and due > template.recurrence_end_date:
                continue
            if due == template.date or has_occurrence(expenses, template.id, due):
                continue

            generated.append(self._occurrence_of(template, due, now))

        return generated

    def run(
        self,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> list[Expense]:
        """
        Materialize due occurrences into the ledger.

        Idempotent: a second run on the same day adds nothing.

        Returns:
            The newly created occurrences (empty when nothing was due)
        """
        today = today or date.today()
        generated: list[Expense] = []

        def materialize(expenses: list[Expense]) -> Optional[list[Expense]]:
            generated.extend(self.due_occurrences(expenses, today, now))
            if not generated:
                return None
            # Newest first, the last generated ends up on top
            return list(reversed(generated)) + expenses

        self._ledger.apply(materialize)

        for occurrence in generated:
            self._audit.log(
                AuditEventBuilder.occurrence_materialized(
                    occurrence.id,
                    occurrence.parent_id,
                    occurrence.date.isoformat(),
                )
            )
        return generated
