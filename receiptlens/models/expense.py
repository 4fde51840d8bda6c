"""
Core Data Models for the ReceiptLens Ledger

These models define the strict schemas for every record the ledger
persists. They are designed to:
1. Enforce type safety when decoding stored JSON blobs
2. Keep the wire format of the web app (snake_case keys, numbers)
3. Reject records that violate the template/occurrence invariant

DESIGN DECISION: Amounts are Decimal in memory but plain JSON numbers on
disk, so blobs written by older app versions stay readable.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)


Money = Annotated[
    Decimal,
    Field(ge=0),
    PlainSerializer(float, return_type=float, when_used="json"),
]


def new_record_id() -> str:
    """Opaque unique identifier for ledger records."""
    return str(uuid4())


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class RecurrenceFrequency(str, Enum):
    """How often a recurring template comes due."""
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class LineItem(BaseModel):
    """A single line on a receipt."""
    model_config = ConfigDict(str_strip_whitespace=True)

    item: str = Field(
        default="",
        max_length=200,
        description="Label printed on the receipt (blank while being typed in)"
    )
    price: Money
    quantity: Money = Decimal("1")


class ExpenseDraft(BaseModel):
    """
    The user-editable part of an expense.

    This is what the review form (or a validated AI draft) hands to
    `Ledger.create`. Identity and timestamps are assigned by the ledger.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    merchant_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Where the money was spent"
    )
    amount: Money
    currency: str = Field(
        default="BRL",
        min_length=3,
        max_length=3,
    )
    category: str = Field(
        ...,
        min_length=1,
        description="Category name, current or former"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date the expense applies to"
    )
    ai_summary: str = Field(
        default="",
        max_length=1000,
        description="Short note, usually written by the assistant"
    )
    receipt_image_url: Optional[str] = None
    line_items: Optional[list[LineItem]] = None

    # Recurrence
    is_recurring: bool = False
    recurrence_frequency: Optional[RecurrenceFrequency] = None
    recurrence_end_date: Optional[dt.date] = None
    parent_id: Optional[str] = Field(
        default=None,
        description="Template id, present only on generated occurrences"
    )

    @model_validator(mode='before')
    @classmethod
    def clear_recurrence_when_not_recurring(cls, data: Any) -> Any:
        """
        Recurrence settings only mean something on a template.

        The web form keeps 'Monthly' and an end date around on every
        record, so they are dropped here instead of rejected.
        """
        if isinstance(data, dict) and not data.get("is_recurring"):
            data = {
                **data,
                "recurrence_frequency": None,
                "recurrence_end_date": None,
            }
        return data

    @field_validator('recurrence_end_date', 'parent_id', 'receipt_image_url', mode='before')
    @classmethod
    def blank_as_missing(cls, v: Any) -> Any:
        """The web app stores '' for optional fields it never filled."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_recurrence_role(self) -> 'ExpenseDraft':
        """A record is a template or an occurrence, never both."""
        if self.is_recurring and self.parent_id:
            raise ValueError("A recurring template cannot have a parent_id")
        return self

    @property
    def is_template(self) -> bool:
        return self.is_recurring and self.parent_id is None

    @property
    def is_occurrence(self) -> bool:
        return self.parent_id is not None


class Expense(ExpenseDraft):
    """A persisted ledger record."""

    id: str = Field(
        default_factory=new_record_id,
        description="Unique record ID"
    )
    user_id: str = Field(
        default="local_user",
        description="Owner of the record"
    )
    created_at: dt.datetime = Field(
        default_factory=utc_now,
        description="When the record was created (immutable)"
    )


class Budget(BaseModel):
    """Monthly spending ceiling for one category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    category: str = Field(
        ...,
        min_length=1,
        description="Category name (natural key)"
    )
    amount: Money


# =============================================================================
# AI DRAFT MODELS
# =============================================================================

class ReceiptDraft(BaseModel):
    """
    Structured data suggested by the receipt-parsing service.

    CRITICAL: This is PROPOSED data, NOT verified.
    All fields are optional because the model might miss them, and
    amounts are unconstrained so validation can report bad values
    instead of the parser silently dropping them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    merchant_name: Optional[str] = None
    transaction_date: Optional[dt.date] = None
    total_amount: Optional[Decimal] = None
    currency: str = "BRL"
    category: Optional[str] = None
    line_items: list[LineItem] = Field(default_factory=list)
    summary_note: str = ""


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_permitted', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage draft validation.

    Stage 1: Schema validation (required fields, permitted category)
    Stage 2: Semantic validation (dates, amounts, line item totals)
    """

    validated_at: dt.datetime = Field(
        default_factory=utc_now
    )
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
