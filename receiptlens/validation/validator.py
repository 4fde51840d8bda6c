"""
Two-Stage Draft Validation

The receipt-parsing service returns a best-effort suggestion. Before
it can become an expense it goes through the same checks as anything a
user typed:

STAGE 1 - SCHEMA VALIDATION:
- Amount present and not negative
- Merchant present
- Category is one of the permitted names

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- Line items that don't add up to the total

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from receiptlens.config import AppSettings, get_settings
from receiptlens.models.expense import (
    ExpenseDraft,
    ReceiptDraft,
    ValidationIssue,
    ValidationResult,
)


class DraftValidator:
    """Validates receipt drafts through a two-stage pipeline."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        draft: ReceiptDraft,
        permitted_categories: Sequence[str],
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if draft.total_amount is None:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="missing",
                message="Total amount was not found on the receipt",
                severity="error",
                suggested_fix="Enter the amount manually",
            ))
        elif draft.total_amount < 0:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="invalid_value",
                message="Total amount cannot be negative",
                severity="error",
                suggested_fix="Check if the amount was read correctly",
            ))

        if not draft.merchant_name:
            issues.append(ValidationIssue(
                field="merchant_name",
                issue_type="missing",
                message="Merchant name was not found on the receipt",
                severity="warning",  # Warning because user can manually enter
                suggested_fix="You'll need to enter the merchant manually",
            ))

        if draft.category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="No category was suggested",
                severity="warning",
                suggested_fix="Pick a category before saving",
            ))
        elif draft.category not in permitted_categories:
            issues.append(ValidationIssue(
                field="category",
                issue_type="not_permitted",
                message=f"Category '{draft.category}' is not one of your categories",
                severity="error",
                suggested_fix="Pick one of your existing categories",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        draft: ReceiptDraft,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        max_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if draft.transaction_date and draft.transaction_date > max_date:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"Receipt date ({draft.transaction_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        max_amount = Decimal(str(self._settings.max_expense_amount))
        if draft.total_amount and draft.total_amount > max_amount:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="suspicious_value",
                message=f"Amount ({draft.total_amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if draft.line_items and draft.total_amount is not None:
            items_total = sum(
                (item.price * item.quantity for item in draft.line_items),
                Decimal("0"),
            )
            # One cent per item of rounding slack
            tolerance = Decimal("0.01") * len(draft.line_items)
            if abs(items_total - draft.total_amount) > tolerance:
                issues.append(ValidationIssue(
                    field="line_items",
                    issue_type="inconsistent",
                    message=(
                        f"Line items add up to {items_total:.2f}, "
                        f"total is {draft.total_amount:.2f}"
                    ),
                    severity="warning",
                    suggested_fix="Discounts, tips or taxes may be missing from the items",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        draft: ReceiptDraft,
        permitted_categories: Sequence[str],
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Stage 2 only runs when stage 1 found no errors.
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(draft, permitted_categories)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                draft, today or date.today()
            )
            all_issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

    def to_expense_draft(
        self,
        draft: ReceiptDraft,
        today: Optional[date] = None,
        **overrides: Any,
    ) -> ExpenseDraft:
        """
        Pre-fill an expense from a receipt draft.

        `overrides` carries what the user typed in the review form.
        Missing date defaults to today and missing category to 'Other';
        anything else missing fails ExpenseDraft validation.

        Raises:
            pydantic.ValidationError: The merged data is not a valid expense
        """
        fields: dict[str, Any] = {
            "merchant_name": draft.merchant_name or "",
            "amount": draft.total_amount,
            "currency": draft.currency or self._settings.default_currency,
            "category": draft.category or "Other",
            "date": draft.transaction_date or today or date.today(),
            "ai_summary": draft.summary_note,
            "line_items": draft.line_items or None,
        }
        fields.update(overrides)
        return ExpenseDraft.model_validate(fields)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text shown above the review form."""
        if result.is_valid and not result.warnings:
            return "✅ All checks passed! Please review the details below."

        lines = []
        if result.has_errors:
            lines.append("❌ Some information needs fixing:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines).strip("\n")
