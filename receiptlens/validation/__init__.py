"""Draft validation package."""

from receiptlens.validation.validator import DraftValidator

__all__ = ["DraftValidator"]
