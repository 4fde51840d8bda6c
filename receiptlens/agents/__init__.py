"""AI collaborator package."""

from receiptlens.agents.history import ChatHistory
from receiptlens.agents.receipt_parser import (
    GeminiReceiptParser,
    ReceiptParseError,
    ReceiptParser,
    build_draft,
    extract_json_object,
)

__all__ = [
    "ChatHistory",
    "GeminiReceiptParser",
    "ReceiptParseError",
    "ReceiptParser",
    "build_draft",
    "extract_json_object",
]
