"""
Receipt Parsing Agent

DESIGN DECISION: The AI service is a collaborator, not part of the
ledger. It receives an image and the user's category names, and
returns a ReceiptDraft. The draft is a SUGGESTION; it goes through
DraftValidator and the review form before anything reaches the ledger.

BOUNDARIES:
- CAN: Read the receipt and suggest merchant, date, amount, items
- CAN: Pick a category, but only from the permitted names
- CANNOT: Write to the ledger
- CANNOT: Invent a category the user doesn't have
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from receiptlens.config import GeminiSettings, get_settings
from receiptlens.models.expense import ReceiptDraft


logger = structlog.get_logger(__name__)

FALLBACK_CATEGORY = "Other"


class ReceiptParseError(Exception):
    """The service answered, but no receipt data could be recovered."""
    pass


class ReceiptParser(ABC):
    """Contract for anything that turns a receipt image into a draft."""

    @abstractmethod
    async def parse(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: Sequence[str],
    ) -> ReceiptDraft:
        """
        Extract a draft from a receipt image.

        Args:
            image_bytes: Raw image data
            mime_type: e.g. 'image/jpeg'
            categories: Names the draft's category must come from

        Raises:
            ReceiptParseError: Nothing usable was extracted
        """
        pass


def extract_json_object(text: str) -> dict:
    """Pull the outermost JSON object out of a model reply."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ReceiptParseError("Response contained no JSON object")
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ReceiptParseError(f"Response JSON is malformed: {e}") from e
    if not isinstance(data, dict):
        raise ReceiptParseError("Response JSON is not an object")
    return data


def build_draft(data: dict[str, Any], categories: Sequence[str]) -> ReceiptDraft:
    """
    Build a draft from the model's JSON, dropping fields it got wrong.

    A bad date or amount leaves that field empty for the user to fill
    in rather than losing the whole receipt.
    """
    fields = {key: value for key, value in data.items() if value is not None}

    category = fields.get("category")
    if category is not None and category not in categories:
        fallback = FALLBACK_CATEGORY if FALLBACK_CATEGORY in categories else None
        if fallback is None and categories:
            fallback = categories[-1]
        logger.warning(
            "receipt_category_not_permitted",
            suggested=category,
            replaced_with=fallback,
        )
        fields["category"] = fallback

    try:
        return ReceiptDraft.model_validate(fields)
    except ValidationError as e:
        bad_fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        logger.warning("receipt_fields_dropped", fields=sorted(bad_fields))
        for name in bad_fields:
            fields.pop(name, None)

    try:
        return ReceiptDraft.model_validate(fields)
    except ValidationError as e:
        raise ReceiptParseError(f"Receipt data is unusable: {e}") from e


class GeminiReceiptParser(ReceiptParser):
    """Receipt parsing backed by a Gemini multimodal model."""

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
    ):
        if model is None:
            settings = settings or get_settings().gemini
            genai.configure(api_key=settings.api_key)
            model = genai.GenerativeModel(
                model_name=settings.model_name,
                generation_config={
                    "temperature": settings.temperature,
                    "max_output_tokens": settings.max_tokens,
                    "response_mime_type": "application/json",
                },
            )
        self._model = model

    @staticmethod
    def _prompt(categories: Sequence[str]) -> str:
        return f"""You are reading a shopping receipt for a personal expense tracker.

Extract the receipt into JSON.

Allowed categories: {', '.join(categories)}

Respond with ONLY a JSON object in this exact format:
{{"merchant_name": "Store", "transaction_date": "YYYY-MM-DD", "total_amount": 0.0,
  "currency": "BRL", "category": "one of the allowed categories",
  "line_items": [{{"item": "name", "price": 0.0, "quantity": 1}}],
  "summary_note": "one short sentence"}}

Use null for anything you cannot read. Never invent values."""

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, parts: list) -> str:
        response = await self._model.generate_content_async(parts)
        return response.text

    async def parse(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: Sequence[str],
    ) -> ReceiptDraft:
        parts = [
            {"mime_type": mime_type, "data": image_bytes},
            self._prompt(categories),
        ]
        text = await self._generate(parts)
        draft = build_draft(extract_json_object(text), categories)
        logger.info(
            "receipt_parsed",
            merchant=draft.merchant_name,
            has_amount=draft.total_amount is not None,
            line_items=len(draft.line_items),
        )
        return draft
