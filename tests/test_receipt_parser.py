"""
Tests for the receipt parsing agent

No real API calls: the Gemini model is replaced with a stub that
returns canned text.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from receiptlens.agents import (
    GeminiReceiptParser,
    ReceiptParseError,
    build_draft,
    extract_json_object,
)
from receiptlens.registry import DEFAULT_CATEGORIES


PERMITTED = list(DEFAULT_CATEGORIES)


class StubResponse:
    def __init__(self, text):
        self.text = text


class StubModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text):
        self._text = text
        self.calls = []

    async def generate_content_async(self, parts):
        self.calls.append(parts)
        return StubResponse(self._text)


RECEIPT_JSON = {
    "merchant_name": "Drogasil",
    "transaction_date": "2024-02-19",
    "total_amount": 57.8,
    "currency": "BRL",
    "category": "Health",
    "line_items": [{"item": "Dipirona", "price": 12.9, "quantity": 2}],
    "summary_note": "Farmácia",
}


class TestExtractJson:

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_object_wrapped_in_prose(self):
        text = 'Here you go:\n```json\n{"merchant_name": "X"}\n```\nThanks!'
        assert extract_json_object(text) == {"merchant_name": "X"}

    def test_no_object(self):
        with pytest.raises(ReceiptParseError):
            extract_json_object("I could not read this receipt.")

    def test_malformed_object(self):
        with pytest.raises(ReceiptParseError):
            extract_json_object('{"merchant_name": }')


class TestBuildDraft:

    def test_valid_data(self):
        draft = build_draft(RECEIPT_JSON, PERMITTED)
        assert draft.merchant_name == "Drogasil"
        assert draft.transaction_date == date(2024, 2, 19)
        assert draft.total_amount == Decimal("57.8")
        assert draft.line_items[0].quantity == Decimal("2")

    def test_unknown_category_coerced_to_other(self):
        with capture_logs() as logs:
            draft = build_draft({**RECEIPT_JSON, "category": "Pharmacy"}, PERMITTED)
        assert draft.category == "Other"
        assert logs[0]["event"] == "receipt_category_not_permitted"

    def test_unknown_category_without_other(self):
        draft = build_draft({**RECEIPT_JSON, "category": "Pharmacy"}, ["Food", "Health"])
        assert draft.category == "Health"

    def test_bad_fields_are_dropped(self):
        data = {**RECEIPT_JSON, "transaction_date": "yesterday-ish", "total_amount": "lots"}
        with capture_logs() as logs:
            draft = build_draft(data, PERMITTED)
        assert draft.transaction_date is None
        assert draft.total_amount is None
        assert draft.merchant_name == "Drogasil"
        dropped = [e for e in logs if e["event"] == "receipt_fields_dropped"]
        assert dropped[0]["fields"] == ["total_amount", "transaction_date"]

    def test_nulls_are_ignored(self):
        draft = build_draft({"merchant_name": None, "total_amount": 10}, PERMITTED)
        assert draft.merchant_name is None
        assert draft.currency == "BRL"


class TestGeminiReceiptParser:

    def test_parse_sends_image_and_categories(self):
        model = StubModel(json.dumps(RECEIPT_JSON))
        parser = GeminiReceiptParser(model=model)

        draft = asyncio.run(parser.parse(b"\xff\xd8jpeg", "image/jpeg", PERMITTED))

        assert draft.category == "Health"
        image_part, prompt = model.calls[0]
        assert image_part == {"mime_type": "image/jpeg", "data": b"\xff\xd8jpeg"}
        assert "Food & Dining" in prompt

    def test_parse_without_json_raises(self):
        parser = GeminiReceiptParser(model=StubModel("Sorry, too blurry."))
        with pytest.raises(ReceiptParseError):
            asyncio.run(parser.parse(b"img", "image/png", PERMITTED))
