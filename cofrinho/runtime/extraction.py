"""AI extraction of receipts and statements.

Three tasks, each sending one document (image or PDF) with a fixed prompt
and a JSON response schema:

- ``analyze_receipt_image``: one transaction from a receipt.
- ``analyze_financial_statement``: every transaction on a statement page.
- ``analyze_itemized_receipt``: a grocery receipt with all purchased lines.

Every failure (transport, status, empty answer, malformed JSON) surfaces as
``ExtractionFailed``.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from cofrinho.domain.extracted import ExtractedTransaction, ItemizedReceipt
from cofrinho.runtime.gemini import AIServiceUnavailable, GeminiClient, inline_part, text_part
from cofrinho.runtime.images import prepare_upload
from cofrinho.runtime.logging import get_logger

logger = get_logger(__name__)


class ExtractionFailed(RuntimeError):
    """Raised when a document could not be turned into structured data."""


RECEIPT_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "amount": {"type": "NUMBER"},
        "description": {"type": "STRING"},
        "date": {"type": "STRING", "description": "ISO Date format YYYY-MM-DD"},
        "category": {"type": "STRING"},
    },
    "required": ["amount", "description", "category"],
}

STATEMENT_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "description": {"type": "STRING"},
            "amount": {"type": "NUMBER"},
            "date": {"type": "STRING"},
            "type": {"type": "STRING", "enum": ["income", "expense"]},
            "category": {"type": "STRING"},
        },
        "required": ["description", "amount", "type", "category"],
    },
}

ITEMIZED_RECEIPT_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "merchant": {"type": "STRING"},
        "date": {"type": "STRING", "description": "YYYY-MM-DD"},
        "total": {"type": "NUMBER"},
        "items": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "category": {"type": "STRING"},
                    "price": {"type": "NUMBER"},
                    "quantity": {"type": "NUMBER"},
                },
            },
        },
    },
    "required": ["merchant", "total", "items"],
}

RECEIPT_PROMPT = """Analyze this receipt/document. Extract the total amount, the merchant name (as description), the date (YYYY-MM-DD), and categorize it.
IMPORTANT: Try to fit the transaction into one of these existing categories: [{categories}].
If it strictly does not fit any, suggest a new short category name in Portuguese.
Return JSON."""

STATEMENT_PROMPT = """Analyze this image or document. It is likely a bank statement, credit card bill, or list of transactions.
Extract ALL visible transactions into a list.
For each transaction:
1. Identify date (YYYY-MM-DD). If year is missing, assume current year.
2. Description (Merchant name).
3. Amount (positive number).
4. Type: 'income' (deposits, salaries, positive values in green) or 'expense' (payments, purchases, negative values).
5. Category: Choose best fit from [{expense_categories}] for expenses, or [{income_categories}] for income. If none fit, suggest a new Portuguese name.

Return a JSON Array of objects."""

ITEMIZED_RECEIPT_PROMPT = """Analyze this grocery receipt. Extract the merchant name, date, total amount, and a detailed list of purchased items.
For each item, extract:
- Name (be specific, e.g., "Cerveja Heineken 350ml")
- Category (e.g., "Bebida", "Açougue", "Limpeza", "Hortifruti", "Mercearia")
- Price (total price for the item line)
- Quantity (if available, otherwise 1)

Return JSON."""


async def _extract_json(
    client: GeminiClient,
    data: bytes,
    mime_type: str,
    prompt: str,
    schema: dict[str, Any],
) -> Any:
    upload, upload_mime = prepare_upload(data, mime_type)
    contents = [{"role": "user", "parts": [inline_part(upload, upload_mime), text_part(prompt)]}]
    try:
        response = await client.generate(contents, response_schema=schema)
    except AIServiceUnavailable as e:
        raise ExtractionFailed(str(e)) from e

    if not response.text.strip():
        raise ExtractionFailed("No response from AI")
    try:
        return json.loads(response.text)
    except json.JSONDecodeError as e:
        logger.error("AI returned malformed JSON: %s", e)
        raise ExtractionFailed("AI returned malformed JSON") from e


async def analyze_receipt_image(
    client: GeminiClient,
    data: bytes,
    mime_type: str,
    categories: Sequence[str],
) -> ExtractedTransaction:
    prompt = RECEIPT_PROMPT.format(categories=", ".join(categories))
    payload = await _extract_json(client, data, mime_type, prompt, RECEIPT_SCHEMA)
    if not isinstance(payload, dict):
        raise ExtractionFailed("Expected a JSON object for the receipt")
    return ExtractedTransaction.from_json(payload)


async def analyze_financial_statement(
    client: GeminiClient,
    data: bytes,
    mime_type: str,
    income_categories: Sequence[str],
    expense_categories: Sequence[str],
) -> list[ExtractedTransaction]:
    prompt = STATEMENT_PROMPT.format(
        expense_categories=", ".join(expense_categories),
        income_categories=", ".join(income_categories),
    )
    payload = await _extract_json(client, data, mime_type, prompt, STATEMENT_SCHEMA)
    if not isinstance(payload, list):
        return []
    return [ExtractedTransaction.from_json(row) for row in payload if isinstance(row, dict)]


async def analyze_itemized_receipt(client: GeminiClient, data: bytes, mime_type: str) -> ItemizedReceipt:
    payload = await _extract_json(client, data, mime_type, ITEMIZED_RECEIPT_PROMPT, ITEMIZED_RECEIPT_SCHEMA)
    if not isinstance(payload, dict):
        raise ExtractionFailed("Expected a JSON object for the receipt")
    return ItemizedReceipt.from_json(payload)
