"""Typed shapes for AI-extracted documents and their lenient JSON coercion.

The model is asked for a strict schema, but fields still go missing or come
back with the wrong type; coercion fills defaults instead of failing.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from cofrinho.domain.models import TransactionType, parse_timestamp, to_decimal


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _optional_date(value: Any) -> dt.date | None:
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


@dataclass
class ExtractedTransaction:
    """A transaction read from a receipt photo or a statement page."""

    description: str
    amount: Decimal
    category: str
    date: dt.date | None = None
    type: TransactionType | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ExtractedTransaction:
        raw_type = data.get("type")
        return cls(
            description=_text(data.get("description")),
            amount=abs(to_decimal(data.get("amount"), Decimal("0"))),
            category=_text(data.get("category")),
            date=_optional_date(data.get("date")),
            type=raw_type if raw_type in ("income", "expense") else None,
        )


@dataclass
class ExtractedReceiptItem:
    name: str
    category: str
    price: Decimal
    quantity: Decimal

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ExtractedReceiptItem:
        quantity = to_decimal(data.get("quantity"), Decimal("0"))
        return cls(
            name=_text(data.get("name")),
            category=_text(data.get("category")),
            price=to_decimal(data.get("price"), Decimal("0")),
            quantity=quantity if quantity > 0 else Decimal("1"),
        )


@dataclass
class ItemizedReceipt:
    """A grocery receipt with every purchased line."""

    merchant: str
    total: Decimal
    date: dt.date | None = None
    items: list[ExtractedReceiptItem] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ItemizedReceipt:
        raw_items = data.get("items")
        items = [ExtractedReceiptItem.from_json(item) for item in raw_items or [] if isinstance(item, dict)]
        return cls(
            merchant=_text(data.get("merchant")),
            total=to_decimal(data.get("total"), Decimal("0")),
            date=_optional_date(data.get("date")),
            items=items,
        )
