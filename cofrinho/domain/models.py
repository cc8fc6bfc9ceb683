"""Data models for transactions, market items, sessions and settings.

Records crossing the storage boundary are plain dicts using the field names
of the hosted document store (``receiptId``, ``photoUrl``, ...). Amounts are
``Decimal`` in memory and JSON numbers on the wire; dates are calendar dates
in memory and ISO-8601 timestamps on the wire.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any, Literal

TransactionType = Literal["income", "expense"]
TRANSACTION_TYPES: tuple[TransactionType, TransactionType] = ("income", "expense")

Theme = Literal["light", "dark", "system"]
THEMES: tuple[str, ...] = ("light", "dark", "system")

ChatRole = Literal["user", "model"]


class Persona(StrEnum):
    """Tone of the spending advisor."""

    FORMAL = "formal"
    SINCERO = "sincero"


def new_id() -> str:
    return str(uuid.uuid4())


def format_timestamp(value: dt.date) -> str:
    """Wire format for dates: midnight UTC ISO-8601 timestamp."""
    return f"{value.isoformat()}T00:00:00.000Z"


def parse_timestamp(value: Any, default: dt.date | None = None) -> dt.date:
    """Read a wire date. Accepts any ISO string starting with YYYY-MM-DD.

    Raises ValueError when the value is unusable and no default is given.
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return dt.date.fromisoformat(value[:10])
        except ValueError:
            pass
    if default is not None:
        return default
    raise ValueError(f"Invalid date value: {value!r}")


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal:
    """Convert a wire number (int/float/str) to Decimal.

    Floats go through ``str`` so 150.1 becomes Decimal("150.1"), not the
    binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        if default is not None:
            return default
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        if default is not None:
            return default
        raise ValueError(f"Invalid amount: {value!r}") from None
    if not result.is_finite():
        if default is not None:
            return default
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def _number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


@dataclass
class Transaction:
    """A single income or expense entry."""

    id: str
    description: str
    amount: Decimal
    type: TransactionType
    category: str
    date: dt.date

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "amount": _number(self.amount),
            "type": self.type,
            "category": self.category,
            "date": format_timestamp(self.date),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Transaction:
        txn_type = record.get("type")
        return cls(
            id=str(record["id"]),
            description=str(record.get("description", "")),
            amount=to_decimal(record.get("amount"), Decimal("0")),
            type="income" if txn_type == "income" else "expense",
            category=str(record.get("category", "")),
            date=parse_timestamp(record.get("date"), dt.date.today()),
        )


@dataclass
class MarketItem:
    """One line of an itemized grocery receipt."""

    id: str
    receipt_id: str
    name: str
    category: str
    price: Decimal  # line total, not unit price
    quantity: Decimal
    unit: str
    date: dt.date
    merchant: str

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "receiptId": self.receipt_id,
            "name": self.name,
            "category": self.category,
            "price": _number(self.price),
            "quantity": _number(self.quantity),
            "unit": self.unit,
            "date": format_timestamp(self.date),
            "merchant": self.merchant,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> MarketItem:
        return cls(
            id=str(record["id"]),
            receipt_id=str(record.get("receiptId") or ""),
            name=str(record.get("name", "")),
            category=str(record.get("category", "")),
            price=to_decimal(record.get("price"), Decimal("0")),
            quantity=to_decimal(record.get("quantity"), Decimal("1")),
            unit=str(record.get("unit") or "un"),
            date=parse_timestamp(record.get("date"), dt.date.today()),
            merchant=str(record.get("merchant", "")),
        )


@dataclass
class User:
    """Session identity. Guests are device-local, everyone else is remote."""

    id: str
    name: str
    email: str | None = None
    photo_url: str | None = None
    is_guest: bool = False

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"id": self.id, "name": self.name, "isGuest": self.is_guest}
        if self.email:
            record["email"] = self.email
        if self.photo_url:
            record["photoUrl"] = self.photo_url
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> User:
        return cls(
            id=str(record["id"]),
            name=str(record.get("name", "")),
            email=record.get("email"),
            photo_url=record.get("photoUrl"),
            is_guest=bool(record.get("isGuest", False)),
        )

    @classmethod
    def guest(cls) -> User:
        return cls(id=f"guest-{new_id()}", name="Convidado", is_guest=True)


@dataclass
class Settings:
    """Theme and category lists. ``None`` means "not set" in partial updates."""

    theme: Theme | None = None
    income_categories: list[str] | None = None
    expense_categories: list[str] | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {}
        if self.theme is not None:
            record["theme"] = self.theme
        if self.income_categories is not None:
            record["incomeCategories"] = list(self.income_categories)
        if self.expense_categories is not None:
            record["expenseCategories"] = list(self.expense_categories)
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> Settings:
        record = record or {}
        theme = record.get("theme")
        income = record.get("incomeCategories")
        expense = record.get("expenseCategories")
        return cls(
            theme=theme if theme in THEMES else None,
            income_categories=[str(c) for c in income] if isinstance(income, list) else None,
            expense_categories=[str(c) for c in expense] if isinstance(expense, list) else None,
        )


@dataclass(frozen=True)
class DashboardStats:
    """Aggregated totals for a set of transactions."""

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


@dataclass(frozen=True)
class ChatSource:
    """A web citation returned alongside an advisor answer."""

    title: str
    uri: str


@dataclass
class ChatMessage:
    role: ChatRole
    text: str
    sources: list[ChatSource] = field(default_factory=list)
