"""Market sub-app: receipt records and receipt-group views."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from cofrinho.domain.extracted import ItemizedReceipt
from cofrinho.domain.models import MarketItem, Transaction, new_id

RECEIPT_CATEGORY = "Mercado"
DEFAULT_MERCHANT = "Mercado"
UNKNOWN_MERCHANT = "Desconhecido"
DEFAULT_ITEM_NAME = "Item desconhecido"
DEFAULT_ITEM_CATEGORY = "Geral"
DEFAULT_UNIT = "un"
LEGACY_RECEIPT_ID = "legacy"


@dataclass
class ReceiptGroup:
    """Items sharing one receipt id, with their summed line totals."""

    receipt_id: str
    merchant: str
    date: dt.date
    total: Decimal = Decimal("0")
    items: list[MarketItem] = field(default_factory=list)


def build_receipt_records(
    receipt: ItemizedReceipt,
    *,
    receipt_id: str | None = None,
    today: dt.date | None = None,
) -> tuple[Transaction, list[MarketItem]]:
    """Build the expense transaction and the market items for a scanned receipt."""
    receipt_id = receipt_id or new_id()
    receipt_date = receipt.date or today or dt.date.today()
    merchant = receipt.merchant or DEFAULT_MERCHANT

    transaction = Transaction(
        id=new_id(),
        description=merchant,
        amount=receipt.total,
        type="expense",
        category=RECEIPT_CATEGORY,
        date=receipt_date,
    )
    items = [
        MarketItem(
            id=new_id(),
            receipt_id=receipt_id,
            name=item.name or DEFAULT_ITEM_NAME,
            category=item.category or DEFAULT_ITEM_CATEGORY,
            price=item.price,
            quantity=item.quantity,
            unit=DEFAULT_UNIT,
            date=receipt_date,
            merchant=merchant,
        )
        for item in receipt.items
    ]
    return transaction, items


def items_in_month(items: Iterable[MarketItem], year: int, month: int) -> list[MarketItem]:
    return [item for item in items if item.date.year == year and item.date.month == month]


def group_receipts(items: Iterable[MarketItem]) -> list[ReceiptGroup]:
    """Group items by receipt id, newest receipt first.

    The first item seen in a group provides its merchant and date.
    """
    groups: dict[str, ReceiptGroup] = {}
    for item in items:
        key = item.receipt_id or LEGACY_RECEIPT_ID
        group = groups.get(key)
        if group is None:
            group = ReceiptGroup(receipt_id=key, merchant=item.merchant or UNKNOWN_MERCHANT, date=item.date)
            groups[key] = group
        group.items.append(item)
        group.total += item.price
    return sorted(groups.values(), key=lambda g: g.date, reverse=True)


def search_receipt_groups(groups: Iterable[ReceiptGroup], term: str) -> list[ReceiptGroup]:
    """Keep only items whose name or category contains ``term``; drop empty groups."""
    needle = term.strip().casefold()
    if not needle:
        return list(groups)

    filtered: list[ReceiptGroup] = []
    for group in groups:
        matches = [i for i in group.items if needle in i.name.casefold() or needle in i.category.casefold()]
        if matches:
            filtered.append(
                ReceiptGroup(
                    receipt_id=group.receipt_id,
                    merchant=group.merchant,
                    date=group.date,
                    total=group.total,
                    items=matches,
                )
            )
    return filtered
