"""Tests for the grocery receipt records and grouping."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from cofrinho.domain.extracted import ItemizedReceipt
from cofrinho.domain.market import (
    DEFAULT_ITEM_CATEGORY,
    DEFAULT_ITEM_NAME,
    DEFAULT_MERCHANT,
    LEGACY_RECEIPT_ID,
    RECEIPT_CATEGORY,
    build_receipt_records,
    group_receipts,
    items_in_month,
    search_receipt_groups,
)
from cofrinho.tests.factories import make_item


def test_build_receipt_records_shares_receipt_id() -> None:
    receipt = ItemizedReceipt.from_json(
        {
            "merchant": "Extra",
            "total": 55.8,
            "date": "2024-03-02",
            "items": [
                {"name": "Arroz", "category": "Mercearia", "price": 25.9, "quantity": 1},
                {"name": "", "category": "", "price": 29.9, "quantity": 0},
            ],
        }
    )

    transaction, items = build_receipt_records(receipt, receipt_id="abc")

    assert transaction.type == "expense"
    assert transaction.category == RECEIPT_CATEGORY
    assert transaction.description == "Extra"
    assert transaction.amount == Decimal("55.8")
    assert transaction.date == dt.date(2024, 3, 2)
    assert {item.receipt_id for item in items} == {"abc"}
    assert items[1].name == DEFAULT_ITEM_NAME
    assert items[1].category == DEFAULT_ITEM_CATEGORY
    assert items[1].quantity == Decimal("1")
    assert all(item.date == transaction.date for item in items)


def test_build_receipt_records_defaults_merchant_and_date() -> None:
    receipt = ItemizedReceipt(merchant="", total=Decimal("10"))
    today = dt.date(2025, 1, 9)

    transaction, items = build_receipt_records(receipt, today=today)

    assert transaction.description == DEFAULT_MERCHANT
    assert transaction.date == today
    assert items == []


def test_group_totals_equal_sum_of_prices() -> None:
    items = [
        make_item(price="25.90", receipt_id="r1", date=dt.date(2024, 3, 1)),
        make_item(name="Feijão", price="8.50", receipt_id="r1", date=dt.date(2024, 3, 1)),
        make_item(name="Cerveja", price="4.99", receipt_id="r2", date=dt.date(2024, 3, 10), category="Bebidas"),
        make_item(name="Sabão", price="12.00", receipt_id="", date=dt.date(2024, 2, 1)),
    ]

    groups = group_receipts(items)

    assert [g.receipt_id for g in groups] == ["r2", "r1", LEGACY_RECEIPT_ID]
    for group in groups:
        assert group.total == sum((item.price for item in group.items), Decimal("0"))
    assert groups[1].total == Decimal("34.40")


def test_search_keeps_matching_items_only() -> None:
    items = [
        make_item(name="Cerveja Lata", category="Bebidas", receipt_id="r1"),
        make_item(name="Arroz", category="Mercearia", receipt_id="r1"),
        make_item(name="Detergente", category="Limpeza", receipt_id="r2"),
    ]
    groups = group_receipts(items)

    found = search_receipt_groups(groups, "  BEBIDA ")

    assert len(found) == 1
    assert [i.name for i in found[0].items] == ["Cerveja Lata"]
    assert search_receipt_groups(groups, "") == groups


def test_items_in_month() -> None:
    items = [make_item(date=dt.date(2024, 3, 31)), make_item(date=dt.date(2024, 4, 1))]

    assert len(items_in_month(items, 2024, 3)) == 1
