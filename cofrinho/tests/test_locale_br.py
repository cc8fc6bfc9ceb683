"""Tests for PT-BR amount and date conventions."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from cofrinho.domain.locale_br import format_br_amount, format_br_date, parse_br_amount, parse_br_date

TODAY = dt.date(2025, 6, 15)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("01/03/2024", dt.date(2024, 3, 1)),
        ("1/3/2024", dt.date(2024, 3, 1)),
        ('"31/12/2023"', dt.date(2023, 12, 31)),
        (" 05/11/2024 ", dt.date(2024, 11, 5)),
    ],
)
def test_parse_br_date_valid(raw: str, expected: dt.date) -> None:
    assert parse_br_date(raw, TODAY) == expected


@pytest.mark.parametrize("raw", [None, "", "2024-03-01", "01/03/24", "31/02/2024", "aa/bb/cccc", "01/03", "1/2/3/4"])
def test_parse_br_date_malformed_falls_back_to_today(raw: str | None) -> None:
    assert parse_br_date(raw, TODAY) == TODAY


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1.234,56", Decimal("1234.56")),
        ("-1.234,56", Decimal("-1234.56")),
        ("150,00", Decimal("150.00")),
        ('"R$ 2.000,10"', Decimal("2000.10")),
        ("150.00", Decimal("150.00")),
        ("42", Decimal("42")),
    ],
)
def test_parse_br_amount(raw: str, expected: Decimal) -> None:
    assert parse_br_amount(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "abc", "NaN", "1,2,3", "   "])
def test_parse_br_amount_unparseable(raw: str | None) -> None:
    assert parse_br_amount(raw) is None


def test_format_br_amount_uses_thousands_dot_and_decimal_comma() -> None:
    assert format_br_amount(Decimal("1234.5")) == "1.234,50"
    assert format_br_amount(Decimal("1234567.891")) == "1.234.567,89"
    assert format_br_amount(Decimal("0")) == "0,00"


def test_format_br_date_is_zero_padded() -> None:
    assert format_br_date(dt.date(2024, 3, 1)) == "01/03/2024"
