"""PT-BR number and date conventions (1.234,56 and DD/MM/YYYY)."""

from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal, InvalidOperation

_DATE_PART_RE = re.compile(r"^\d{1,2}$")
_YEAR_RE = re.compile(r"^\d{4}$")


def parse_br_date(raw: str | None, today: dt.date) -> dt.date:
    """Parse DD/MM/YYYY; anything absent or malformed becomes ``today``."""
    text = (raw or "").replace('"', "").strip()
    if "/" not in text:
        return today

    parts = [part.strip() for part in text.split("/")]
    if len(parts) != 3:
        return today
    day, month, year = parts
    if not (_DATE_PART_RE.match(day) and _DATE_PART_RE.match(month) and _YEAR_RE.match(year)):
        return today

    try:
        return dt.date(int(year), int(month), int(day))
    except ValueError:
        return today


def parse_br_amount(raw: str | None) -> Decimal | None:
    """Parse a PT-BR amount such as ``-1.234,56``. Returns None when unparseable.

    Periods are thousands separators only when a decimal comma is present,
    so ``150.00`` stays 150.00 instead of becoming 15000.
    """
    if raw is None:
        return None
    text = raw.replace('"', "").replace("R$", "").replace(" ", "").strip()
    if not text:
        return None
    if "," in text:
        text = text.replace(".", "").replace(",", ".", 1)

    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def format_br_amount(value: Decimal) -> str:
    """Format with thousands '.' and two decimals after ','."""
    us_style = f"{value:,.2f}"
    return us_style.replace(",", "_").replace(".", ",").replace("_", ".")


def format_br_date(value: dt.date) -> str:
    return value.strftime("%d/%m/%Y")
