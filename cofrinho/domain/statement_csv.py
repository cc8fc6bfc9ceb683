"""PT-BR CSV statement parsing and export.

Import format (header line always discarded, separator detected per line):

    Data;Descrição;Categoria;Tipo;Valor
    01/03/2024;Mercado Extra;Mercado;Saída;150,00

The amount is always the last column; the type column is optional.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from cofrinho.domain.categories import CategoryRegistry, resolve_category
from cofrinho.domain.locale_br import format_br_amount, format_br_date, parse_br_amount, parse_br_date
from cofrinho.domain.models import Transaction, TransactionType, new_id

CSV_HEADER = ("Data", "Descrição", "Categoria", "Tipo", "Valor")
CSV_SEPARATOR = ";"
UTF8_BOM = "\ufeff"

DEFAULT_DESCRIPTION = "Importado"
EXPENSE_KEYWORDS = ("saída", "débito", "pagamento")
MIN_COLUMNS = 3


@dataclass
class CandidateTransaction:
    """A parsed row awaiting review. Ids are assigned on commit."""

    date: dt.date
    description: str
    category: str
    type: TransactionType
    amount: Decimal


@dataclass
class ParsedStatement:
    candidates: list[CandidateTransaction] = field(default_factory=list)
    new_categories: list[tuple[TransactionType, str]] = field(default_factory=list)
    skipped: int = 0


def detect_separator(line: str) -> str:
    return ";" if ";" in line else ","


def _is_expense(value: Decimal, type_text: str) -> bool:
    if value < 0:
        return True
    lowered = type_text.lower()
    return any(keyword in lowered for keyword in EXPENSE_KEYWORDS)


def parse_delimited_text(
    raw: str,
    registry: CategoryRegistry,
    *,
    today: dt.date | None = None,
) -> ParsedStatement:
    """Parse CSV text into candidate transactions.

    Rows with an unparseable amount are dropped and counted in ``skipped``.
    Unknown categories are reported in ``new_categories``; registering them
    is up to the caller.
    """
    today = today or dt.date.today()
    result = ParsedStatement()
    seen_new: set[tuple[TransactionType, str]] = set()

    for idx, line in enumerate(raw.splitlines()):
        if idx == 0 or not line.strip():
            continue

        cols = line.split(detect_separator(line))
        if len(cols) < MIN_COLUMNS:
            result.skipped += 1
            continue

        value = parse_br_amount(cols[-1])
        if value is None:
            result.skipped += 1
            continue

        type_text = cols[3] if len(cols) > 3 else ""
        txn_type: TransactionType = "expense" if _is_expense(value, type_text) else "income"

        category, is_new = resolve_category(registry, txn_type, cols[2].replace('"', ""))
        if is_new and (txn_type, category.casefold()) not in seen_new:
            seen_new.add((txn_type, category.casefold()))
            result.new_categories.append((txn_type, category))

        description = cols[1].replace('"', "").strip() or DEFAULT_DESCRIPTION
        result.candidates.append(
            CandidateTransaction(
                date=parse_br_date(cols[0], today),
                description=description,
                category=category,
                type=txn_type,
                amount=abs(value),
            )
        )

    return result


def commit_candidates(candidates: Iterable[CandidateTransaction]) -> list[Transaction]:
    """Turn reviewed candidates into transactions, dropping empty rows."""
    return [
        Transaction(
            id=new_id(),
            description=candidate.description,
            amount=candidate.amount,
            type=candidate.type,
            category=candidate.category,
            date=candidate.date,
        )
        for candidate in candidates
        if candidate.description.strip() and candidate.amount > 0
    ]


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def export_transactions_csv(transactions: Iterable[Transaction]) -> str:
    """Serialize transactions as a spreadsheet-friendly PT-BR CSV (with BOM)."""
    lines = [CSV_SEPARATOR.join(CSV_HEADER)]
    for txn in transactions:
        row = (
            format_br_date(txn.date),
            _quote(txn.description),
            _quote(txn.category),
            "Entrada" if txn.type == "income" else "Saída",
            format_br_amount(txn.amount),
        )
        lines.append(CSV_SEPARATOR.join(row))
    return UTF8_BOM + "\n".join(lines)
