"""Tests for CSV statement parsing and export."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from cofrinho.domain.categories import CategoryRegistry
from cofrinho.domain.statement_csv import (
    UTF8_BOM,
    commit_candidates,
    export_transactions_csv,
    parse_delimited_text,
)
from cofrinho.tests.factories import make_transaction

TODAY = dt.date(2025, 6, 15)
HEADER = "Data;Descrição;Categoria;Tipo;Valor"


def test_two_line_statement_yields_one_expense() -> None:
    raw = f"{HEADER}\n01/03/2024;Mercado Extra;Mercado;Saída;150,00"

    parsed = parse_delimited_text(raw, CategoryRegistry(), today=TODAY)

    assert parsed.skipped == 0
    assert len(parsed.candidates) == 1
    candidate = parsed.candidates[0]
    assert candidate.date == dt.date(2024, 3, 1)
    assert candidate.description == "Mercado Extra"
    assert candidate.category == "Mercado"
    assert candidate.type == "expense"
    assert candidate.amount == Decimal("150.00")


def test_negative_amount_is_expense_and_stored_positive() -> None:
    raw = f"{HEADER}\n02/03/2024;Farmácia;Saúde;;-1.234,56"

    candidate = parse_delimited_text(raw, CategoryRegistry(), today=TODAY).candidates[0]

    assert candidate.type == "expense"
    assert candidate.amount == Decimal("1234.56")


def test_type_keywords_override_positive_sign() -> None:
    raw = "\n".join(
        [
            HEADER,
            "01/03/2024;Conta de luz;Moradia;Pagamento;200,00",
            "01/03/2024;Cartão;Compras;DÉBITO automático;50,00",
            "01/03/2024;Salário;Salário;Entrada;5.000,00",
        ]
    )

    types = [c.type for c in parse_delimited_text(raw, CategoryRegistry(), today=TODAY).candidates]

    assert types == ["expense", "expense", "income"]


def test_category_resolution_is_case_insensitive_and_keeps_registry_casing() -> None:
    raw = f"{HEADER}\n01/03/2024;Extra;mercado;Saída;10,00"

    parsed = parse_delimited_text(raw, CategoryRegistry(), today=TODAY)

    assert parsed.candidates[0].category == "Mercado"
    assert parsed.new_categories == []


def test_unknown_categories_are_reported_once_and_short_ones_fall_back() -> None:
    raw = "\n".join(
        [
            HEADER,
            "01/03/2024;Uber;Aplicativos;Saída;10,00",
            "02/03/2024;99;aplicativos;Saída;12,00",
            "03/03/2024;Bar;TV;Saída;30,00",
            "04/03/2024;Sem categoria;;Saída;5,00",
        ]
    )

    parsed = parse_delimited_text(raw, CategoryRegistry(), today=TODAY)

    assert [c.category for c in parsed.candidates] == ["Aplicativos", "aplicativos", "Outros", "Outros"]
    assert parsed.new_categories == [("expense", "Aplicativos")]


def test_malformed_rows_are_skipped_and_counted() -> None:
    raw = "\n".join(
        [
            HEADER,
            "01/03/2024;Sem valor;Lazer;Saída;abc",
            "",
            "apenas;duas",
            "bad-date;Cinema;Lazer;Saída;40,00",
        ]
    )

    parsed = parse_delimited_text(raw, CategoryRegistry(), today=TODAY)

    assert parsed.skipped == 2
    assert len(parsed.candidates) == 1
    assert parsed.candidates[0].date == TODAY


def test_comma_separated_rows_and_default_description() -> None:
    raw = 'Data,Descricao,Categoria,Valor\n05/04/2024,"",Lazer,-30'

    candidate = parse_delimited_text(raw, CategoryRegistry(), today=TODAY).candidates[0]

    assert candidate.description == "Importado"
    assert candidate.category == "Lazer"
    assert candidate.amount == Decimal("30")
    assert candidate.type == "expense"


def test_commit_drops_empty_rows_and_assigns_ids() -> None:
    raw = "\n".join([HEADER, "01/03/2024;Cinema;Lazer;Saída;40,00", "01/03/2024;Zero;Lazer;Saída;0,00"])
    candidates = parse_delimited_text(raw, CategoryRegistry(), today=TODAY).candidates

    committed = commit_candidates(candidates)

    assert [t.description for t in committed] == ["Cinema"]
    assert committed[0].id


def test_export_format() -> None:
    txns = [
        make_transaction(description='Loja "Boa"', amount="1234.5", category="Compras"),
        make_transaction(description="Salário", amount="5000", txn_type="income", category="Salário"),
    ]

    content = export_transactions_csv(txns)

    assert content.startswith(UTF8_BOM + HEADER + "\n")
    lines = content[len(UTF8_BOM) :].split("\n")
    assert lines[1] == '01/03/2024;"Loja ""Boa""";"Compras";Saída;1.234,50'
    assert lines[2] == '01/03/2024;"Salário";"Salário";Entrada;5.000,00'


def test_export_then_import_reproduces_transactions() -> None:
    originals = [
        make_transaction(description="Mercado Extra", amount="150.00", category="Mercado"),
        make_transaction(
            description="Salário março", amount="5432.10", txn_type="income", category="Salário",
            date=dt.date(2024, 3, 5),
        ),
        make_transaction(description="Uber", amount="23.45", category="Transporte", date=dt.date(2024, 2, 29)),
    ]

    parsed = parse_delimited_text(export_transactions_csv(originals), CategoryRegistry(), today=TODAY)
    reimported = commit_candidates(parsed.candidates)

    def key(t):
        return (t.date, t.description, t.category, t.type, t.amount)

    assert sorted(map(key, reimported)) == sorted(map(key, originals))
    assert {t.id for t in reimported}.isdisjoint({t.id for t in originals})
