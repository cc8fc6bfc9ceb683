"""Tests for the CSV import/export workflows over a guest session."""

from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal
from pathlib import Path

from cofrinho.application.imports import (
    NO_VALID_ROWS_MESSAGE,
    NOTHING_TO_EXPORT_MESSAGE,
    commit_import,
    export_csv,
    export_filename,
    preview_csv_import,
    quick_import_csv,
)
from cofrinho.application.session import SaveTransaction, SessionStore, open_session
from cofrinho.domain.categories import CategoryRegistry
from cofrinho.domain.models import User
from cofrinho.domain.statement_csv import UTF8_BOM
from cofrinho.storage import LocalStorage
from cofrinho.tests.factories import make_transaction

TODAY = dt.date(2025, 6, 15)
STATEMENT = "\n".join(
    [
        "Data;Descrição;Categoria;Tipo;Valor",
        "01/03/2024;Mercado Extra;Mercado;Saída;150,00",
        "02/03/2024;Uber;Aplicativos;Saída;-23,40",
        "03/03/2024;Freela;Serviços;Entrada;800,00",
        "04/03/2024;Quebrado;Lazer;Saída;n/a",
    ]
)


async def guest_session(directory: Path) -> SessionStore:
    return await open_session(User.guest(), LocalStorage(directory), defaults=CategoryRegistry(), timeout=5)


def test_preview_does_not_store(tmp_path: Path) -> None:
    async def scenario() -> None:
        session = await guest_session(tmp_path)
        statement = preview_csv_import(session, STATEMENT, today=TODAY)
        await session.close()

        assert len(statement.candidates) == 3
        assert statement.skipped == 1
        assert session.transactions == []
        assert "Aplicativos" not in session.registry.expense

    asyncio.run(scenario())


def test_quick_import_stores_rows_and_registers_categories(tmp_path: Path) -> None:
    async def scenario() -> tuple[SessionStore, object]:
        session = await guest_session(tmp_path)
        result = await quick_import_csv(session, STATEMENT, today=TODAY)
        await asyncio.sleep(0)
        await session.close()
        return session, result

    session, result = asyncio.run(scenario())

    assert result.status == "imported"
    assert result.skipped == 1
    assert len(result.transactions) == 3
    assert result.registered_categories == [("expense", "Aplicativos"), ("income", "Serviços")]
    assert "Aplicativos" in session.registry.expense
    assert "Serviços" in session.registry.income

    stored = LocalStorage(tmp_path).load("transactions")
    mercado = next(t for t in stored if t.description == "Mercado Extra")
    assert mercado.date == dt.date(2024, 3, 1)
    assert mercado.category == "Mercado"
    assert mercado.type == "expense"
    assert mercado.amount == Decimal("150.00")


def test_commit_with_nothing_valid_reports_empty(tmp_path: Path) -> None:
    async def scenario() -> object:
        session = await guest_session(tmp_path)
        result = await commit_import(session, [], skipped=2)
        await session.close()
        return result

    result = asyncio.run(scenario())

    assert result.status == "empty"
    assert result.error == NO_VALID_ROWS_MESSAGE
    assert result.skipped == 2


def test_export(tmp_path: Path) -> None:
    async def scenario() -> tuple[object, object]:
        session = await guest_session(tmp_path)
        empty = export_csv(session, today=TODAY)
        await session.dispatch(SaveTransaction(transaction=make_transaction()))
        full = export_csv(session, today=TODAY)
        await session.close()
        return empty, full

    empty, full = asyncio.run(scenario())

    assert empty.status == "empty"
    assert empty.error == NOTHING_TO_EXPORT_MESSAGE
    assert full.status == "exported"
    assert full.filename == "backup_financas_2025-06-15.csv"
    assert full.content.startswith(UTF8_BOM)
    assert "Mercado Extra" in full.content
    assert export_filename(dt.date(2024, 1, 2)) == "backup_financas_2024-01-02.csv"
