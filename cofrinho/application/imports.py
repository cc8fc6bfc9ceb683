"""CSV import and export workflows."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from cofrinho.application.session import AddCategory, SaveBatch, SessionStore
from cofrinho.domain.categories import resolve_category
from cofrinho.domain.models import Transaction, TransactionType
from cofrinho.domain.statement_csv import (
    CandidateTransaction,
    ParsedStatement,
    commit_candidates,
    export_transactions_csv,
    parse_delimited_text,
)
from cofrinho.runtime import get_logger

logger = get_logger(__name__)

NO_VALID_ROWS_MESSAGE = "Nenhuma transação válida encontrada no CSV."
NOTHING_TO_EXPORT_MESSAGE = "Não há dados para exportar."

ImportStatus = Literal["imported", "empty"]
ExportStatus = Literal["exported", "empty"]


@dataclass(frozen=True)
class ImportResult:
    """Outcome of committing imported rows."""

    status: ImportStatus
    transactions: list[Transaction] = field(default_factory=list)
    registered_categories: list[tuple[TransactionType, str]] = field(default_factory=list)
    skipped: int = 0
    error: str | None = None


@dataclass(frozen=True)
class ExportResult:
    status: ExportStatus
    content: str = ""
    filename: str = ""
    error: str | None = None


async def register_new_categories(
    session: SessionStore,
    entries: Iterable[tuple[TransactionType, str]],
) -> list[tuple[TransactionType, str]]:
    """Register every label the registry does not know yet.

    Labels resolved to the fallback (too short or ``Outros``) are left alone.
    Returns the pairs that were actually added.
    """
    registered: list[tuple[TransactionType, str]] = []
    for txn_type, label in entries:
        resolved, is_new = resolve_category(session.registry, txn_type, label)
        if not is_new:
            continue
        result = await session.dispatch(AddCategory(type=txn_type, name=resolved))
        if result.status == "applied":
            registered.append((txn_type, resolved))
    if registered:
        logger.info("Registered %d new categories: %s", len(registered), registered)
    return registered


def preview_csv_import(session: SessionStore, raw: str, *, today: dt.date | None = None) -> ParsedStatement:
    """Parse a CSV statement for review. Nothing is stored."""
    return parse_delimited_text(raw, session.registry, today=today)


async def commit_import(
    session: SessionStore,
    candidates: Sequence[CandidateTransaction],
    *,
    skipped: int = 0,
) -> ImportResult:
    """Store reviewed candidates and register the categories they introduce."""
    transactions = commit_candidates(candidates)
    if not transactions:
        return ImportResult(status="empty", skipped=skipped, error=NO_VALID_ROWS_MESSAGE)

    registered = await register_new_categories(session, ((t.type, t.category) for t in transactions))
    await session.dispatch(SaveBatch(transactions=transactions))
    return ImportResult(
        status="imported",
        transactions=transactions,
        registered_categories=registered,
        skipped=skipped,
    )


async def quick_import_csv(session: SessionStore, raw: str, *, today: dt.date | None = None) -> ImportResult:
    """Parse and store a CSV statement in one step, without review."""
    statement = preview_csv_import(session, raw, today=today)
    return await commit_import(session, statement.candidates, skipped=statement.skipped)


def export_filename(today: dt.date | None = None) -> str:
    return f"backup_financas_{(today or dt.date.today()).isoformat()}.csv"


def export_csv(session: SessionStore, *, today: dt.date | None = None) -> ExportResult:
    if not session.transactions:
        return ExportResult(status="empty", error=NOTHING_TO_EXPORT_MESSAGE)
    return ExportResult(
        status="exported",
        content=export_transactions_csv(session.transactions),
        filename=export_filename(today),
    )
