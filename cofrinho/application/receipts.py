"""Receipt and statement scan workflows.

Scans only produce previews; storing them is a separate step
(``commit_import`` for transactions, ``save_market_receipt`` for itemized
grocery receipts) so the caller can review first.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Literal

from cofrinho.application.imports import register_new_categories
from cofrinho.application.session import SaveMarketReceipt, SessionStore
from cofrinho.domain.categories import resolve_category
from cofrinho.domain.extracted import ItemizedReceipt
from cofrinho.domain.market import (
    ReceiptGroup,
    build_receipt_records,
    group_receipts,
    items_in_month,
    search_receipt_groups,
)
from cofrinho.domain.models import MarketItem, Transaction, TransactionType
from cofrinho.domain.statement_csv import DEFAULT_DESCRIPTION, CandidateTransaction
from cofrinho.runtime import get_logger
from cofrinho.runtime.extraction import (
    ExtractionFailed,
    analyze_financial_statement,
    analyze_itemized_receipt,
    analyze_receipt_image,
)
from cofrinho.runtime.gemini import GeminiClient

logger = get_logger(__name__)

RECEIPT_SCAN_ERROR = "Erro ao analisar a imagem. Tente novamente."
STATEMENT_SCAN_ERROR = "Erro ao ler a fatura. Verifique se o arquivo é uma imagem ou PDF válido."
MARKET_SCAN_ERROR = "Erro ao analisar nota fiscal. Tente novamente."

ScanStatus = Literal["extracted", "extraction_failed"]


@dataclass(frozen=True)
class ReceiptScanResult:
    """Single-transaction receipt preview."""

    status: ScanStatus
    candidate: CandidateTransaction | None = None
    registered_categories: list[tuple[TransactionType, str]] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class StatementScanResult:
    status: ScanStatus
    candidates: list[CandidateTransaction] = field(default_factory=list)
    registered_categories: list[tuple[TransactionType, str]] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class MarketScanResult:
    status: ScanStatus
    receipt: ItemizedReceipt | None = None
    error: str | None = None


@dataclass(frozen=True)
class MarketSaveResult:
    transaction: Transaction
    items: list[MarketItem]


async def scan_receipt(
    session: SessionStore,
    client: GeminiClient,
    data: bytes,
    mime_type: str,
    *,
    today: dt.date | None = None,
) -> ReceiptScanResult:
    """Extract one expense from a receipt image or PDF."""
    try:
        extracted = await analyze_receipt_image(client, data, mime_type, session.registry.labels("expense"))
    except ExtractionFailed as exc:
        logger.error("Receipt extraction failed: %s", exc)
        return ReceiptScanResult(status="extraction_failed", error=RECEIPT_SCAN_ERROR)

    category, _ = resolve_category(session.registry, "expense", extracted.category)
    registered = await register_new_categories(session, [("expense", category)])
    candidate = CandidateTransaction(
        date=extracted.date or today or dt.date.today(),
        description=extracted.description or DEFAULT_DESCRIPTION,
        category=category,
        type="expense",
        amount=extracted.amount,
    )
    return ReceiptScanResult(status="extracted", candidate=candidate, registered_categories=registered)


async def scan_statement(
    session: SessionStore,
    client: GeminiClient,
    data: bytes,
    mime_type: str,
    *,
    today: dt.date | None = None,
) -> StatementScanResult:
    """Extract every transaction from a bank statement or card bill."""
    try:
        rows = await analyze_financial_statement(
            client,
            data,
            mime_type,
            session.registry.labels("income"),
            session.registry.labels("expense"),
        )
    except ExtractionFailed as exc:
        logger.error("Statement extraction failed: %s", exc)
        return StatementScanResult(status="extraction_failed", error=STATEMENT_SCAN_ERROR)

    today = today or dt.date.today()
    candidates: list[CandidateTransaction] = []
    for row in rows:
        txn_type: TransactionType = row.type or "expense"
        category, _ = resolve_category(session.registry, txn_type, row.category)
        candidates.append(
            CandidateTransaction(
                date=row.date or today,
                description=row.description,
                category=category,
                type=txn_type,
                amount=row.amount,
            )
        )

    registered = await register_new_categories(session, ((c.type, c.category) for c in candidates))
    logger.info("Statement scan found %d transactions", len(candidates))
    return StatementScanResult(status="extracted", candidates=candidates, registered_categories=registered)


async def scan_market_receipt(client: GeminiClient, data: bytes, mime_type: str) -> MarketScanResult:
    """Extract an itemized grocery receipt for review."""
    try:
        receipt = await analyze_itemized_receipt(client, data, mime_type)
    except ExtractionFailed as exc:
        logger.error("Itemized receipt extraction failed: %s", exc)
        return MarketScanResult(status="extraction_failed", error=MARKET_SCAN_ERROR)
    return MarketScanResult(status="extracted", receipt=receipt)


async def save_market_receipt(
    session: SessionStore,
    receipt: ItemizedReceipt,
    *,
    today: dt.date | None = None,
) -> MarketSaveResult:
    transaction, items = build_receipt_records(receipt, today=today)
    await session.dispatch(SaveMarketReceipt(transaction=transaction, items=items))
    return MarketSaveResult(transaction=transaction, items=items)


def list_market_receipts(session: SessionStore, year: int, month: int, term: str = "") -> list[ReceiptGroup]:
    """Receipt groups of one month, optionally narrowed by an item search."""
    groups = group_receipts(items_in_month(session.market_items, year, month))
    return search_receipt_groups(groups, term)
