"""FastAPI server exposing the active session as a JSON API.

The server owns one ``SessionStore`` for its lifetime (opened in the lifespan
handler, closed on shutdown). Run it with ``cofrinho serve``.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Literal

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from cofrinho.application.chat import AdviceRequest, ask_advisor
from cofrinho.application.imports import (
    ImportResult,
    commit_import,
    export_csv,
    preview_csv_import,
    quick_import_csv,
)
from cofrinho.application.receipts import (
    list_market_receipts,
    save_market_receipt,
    scan_market_receipt,
    scan_receipt,
    scan_statement,
)
from cofrinho.application.session import (
    ActionResult,
    AddCategory,
    ClearAll,
    DeleteTransaction,
    RemoveCategory,
    RenameCategory,
    SaveTransaction,
    SessionStore,
    SetTheme,
    open_active_session,
)
from cofrinho.domain.dashboard import (
    calculate_stats,
    category_breakdown,
    daily_flow,
    filter_transactions,
    monthly_transactions,
    top_expense_category,
    used_categories,
)
from cofrinho.domain.extracted import ExtractedReceiptItem, ItemizedReceipt
from cofrinho.domain.models import ChatMessage, ChatSource, Persona, Transaction, new_id
from cofrinho.domain.statement_csv import CandidateTransaction
from cofrinho.runtime.gemini import GeminiClient
from cofrinho.runtime.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], Awaitable[SessionStore]]
TypeFilter = Literal["all", "income", "expense"]
TransactionTypeParam = Literal["income", "expense"]


# --- request bodies ---


class TransactionBody(BaseModel):
    id: str | None = None
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    type: TransactionTypeParam
    category: str = Field(min_length=1)
    date: dt.date


class CategoryBody(BaseModel):
    name: str


class CategoryRenameBody(BaseModel):
    old: str
    new: str


class ThemeBody(BaseModel):
    theme: Literal["light", "dark", "system"]


class CsvBody(BaseModel):
    content: str


class CandidateBody(BaseModel):
    date: dt.date
    description: str
    category: str
    type: TransactionTypeParam
    amount: Decimal


class CommitBody(BaseModel):
    candidates: list[CandidateBody]
    skipped: int = 0


class ReceiptItemBody(BaseModel):
    name: str = ""
    category: str = ""
    price: Decimal = Decimal("0")
    quantity: Decimal = Decimal("1")


class MarketReceiptBody(BaseModel):
    merchant: str = ""
    total: Decimal = Field(ge=0)
    date: dt.date | None = None
    items: list[ReceiptItemBody] = Field(default_factory=list)


class ChatTurnBody(BaseModel):
    role: Literal["user", "model"]
    text: str


class ChatBody(BaseModel):
    message: str = Field(min_length=1)
    history: list[ChatTurnBody] = Field(default_factory=list)
    persona: Persona = Persona.FORMAL


class ClearBody(BaseModel):
    confirm: bool = False


# --- response shapes ---


def _candidate_json(candidate: CandidateTransaction) -> dict[str, Any]:
    return {
        "date": candidate.date.isoformat(),
        "description": candidate.description,
        "category": candidate.category,
        "type": candidate.type,
        "amount": candidate.amount,
    }


def _action_json(result: ActionResult) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": result.status, "affected": result.affected}
    if result.message is not None:
        payload["message"] = result.message
    if result.cascade_persisted is not None:
        payload["cascade_persisted"] = result.cascade_persisted
    return payload


def _month(year: int | None, month: int | None) -> tuple[int, int]:
    today = dt.date.today()
    return (year or today.year, month or today.month)


def create_app(
    session_factory: SessionFactory | None = None,
    gemini_client: GeminiClient | None = None,
) -> FastAPI:
    """Build the API. Factories are injectable so tests can use a temp store."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Open the session on startup; close it (and its pending tasks) on shutdown."""
        factory = session_factory or open_active_session
        app.state.session = await factory()
        app.state.gemini = gemini_client or GeminiClient()
        logger.info("Serving session %s (%s mode)", app.state.session.user.id, app.state.session.storage.mode)
        try:
            yield
        finally:
            await app.state.session.close()

    app = FastAPI(title="Cofrinho", lifespan=lifespan)

    def session_of(request: Request) -> SessionStore:
        return request.app.state.session

    async def read_upload(file: UploadFile) -> tuple[bytes, str]:
        data = await file.read()
        if not data:
            raise HTTPException(status_code=400, detail="Empty upload")
        return data, file.content_type or "application/octet-stream"

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    # --- transactions ---

    @app.get("/transactions")
    async def list_transactions(
        request: Request,
        year: int | None = None,
        month: int | None = None,
        type: TypeFilter = "all",
        category: str = "all",
    ) -> list[dict[str, Any]]:
        transactions = session_of(request).transactions
        if year is not None or month is not None:
            transactions = monthly_transactions(transactions, *_month(year, month))
        return [t.to_record() for t in filter_transactions(transactions, type, category)]

    @app.post("/transactions", status_code=201)
    async def save_transaction(request: Request, body: TransactionBody) -> dict[str, Any]:
        transaction = Transaction(
            id=body.id or new_id(),
            description=body.description.strip(),
            amount=body.amount,
            type=body.type,
            category=body.category,
            date=body.date,
        )
        await session_of(request).dispatch(SaveTransaction(transaction=transaction))
        return transaction.to_record()

    @app.delete("/transactions/{transaction_id}")
    async def delete_transaction(request: Request, transaction_id: str) -> dict[str, Any]:
        session = session_of(request)
        if not any(t.id == transaction_id for t in session.transactions):
            raise HTTPException(status_code=404, detail="Transaction not found")
        return _action_json(await session.dispatch(DeleteTransaction(transaction_id=transaction_id)))

    @app.get("/dashboard")
    async def dashboard(
        request: Request,
        year: int | None = None,
        month: int | None = None,
        type: TypeFilter = "all",
        category: str = "all",
    ) -> dict[str, Any]:
        monthly = monthly_transactions(session_of(request).transactions, *_month(year, month))
        visible = filter_transactions(monthly, type, category)
        month_stats = calculate_stats(monthly)
        view_stats = calculate_stats(visible)
        return {
            "income": view_stats.income,
            "expense": view_stats.expense,
            "balance": view_stats.balance,
            "month_balance": month_stats.balance,
            "top_category": top_expense_category(monthly),
            "used_categories": used_categories(monthly),
            "daily_flow": [{"day": d.day, "income": d.income, "expense": d.expense} for d in daily_flow(visible)],
            "category_breakdown": [{"name": c.name, "value": c.value} for c in category_breakdown(visible)],
        }

    # --- categories and settings ---

    @app.get("/categories")
    async def categories(request: Request) -> dict[str, list[str]]:
        registry = session_of(request).registry
        return {"income": registry.labels("income"), "expense": registry.labels("expense")}

    @app.post("/categories/{txn_type}")
    async def add_category(request: Request, txn_type: TransactionTypeParam, body: CategoryBody) -> dict[str, Any]:
        return _action_json(await session_of(request).dispatch(AddCategory(type=txn_type, name=body.name)))

    @app.delete("/categories/{txn_type}")
    async def remove_category(request: Request, txn_type: TransactionTypeParam, name: str) -> dict[str, Any]:
        return _action_json(await session_of(request).dispatch(RemoveCategory(type=txn_type, name=name)))

    @app.patch("/categories/{txn_type}")
    async def rename_category(
        request: Request, txn_type: TransactionTypeParam, body: CategoryRenameBody
    ) -> dict[str, Any]:
        action = RenameCategory(type=txn_type, old=body.old, new=body.new)
        return _action_json(await session_of(request).dispatch(action))

    @app.put("/settings/theme")
    async def set_theme(request: Request, body: ThemeBody) -> dict[str, Any]:
        return _action_json(await session_of(request).dispatch(SetTheme(theme=body.theme)))

    # --- CSV interchange ---

    @app.post("/import/csv")
    async def import_preview(request: Request, body: CsvBody) -> dict[str, Any]:
        statement = preview_csv_import(session_of(request), body.content)
        return {
            "candidates": [_candidate_json(c) for c in statement.candidates],
            "new_categories": [{"type": t, "name": name} for t, name in statement.new_categories],
            "skipped": statement.skipped,
        }

    def import_response(result: ImportResult) -> dict[str, Any]:
        if result.status == "empty":
            raise HTTPException(status_code=422, detail=result.error)
        return {
            "status": result.status,
            "imported": len(result.transactions),
            "skipped": result.skipped,
            "registered_categories": [{"type": t, "name": name} for t, name in result.registered_categories],
        }

    @app.post("/import/commit")
    async def import_commit(request: Request, body: CommitBody) -> dict[str, Any]:
        candidates = [CandidateTransaction(**c.model_dump()) for c in body.candidates]
        return import_response(await commit_import(session_of(request), candidates, skipped=body.skipped))

    @app.post("/import/quick")
    async def import_quick(request: Request, body: CsvBody) -> dict[str, Any]:
        return import_response(await quick_import_csv(session_of(request), body.content))

    @app.get("/export/csv")
    async def export(request: Request) -> Response:
        result = export_csv(session_of(request))
        if result.status == "empty":
            raise HTTPException(status_code=404, detail=result.error)
        return Response(
            content=result.content.encode("utf-8"),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
        )

    # --- AI scans (session tasks, cancelled on shutdown) ---

    @app.post("/scan/receipt")
    async def scan_receipt_endpoint(request: Request, file: UploadFile = File(...)) -> dict[str, Any]:
        data, mime_type = await read_upload(file)
        session = session_of(request)
        result = await session.spawn(scan_receipt(session, request.app.state.gemini, data, mime_type))
        if result.candidate is None:
            raise HTTPException(status_code=502, detail=result.error)
        return {
            "candidate": _candidate_json(result.candidate),
            "registered_categories": [{"type": t, "name": name} for t, name in result.registered_categories],
        }

    @app.post("/scan/statement")
    async def scan_statement_endpoint(request: Request, file: UploadFile = File(...)) -> dict[str, Any]:
        data, mime_type = await read_upload(file)
        session = session_of(request)
        result = await session.spawn(scan_statement(session, request.app.state.gemini, data, mime_type))
        if result.status == "extraction_failed":
            raise HTTPException(status_code=502, detail=result.error)
        return {
            "candidates": [_candidate_json(c) for c in result.candidates],
            "registered_categories": [{"type": t, "name": name} for t, name in result.registered_categories],
        }

    @app.post("/market/scan")
    async def market_scan(request: Request, file: UploadFile = File(...)) -> dict[str, Any]:
        data, mime_type = await read_upload(file)
        result = await session_of(request).spawn(scan_market_receipt(request.app.state.gemini, data, mime_type))
        if result.receipt is None:
            raise HTTPException(status_code=502, detail=result.error)
        receipt = result.receipt
        return {
            "merchant": receipt.merchant,
            "total": receipt.total,
            "date": receipt.date.isoformat() if receipt.date else None,
            "items": [
                {"name": i.name, "category": i.category, "price": i.price, "quantity": i.quantity}
                for i in receipt.items
            ],
        }

    @app.post("/market/receipts", status_code=201)
    async def market_save(request: Request, body: MarketReceiptBody) -> dict[str, Any]:
        receipt = ItemizedReceipt(
            merchant=body.merchant.strip(),
            total=body.total,
            date=body.date,
            items=[
                ExtractedReceiptItem(
                    name=i.name.strip(),
                    category=i.category.strip(),
                    price=i.price,
                    quantity=i.quantity if i.quantity > 0 else Decimal("1"),
                )
                for i in body.items
            ],
        )
        saved = await save_market_receipt(session_of(request), receipt)
        return {"transaction": saved.transaction.to_record(), "items": [i.to_record() for i in saved.items]}

    @app.get("/market/receipts")
    async def market_receipts(
        request: Request, year: int | None = None, month: int | None = None, q: str = ""
    ) -> list[dict[str, Any]]:
        groups = list_market_receipts(session_of(request), *_month(year, month), q)
        return [
            {
                "receipt_id": g.receipt_id,
                "merchant": g.merchant,
                "date": g.date.isoformat(),
                "total": g.total,
                "items": [i.to_record() for i in g.items],
            }
            for g in groups
        ]

    # --- advisor ---

    @app.post("/chat")
    async def chat(request: Request, body: ChatBody) -> dict[str, Any]:
        advice = AdviceRequest(
            message=body.message,
            history=[ChatMessage(role=turn.role, text=turn.text) for turn in body.history],
            persona=body.persona,
        )
        session = session_of(request)
        result = await session.spawn(ask_advisor(session, request.app.state.gemini, advice))
        sources: list[ChatSource] = result.reply.sources
        return {
            "status": result.status,
            "text": result.reply.text,
            "sources": [{"title": s.title, "uri": s.uri} for s in sources],
        }

    # --- danger zone ---

    @app.post("/clear-all")
    async def clear_all(request: Request, body: ClearBody) -> dict[str, Any]:
        if not body.confirm:
            raise HTTPException(status_code=400, detail="Send {\"confirm\": true} to erase all records")
        result = await session_of(request).dispatch(ClearAll())
        if result.status == "blocked":
            raise HTTPException(status_code=409, detail=result.message)
        return _action_json(result)

    return app


app = create_app()
