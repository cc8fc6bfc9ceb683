"""Tests for the spending advisor workflow."""

from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal
from pathlib import Path

import httpx

from cofrinho.application.chat import CONNECTION_ERROR, EMPTY_ANSWER, AdviceRequest, ask_advisor, month_summary
from cofrinho.application.session import SaveTransaction, SessionStore, open_session
from cofrinho.domain.categories import CategoryRegistry
from cofrinho.domain.models import ChatMessage, Persona, User
from cofrinho.storage import LocalStorage
from cofrinho.tests.factories import make_transaction
from cofrinho.tests.fake_gemini import RecordingHandler, gemini_payload, make_client

TODAY = dt.date(2024, 3, 20)


async def guest_session(directory: Path) -> SessionStore:
    return await open_session(User.guest(), LocalStorage(directory), defaults=CategoryRegistry(), timeout=5)


def test_month_summary_only_counts_current_month() -> None:
    txns = [
        make_transaction(amount="100", category="Lazer", date=dt.date(2024, 3, 2)),
        make_transaction(amount="900", category="Moradia", date=dt.date(2024, 2, 2)),
        make_transaction(amount="2000", txn_type="income", category="Salário", date=dt.date(2024, 3, 5)),
    ]

    summary = month_summary(txns, TODAY)

    assert summary.income == Decimal("2000")
    assert summary.expense == Decimal("100")
    assert summary.top_category == "Lazer"


def test_ask_advisor_sends_context_and_returns_sources(tmp_path: Path) -> None:
    chunks = [{"web": {"uri": "https://precos.example", "title": "Preços"}}]
    handler = RecordingHandler(httpx.Response(200, json=gemini_payload("Você gastou R$ 23,40 com Uber.", chunks)))
    request = AdviceRequest(
        message="Quanto gastei com Uber?",
        history=[ChatMessage(role="user", text="Oi"), ChatMessage(role="model", text="Olá!")],
        persona=Persona.SINCERO,
        today=TODAY,
    )

    async def scenario() -> object:
        session = await guest_session(tmp_path)
        await session.dispatch(SaveTransaction(transaction=make_transaction(description="UBER *TRIP", amount="23.40")))
        result = await ask_advisor(session, make_client(handler), request)
        await session.close()
        return result

    result = asyncio.run(scenario())

    assert result.status == "answered"
    assert result.reply.role == "model"
    assert result.reply.text.startswith("Você gastou")
    assert [s.uri for s in result.reply.sources] == ["https://precos.example"]
    body = handler.last_body
    assert body["tools"] == [{"google_search": {}}]
    assert len(body["contents"]) == 3
    instruction = body["systemInstruction"]["parts"][0]["text"]
    assert "Sincere Consultant" in instruction
    assert "UBER *TRIP" in instruction


def test_ask_advisor_empty_answer_and_errors(tmp_path: Path) -> None:
    empty = RecordingHandler(httpx.Response(200, json={"candidates": []}))
    failing = RecordingHandler(httpx.Response(503))

    async def scenario() -> tuple[object, object]:
        session = await guest_session(tmp_path)
        first = await ask_advisor(session, make_client(empty), AdviceRequest(message="?"))
        second = await ask_advisor(session, make_client(failing), AdviceRequest(message="?"))
        await session.close()
        return first, second

    first, second = asyncio.run(scenario())

    assert (first.status, first.reply.text) == ("answered", EMPTY_ANSWER)
    assert (second.status, second.reply.text) == ("error", CONNECTION_ERROR)
    assert second.error
