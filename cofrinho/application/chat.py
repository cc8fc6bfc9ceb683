"""Spending advisor workflow."""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from cofrinho.application.session import SessionStore
from cofrinho.domain.chat_context import MonthSummary, build_contents, build_system_instruction
from cofrinho.domain.dashboard import calculate_stats, monthly_transactions, top_expense_category
from cofrinho.domain.models import ChatMessage, Persona, Transaction
from cofrinho.runtime import get_logger
from cofrinho.runtime.gemini import GOOGLE_SEARCH_TOOL, AIServiceUnavailable, GeminiClient

logger = get_logger(__name__)

EMPTY_ANSWER = "Não consegui pensar em uma resposta agora."
CONNECTION_ERROR = "Erro ao conectar com o cérebro digital. Tente depois."

AdviceStatus = Literal["answered", "error"]


@dataclass(frozen=True)
class AdviceRequest:
    """Inputs for one advisor turn."""

    message: str
    history: Sequence[ChatMessage] = field(default_factory=tuple)
    persona: Persona = Persona.FORMAL
    today: dt.date | None = None


@dataclass(frozen=True)
class AdviceResult:
    status: AdviceStatus
    reply: ChatMessage
    error: str | None = None


def month_summary(transactions: Sequence[Transaction], today: dt.date) -> MonthSummary:
    """Income, expense and top expense category of the month containing ``today``."""
    monthly = monthly_transactions(transactions, today.year, today.month)
    stats = calculate_stats(monthly)
    return MonthSummary(income=stats.income, expense=stats.expense, top_category=top_expense_category(monthly))


async def ask_advisor(session: SessionStore, client: GeminiClient, request: AdviceRequest) -> AdviceResult:
    """Ask the model about the session's data. Failures become an error reply."""
    today = request.today or dt.date.today()
    instruction = build_system_instruction(
        request.persona,
        month_summary(session.transactions, today),
        session.transactions,
        session.market_items,
    )
    try:
        response = await client.generate(
            build_contents(request.history, request.message),
            system_instruction=instruction,
            tools=[GOOGLE_SEARCH_TOOL],
        )
    except AIServiceUnavailable as exc:
        logger.error("Advisor call failed: %s", exc)
        return AdviceResult(status="error", reply=ChatMessage(role="model", text=CONNECTION_ERROR), error=str(exc))

    reply = ChatMessage(role="model", text=response.text or EMPTY_ANSWER, sources=list(response.sources))
    return AdviceResult(status="answered", reply=reply)
