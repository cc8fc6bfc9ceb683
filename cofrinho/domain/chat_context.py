"""Prompt construction for the spending advisor.

Matching a question ("how much did I spend on Uber?") to transaction
descriptions is left to the model: the instruction text below spells out the
fuzzy substring rules and no local search is performed.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from cofrinho.domain.models import ChatMessage, MarketItem, Persona, Transaction

MAX_CONTEXT_TRANSACTIONS = 100
MAX_CONTEXT_MARKET_ITEMS = 50

APP_DOCS = """
APP DOCUMENTATION (USE THIS TO EXPLAIN FEATURES):
- **Dashboard**: Shows current Balance, Income/Expense cards, and charts (Daily Flow bar chart and Category Pie chart).
- **Add Transaction**:
  1. "Manual": Type value and description.
  2. "Magic (Camera)": Upload a receipt image/PDF, AI extracts data automatically.
- **Batch / Statement ("Em Lote / Extrato")**: Upload a full bank statement or credit card bill (PDF/Image) or a CSV file. All transactions are extracted at once into a list you can edit.
- **Market Sub-App ("Mercadinho")**:
  - Use "Scan" to upload grocery receipts. AI extracts EVERY SINGLE ITEM (e.g., Rice, Beer, Soap).
  - View history of purchases grouped by Receipt/Date.
  - Filter by month.
- **Settings**: Change Theme (Light/Dark), Manage Categories (Add/Edit/Delete), Export/Import CSV, Clear All Data.
- **Filters**: Filter main list by Date (Month/Year) or Type/Category.
"""

SEARCH_INSTRUCTIONS = """
CRITICAL INSTRUCTION FOR DATA RETRIEVAL:
When the user asks about a specific spending (e.g., "How much did I spend on McDonalds?", "Uber expenses?"):
1. YOU MUST PERFORM A FUZZY SEARCH. Do NOT look for exact matches.
2. Match ANY transaction where the 'desc' (description) CONTAINS the user's keyword.
   - Example: If user asks "McDonalds", MATCH "MCDONALDS SAO PAULO", "BURGER KING VS MCDONALDS", "PG *MCDONALDS".
   - Example: If user asks "Uber", MATCH "UBER *TRIP", "UBER EATS", "UBER BR".
3. Case insensitive matching.
4. AGGREGATE (SUM) the amounts of all matching transactions and report the total.
5. List the individual transactions found to prove your point.
"""

NO_TRANSACTIONS = "No general transactions available yet."
NO_MARKET_ITEMS = "No detailed market items available yet."

_FORMAL_TEMPLATE = """You are a professional, polite, and objective financial consultant.
Your tone is like a bank manager. Be concise and data-driven.

{app_docs}
{search_instructions}

Current User Stats for this month: Income: {income}, Expense: {expense}, Top Expense Category: {top_category}.

DATA SOURCES:
1. {transactions_context}
2. {market_context}

If the user asks about specific products (like beer, rice), check the Market Items History.
If the user asks about general spending (Uber, Electricity, Salary), check the General Transactions History using the fuzzy search rules above.
If asked about prices or market trends, USE GOOGLE SEARCH to find real-time information.
If asked how to use the app, refer to the APP DOCUMENTATION above."""

_SINCERE_TEMPLATE = """You are a "Sincere Consultant". You are a brutally honest friend who roasts the user for bad financial decisions.
Use slang, be funny, sarcasm is encouraged. If the user is spending too much, scold them.
If they are doing well, be skeptical.

{app_docs}
{search_instructions}

Current User Stats for this month: Income: {income}, Expense: {expense}, Top Expense Category: {top_category}.

DATA SOURCES:
1. {transactions_context}
2. {market_context}

If the user asks about specific products (like "how much did I spend on beer?"), look at the Market Items History and roast them if it's high.
If the user asks about general spending (like "Uber", "Ifood", "Rent"), look at the General Transactions History using FUZZY SEARCH (e.g., match "Uber" in "Uber Trip ...").
If asked about prices, USE GOOGLE SEARCH to verify if they paid too much and roast them if they did.
If asked how to use the app, explain it simply but with your sarcastic flair.
Example: "You spent 500 on food? Do you think you are a king? Learn to cook!\""""

TEMPLATES: dict[Persona, str] = {
    Persona.FORMAL: _FORMAL_TEMPLATE,
    Persona.SINCERO: _SINCERE_TEMPLATE,
}


@dataclass(frozen=True)
class MonthSummary:
    """The month figures quoted to the advisor."""

    income: Decimal
    expense: Decimal
    top_category: str


def _json_number(value: Decimal) -> float:
    return float(value)


def most_recent[T: (Transaction, MarketItem)](records: Sequence[T], limit: int) -> list[T]:
    """The ``limit`` newest records by date, returned oldest first."""
    newest_first = sorted(records, key=lambda r: r.date, reverse=True)[:limit]
    return list(reversed(newest_first))


def transactions_context(transactions: Sequence[Transaction]) -> str:
    if not transactions:
        return NO_TRANSACTIONS
    rows: list[dict[str, Any]] = [
        {
            "date": t.date.isoformat(),
            "desc": t.description,
            "amount": _json_number(t.amount),
            "cat": t.category,
            "type": t.type,
        }
        for t in most_recent(transactions, MAX_CONTEXT_TRANSACTIONS)
    ]
    return f"Current General Transactions History (Summary): {json.dumps(rows, ensure_ascii=False)}"


def market_context(items: Sequence[MarketItem]) -> str:
    if not items:
        return NO_MARKET_ITEMS
    rows: list[dict[str, Any]] = [
        {"name": i.name, "price": _json_number(i.price), "date": i.date.isoformat()}
        for i in most_recent(items, MAX_CONTEXT_MARKET_ITEMS)
    ]
    return f"Current Market/Grocery Items History (Detailed): {json.dumps(rows, ensure_ascii=False)}"


def build_system_instruction(
    persona: Persona,
    summary: MonthSummary,
    transactions: Sequence[Transaction],
    market_items: Sequence[MarketItem],
) -> str:
    return TEMPLATES[persona].format(
        app_docs=APP_DOCS,
        search_instructions=SEARCH_INSTRUCTIONS,
        income=summary.income,
        expense=summary.expense,
        top_category=summary.top_category,
        transactions_context=transactions_context(transactions),
        market_context=market_context(market_items),
    )


def build_contents(history: Sequence[ChatMessage], message: str) -> list[dict[str, Any]]:
    """Conversation turns in generateContent shape, ending with the new question."""
    contents: list[dict[str, Any]] = [{"role": m.role, "parts": [{"text": m.text}]} for m in history]
    contents.append({"role": "user", "parts": [{"text": message}]})
    return contents
