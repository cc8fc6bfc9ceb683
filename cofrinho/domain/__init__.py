"""Core domain models and pure helpers.

Nothing in this package performs I/O; storage, HTTP and configuration live in
``cofrinho.storage`` and ``cofrinho.runtime``.

Usage:
    from cofrinho.domain import Transaction, CategoryRegistry, parse_delimited_text
"""

from cofrinho.domain.categories import FALLBACK_CATEGORY, CategoryRegistry, resolve_category
from cofrinho.domain.models import (
    ChatMessage,
    ChatSource,
    DashboardStats,
    MarketItem,
    Persona,
    Settings,
    Transaction,
    User,
)
from cofrinho.domain.statement_csv import (
    CandidateTransaction,
    ParsedStatement,
    commit_candidates,
    export_transactions_csv,
    parse_delimited_text,
)

__all__ = [
    "CandidateTransaction",
    "CategoryRegistry",
    "ChatMessage",
    "ChatSource",
    "DashboardStats",
    "FALLBACK_CATEGORY",
    "MarketItem",
    "ParsedStatement",
    "Persona",
    "Settings",
    "Transaction",
    "User",
    "commit_candidates",
    "export_transactions_csv",
    "parse_delimited_text",
    "resolve_category",
]
