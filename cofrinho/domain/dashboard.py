"""Monthly dashboard aggregation (totals, top category, chart series)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from cofrinho.domain.models import DashboardStats, Transaction

NO_TOP_CATEGORY = "Nenhuma"


@dataclass(frozen=True)
class DailyFlow:
    day: int
    income: Decimal
    expense: Decimal


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    value: Decimal


def monthly_transactions(transactions: Iterable[Transaction], year: int, month: int) -> list[Transaction]:
    """Transactions dated in the given month, newest first."""
    selected = [t for t in transactions if t.date.year == year and t.date.month == month]
    return sorted(selected, key=lambda t: t.date, reverse=True)


def filter_transactions(
    transactions: Iterable[Transaction],
    type_filter: str = "all",
    category_filter: str = "all",
) -> list[Transaction]:
    return [
        t
        for t in transactions
        if (type_filter == "all" or t.type == type_filter)
        and (category_filter == "all" or t.category == category_filter)
    ]


def used_categories(transactions: Iterable[Transaction]) -> list[str]:
    return sorted({t.category for t in transactions})


def calculate_stats(transactions: Iterable[Transaction]) -> DashboardStats:
    income = Decimal("0")
    expense = Decimal("0")
    for txn in transactions:
        if txn.type == "income":
            income += txn.amount
        else:
            expense += txn.amount
    return DashboardStats(income=income, expense=expense)


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """Expense totals per category, in first-seen order."""
    totals: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.type != "expense":
            continue
        totals[txn.category] = totals.get(txn.category, Decimal("0")) + txn.amount
    return [CategoryTotal(name=name, value=value) for name, value in totals.items()]


def top_expense_category(transactions: Sequence[Transaction]) -> str:
    breakdown = category_breakdown(transactions)
    if not breakdown:
        return NO_TOP_CATEGORY
    # max() keeps the first of equal totals, matching a stable descending sort
    return max(breakdown, key=lambda total: total.value).name


def daily_flow(transactions: Iterable[Transaction]) -> list[DailyFlow]:
    """Income vs expense per day of month, sorted by day."""
    per_day: dict[int, tuple[Decimal, Decimal]] = {}
    for txn in transactions:
        income, expense = per_day.get(txn.date.day, (Decimal("0"), Decimal("0")))
        if txn.type == "income":
            income += txn.amount
        else:
            expense += txn.amount
        per_day[txn.date.day] = (income, expense)
    return [DailyFlow(day=day, income=inc, expense=exp) for day, (inc, exp) in sorted(per_day.items())]
