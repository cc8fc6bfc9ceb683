"""Command handlers used by the unified CLI.

Session commands are coroutines taking the open ``SessionStore``; the entry
point opens the active session, runs the handler and closes the session.
Every handler returns the process exit code.
"""

from __future__ import annotations

import argparse
import datetime as dt
import mimetypes
import sys
from decimal import Decimal
from pathlib import Path

from cofrinho.application.chat import AdviceRequest, ask_advisor
from cofrinho.application.imports import commit_import, export_csv, preview_csv_import
from cofrinho.application.receipts import (
    list_market_receipts,
    save_market_receipt,
    scan_market_receipt,
    scan_receipt,
    scan_statement,
)
from cofrinho.application.session import (
    AddCategory,
    ClearAll,
    DeleteTransaction,
    RemoveCategory,
    RenameCategory,
    SaveTransaction,
    SessionStore,
    SetTheme,
    active_user,
    set_active_user,
)
from cofrinho.domain.dashboard import (
    calculate_stats,
    category_breakdown,
    filter_transactions,
    monthly_transactions,
    top_expense_category,
)
from cofrinho.domain.locale_br import format_br_amount, format_br_date, parse_br_amount, parse_br_date
from cofrinho.domain.models import Persona, Transaction, User, new_id
from cofrinho.domain.statement_csv import CandidateTransaction
from cofrinho.runtime import get_logger, get_paths
from cofrinho.runtime.gemini import GeminiClient

logger = get_logger(__name__)

CLEAR_ALL_WARNING = "Isso vai apagar TODAS as transações e itens de mercado deste dispositivo."


def parse_month(value: str) -> tuple[int, int]:
    """argparse type for ``YYYY-MM``."""
    try:
        year_str, month_str = value.split("-")
        year, month = int(year_str), int(month_str)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid month {value!r}, expected YYYY-MM") from None
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"Invalid month {value!r}, expected YYYY-MM")
    return year, month


def _month_or_current(value: tuple[int, int] | None) -> tuple[int, int]:
    if value is None:
        today = dt.date.today()
        return today.year, today.month
    return value


def _money(value: Decimal) -> str:
    return f"R$ {format_br_amount(value)}"


def _print_transaction(txn: Transaction) -> None:
    sign = "+" if txn.type == "income" else "-"
    amount = f"{sign}{_money(txn.amount)}"
    print(f"{format_br_date(txn.date)}  {amount:>17}  {txn.category:<15} {txn.description}  [{txn.id}]")


def _print_candidates(candidates: list[CandidateTransaction]) -> None:
    for i, c in enumerate(candidates, 1):
        sign = "+" if c.type == "income" else "-"
        print(f"  {i}. {format_br_date(c.date)}  {sign}{_money(c.amount)}  [{c.category}] {c.description}")


def _read_document(path: Path) -> tuple[bytes, str] | None:
    if not path.exists():
        print(f"Error: file not found: {path}")
        return None
    mime_type, _ = mimetypes.guess_type(path.name)
    return path.read_bytes(), mime_type or "application/octet-stream"


# --- session identity (no session needed) ---


def cmd_login(args: argparse.Namespace) -> int:
    if args.guest:
        user = User.guest()
    else:
        if not args.uid:
            print("Error: --uid is required unless --guest is given")
            return 1
        user = User(id=args.uid, name=args.name or args.uid, email=args.email, photo_url=args.photo_url)
    set_active_user(user)
    mode = "local (convidado)" if user.is_guest else "nuvem"
    print(f"Sessão ativa: {user.name} ({user.id}) - modo {mode}")
    return 0


def cmd_logout(args: argparse.Namespace) -> int:
    if active_user() is None:
        print("Nenhuma sessão ativa.")
        return 0
    set_active_user(None)
    print("Sessão encerrada.")
    return 0


def cmd_whoami(args: argparse.Namespace) -> int:
    user = active_user()
    if user is None:
        print("Nenhuma sessão ativa (um convidado será criado no próximo comando).")
        return 0
    mode = "local (convidado)" if user.is_guest else "nuvem"
    email = f" <{user.email}>" if user.email else ""
    print(f"{user.name}{email} ({user.id}) - modo {mode}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the FastAPI server for the active session."""
    import uvicorn

    from cofrinho.runtime import server

    print(f"Starting cofrinho server on {args.host}:{args.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)
    return 0


# --- transactions ---


async def cmd_import(session: SessionStore, args: argparse.Namespace) -> int:
    path = Path(args.csv_file)
    if not path.exists():
        print(f"Error: file not found: {path}")
        return 1

    statement = preview_csv_import(session, path.read_text(encoding="utf-8-sig"))
    print(f"{len(statement.candidates)} transações lidas, {statement.skipped} linhas ignoradas.")
    _print_candidates(statement.candidates)
    if statement.new_categories:
        names = ", ".join(name for _, name in statement.new_categories)
        print(f"Novas categorias: {names}")

    if args.dry_run:
        return 0

    result = await commit_import(session, statement.candidates, skipped=statement.skipped)
    if result.status == "empty":
        print(result.error)
        return 1
    print(f"{len(result.transactions)} transações importadas com sucesso!")
    return 0


async def cmd_export(session: SessionStore, args: argparse.Namespace) -> int:
    result = export_csv(session)
    if result.status == "empty":
        print(result.error)
        return 1

    if args.output:
        output = Path(args.output)
    else:
        exports = get_paths().exports
        exports.mkdir(parents=True, exist_ok=True)
        output = exports / result.filename
    output.write_text(result.content, encoding="utf-8")
    print(f"Exportado para {output}")
    return 0


async def cmd_summary(session: SessionStore, args: argparse.Namespace) -> int:
    year, month = _month_or_current(args.month)
    monthly = monthly_transactions(session.transactions, year, month)
    stats = calculate_stats(monthly)

    print(f"Resumo {month:02d}/{year}")
    print(f"  Entradas:  {_money(stats.income)}")
    print(f"  Saídas:    {_money(stats.expense)}")
    print(f"  Saldo:     {_money(stats.balance)}")
    print(f"  Maior gasto: {top_expense_category(monthly)}")
    breakdown = category_breakdown(monthly)
    if breakdown:
        print("  Por categoria:")
        for total in sorted(breakdown, key=lambda t: t.value, reverse=True):
            print(f"    {total.name:<15} {_money(total.value)}")
    return 0


async def cmd_list(session: SessionStore, args: argparse.Namespace) -> int:
    year, month = _month_or_current(args.month)
    monthly = monthly_transactions(session.transactions, year, month)
    visible = filter_transactions(monthly, args.type, args.category)
    if not visible:
        print("Nenhuma transação encontrada.")
        return 0
    for txn in visible:
        _print_transaction(txn)
    return 0


async def cmd_add(session: SessionStore, args: argparse.Namespace) -> int:
    amount = parse_br_amount(args.amount)
    if amount is None or amount <= 0:
        print(f"Error: invalid amount {args.amount!r}")
        return 1
    description = args.description.strip()
    if not description:
        print("Error: description is required")
        return 1

    today = dt.date.today()
    txn = Transaction(
        id=new_id(),
        description=description,
        amount=amount,
        type=args.type,
        category=args.category or session.registry.labels(args.type)[0],
        date=parse_br_date(args.date, today) if args.date else today,
    )
    await session.dispatch(SaveTransaction(transaction=txn))
    _print_transaction(txn)
    return 0


async def cmd_delete(session: SessionStore, args: argparse.Namespace) -> int:
    if not any(t.id == args.transaction_id for t in session.transactions):
        print(f"Error: transaction not found: {args.transaction_id}")
        return 1
    await session.dispatch(DeleteTransaction(transaction_id=args.transaction_id))
    print("Transação excluída.")
    return 0


# --- settings ---


async def cmd_categories(session: SessionStore, args: argparse.Namespace) -> int:
    action = args.categories_action
    if action is None or action == "list":
        for txn_type, title in (("income", "Entradas"), ("expense", "Saídas")):
            print(f"{title}: {', '.join(session.registry.labels(txn_type))}")
        return 0

    if action == "add":
        result = await session.dispatch(AddCategory(type=args.type, name=args.name))
    elif action == "remove":
        result = await session.dispatch(RemoveCategory(type=args.type, name=args.name))
    else:
        result = await session.dispatch(RenameCategory(type=args.type, old=args.old, new=args.new))

    if result.status == "unchanged":
        print("Nada a alterar.")
        return 0
    print("Categorias atualizadas.")
    if result.cascade_persisted is False and result.affected:
        print(
            f"Aviso: {result.affected} transações continuam salvas com o nome antigo "
            "(no modo nuvem a renomeação não é aplicada às transações existentes)."
        )
    return 0


async def cmd_theme(session: SessionStore, args: argparse.Namespace) -> int:
    await session.dispatch(SetTheme(theme=args.theme))
    print(f"Tema: {args.theme}")
    return 0


async def cmd_clear(session: SessionStore, args: argparse.Namespace) -> int:
    if not args.yes:
        if not sys.stdin.isatty():
            print("Refusing to clear data without --yes in non-interactive mode.")
            return 1
        print(CLEAR_ALL_WARNING)
        print("Continue? [y/N] ", end="")
        if input().strip().lower() != "y":
            logger.info("Aborted by user")
            return 0

    result = await session.dispatch(ClearAll())
    if result.status == "blocked":
        print(result.message)
        return 1
    print(f"{result.affected} registros apagados.")
    return 0


# --- AI ---


async def cmd_scan_receipt(session: SessionStore, args: argparse.Namespace) -> int:
    document = _read_document(Path(args.file))
    if document is None:
        return 1
    result = await scan_receipt(session, GeminiClient(), *document)
    if result.candidate is None:
        print(result.error)
        return 1

    _print_candidates([result.candidate])
    if args.save:
        await commit_import(session, [result.candidate])
        print("Transação salva.")
    return 0


async def cmd_scan_statement(session: SessionStore, args: argparse.Namespace) -> int:
    document = _read_document(Path(args.file))
    if document is None:
        return 1
    result = await scan_statement(session, GeminiClient(), *document)
    if result.status == "extraction_failed":
        print(result.error)
        return 1

    print(f"{len(result.candidates)} transações encontradas:")
    _print_candidates(result.candidates)
    if args.save:
        imported = await commit_import(session, result.candidates)
        if imported.status == "empty":
            print(imported.error)
            return 1
        print(f"{len(imported.transactions)} transações importadas com sucesso!")
    return 0


async def cmd_scan_market(session: SessionStore, args: argparse.Namespace) -> int:
    document = _read_document(Path(args.file))
    if document is None:
        return 1
    result = await scan_market_receipt(GeminiClient(), *document)
    if result.receipt is None:
        print(result.error)
        return 1

    receipt = result.receipt
    date_str = format_br_date(receipt.date) if receipt.date else "?"
    print(f"{receipt.merchant or 'Mercado'} - {date_str} - total {_money(receipt.total)}")
    for i, item in enumerate(receipt.items, 1):
        print(f"  {i}. {item.name} x{item.quantity} - {_money(item.price)} [{item.category}]")
    if args.save:
        await save_market_receipt(session, receipt)
        print("Nota fiscal salva com sucesso!")
    return 0


async def cmd_market(session: SessionStore, args: argparse.Namespace) -> int:
    year, month = _month_or_current(args.month)
    groups = list_market_receipts(session, year, month, args.search or "")
    if not groups:
        print("Nenhuma compra encontrada.")
        return 0
    for group in groups:
        print(f"{format_br_date(group.date)}  {group.merchant}  {_money(group.total)}")
        for item in group.items:
            print(f"    {item.name} x{item.quantity} - {_money(item.price)} [{item.category}]")
    return 0


async def cmd_ask(session: SessionStore, args: argparse.Namespace) -> int:
    request = AdviceRequest(message=args.question, persona=Persona(args.persona))
    result = await ask_advisor(session, GeminiClient(), request)
    print(result.reply.text)
    for source in result.reply.sources:
        print(f"  - {source.title}: {source.uri}")
    return 0 if result.status == "answered" else 1
