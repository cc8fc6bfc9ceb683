#!/usr/bin/env python3

import argparse
import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from cofrinho.application.session import SessionStore, open_active_session
from cofrinho.cli import commands
from cofrinho.runtime import set_data_root, set_log_level
from cofrinho.storage import StorageError

SessionCommand = Callable[[SessionStore, argparse.Namespace], Awaitable[int]]

SESSION_COMMANDS: dict[str, SessionCommand] = {
    "import": commands.cmd_import,
    "export": commands.cmd_export,
    "summary": commands.cmd_summary,
    "list": commands.cmd_list,
    "add": commands.cmd_add,
    "delete": commands.cmd_delete,
    "categories": commands.cmd_categories,
    "theme": commands.cmd_theme,
    "scan-receipt": commands.cmd_scan_receipt,
    "scan-statement": commands.cmd_scan_statement,
    "scan-market": commands.cmd_scan_market,
    "market": commands.cmd_market,
    "ask": commands.cmd_ask,
    "clear": commands.cmd_clear,
}

PLAIN_COMMANDS: dict[str, Callable[[argparse.Namespace], int]] = {
    "login": commands.cmd_login,
    "logout": commands.cmd_logout,
    "whoami": commands.cmd_whoami,
    "serve": commands.cmd_serve,
}


async def _run_session_command(command: SessionCommand, args: argparse.Namespace) -> int:
    session = await open_active_session()
    try:
        return await command(session, args)
    finally:
        await session.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cofrinho",
        description="Personal finance tracker CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  login [--guest | --uid ID]  Set the active session (guest = local storage)
  logout | whoami             End / show the active session
  import <csv> [--dry-run]    Import a PT-BR CSV statement
  export [-o file]            Export transactions as CSV
  summary | list              Monthly dashboard / transaction list
  add | delete                Add or delete a transaction
  categories ...              List, add, remove or rename categories
  theme <light|dark|system>   Change the theme
  scan-receipt <file>         Read one expense from a receipt (AI)
  scan-statement <file>       Read every transaction from a statement (AI)
  scan-market <file>          Read an itemized grocery receipt (AI)
  market                      Grocery purchases grouped by receipt
  ask <question>              Ask the spending advisor (AI)
  clear [--yes]               Delete all transactions and market items
  serve [--port]              Start the HTTP API
""",
    )
    parser.add_argument("--data-dir", help="Data directory (default: $COFRINHO_HOME or ~/.cofrinho)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # session identity
    login_parser = subparsers.add_parser("login", help="Set the active session")
    login_parser.add_argument("--guest", action="store_true", help="Start a device-local guest session")
    login_parser.add_argument("--uid", help="User id of an authenticated session")
    login_parser.add_argument("--name", help="Display name")
    login_parser.add_argument("--email", help="E-mail address")
    login_parser.add_argument("--photo-url", help="Avatar URL")
    subparsers.add_parser("logout", help="End the active session")
    subparsers.add_parser("whoami", help="Show the active session")

    # CSV interchange
    import_parser = subparsers.add_parser("import", help="Import a CSV statement")
    import_parser.add_argument("csv_file", help="CSV file (Data;Descrição;Categoria;Tipo;Valor)")
    import_parser.add_argument("--dry-run", action="store_true", help="Only show what would be imported")
    export_parser = subparsers.add_parser("export", help="Export transactions as CSV")
    export_parser.add_argument("-o", "--output", help="Output file (default: <data-dir>/exports/backup_...)")

    # dashboard
    summary_parser = subparsers.add_parser("summary", help="Monthly dashboard")
    summary_parser.add_argument("--month", type=commands.parse_month, help="Month as YYYY-MM (default: current)")
    list_parser = subparsers.add_parser("list", help="List transactions of a month")
    list_parser.add_argument("--month", type=commands.parse_month, help="Month as YYYY-MM (default: current)")
    list_parser.add_argument("--type", choices=["all", "income", "expense"], default="all")
    list_parser.add_argument("--category", default="all")

    # transactions
    add_parser = subparsers.add_parser("add", help="Add a transaction")
    add_parser.add_argument("--type", choices=["income", "expense"], default="expense")
    add_parser.add_argument("--amount", required=True, help="Amount, e.g. 1.234,56")
    add_parser.add_argument("--description", required=True)
    add_parser.add_argument("--category", help="Category (default: first of the type)")
    add_parser.add_argument("--date", help="Date as DD/MM/YYYY (default: today)")
    delete_parser = subparsers.add_parser("delete", help="Delete a transaction")
    delete_parser.add_argument("transaction_id")

    # categories
    categories_parser = subparsers.add_parser("categories", help="Manage categories")
    categories_sub = categories_parser.add_subparsers(dest="categories_action")
    categories_sub.add_parser("list", help="List categories")
    cat_add = categories_sub.add_parser("add", help="Add a category")
    cat_add.add_argument("type", choices=["income", "expense"])
    cat_add.add_argument("name")
    cat_remove = categories_sub.add_parser("remove", help="Remove a category")
    cat_remove.add_argument("type", choices=["income", "expense"])
    cat_remove.add_argument("name")
    cat_rename = categories_sub.add_parser("rename", help="Rename a category")
    cat_rename.add_argument("type", choices=["income", "expense"])
    cat_rename.add_argument("old")
    cat_rename.add_argument("new")

    theme_parser = subparsers.add_parser("theme", help="Change the theme")
    theme_parser.add_argument("theme", choices=["light", "dark", "system"])

    # AI scans
    for name, help_text in (
        ("scan-receipt", "Read one expense from a receipt image or PDF"),
        ("scan-statement", "Read every transaction from a statement image or PDF"),
        ("scan-market", "Read an itemized grocery receipt"),
    ):
        scan_parser = subparsers.add_parser(name, help=help_text)
        scan_parser.add_argument("file", help="Image or PDF")
        scan_parser.add_argument("--save", action="store_true", help="Store the result without further review")

    market_parser = subparsers.add_parser("market", help="Grocery purchases grouped by receipt")
    market_parser.add_argument("--month", type=commands.parse_month, help="Month as YYYY-MM (default: current)")
    market_parser.add_argument("--search", help="Filter items by name or category")

    ask_parser = subparsers.add_parser("ask", help="Ask the spending advisor")
    ask_parser.add_argument("question")
    ask_parser.add_argument("--persona", choices=["formal", "sincero"], default="formal")

    clear_parser = subparsers.add_parser("clear", help="Delete all transactions and market items")
    clear_parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.verbose:
        set_log_level(logging.DEBUG)
    if args.data_dir:
        set_data_root(Path(args.data_dir).expanduser())

    if args.command in PLAIN_COMMANDS:
        return PLAIN_COMMANDS[args.command](args)

    try:
        return asyncio.run(_run_session_command(SESSION_COMMANDS[args.command], args))
    except StorageError as exc:
        print(f"Storage error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
