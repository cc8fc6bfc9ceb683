"""CLI tests: commands run end to end against a guest store in a temp dir."""

from __future__ import annotations

import argparse
import io
import sys
from pathlib import Path

import pytest
from _pytest.capture import CaptureFixture
from _pytest.monkeypatch import MonkeyPatch

import cofrinho.cli.main as cli_main
from cofrinho.application.receipts import RECEIPT_SCAN_ERROR
from cofrinho.application.session import SessionStore, active_user
from cofrinho.cli.commands import parse_month
from cofrinho.cli.main import main
from cofrinho.storage import RemoteStorageError
from cofrinho.storage.local import LocalStorage

CSV = (
    "Data;Descrição;Categoria;Tipo;Valor\n"
    "01/03/2024;Mercado Extra;Mercado;Saída;150,00\n"
    "01/03/2024;Uber;Aplicativos;Saída;-23,40\n"
)


@pytest.fixture
def statement(tmp_path: Path) -> Path:
    path = tmp_path / "extrato.csv"
    path.write_text("\ufeff" + CSV, encoding="utf-8")
    return path


def stored_transactions(data_root: Path) -> list:
    return LocalStorage(data_root / "local").load("transactions")


def test_no_command_prints_help(data_root: Path, capsys: CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_login_whoami_logout(data_root: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["whoami"]) == 0
    assert "Nenhuma sessão ativa" in capsys.readouterr().out

    assert main(["login", "--uid", "abc", "--name", "Ana", "--email", "ana@example.com"]) == 0
    assert main(["whoami"]) == 0
    out = capsys.readouterr().out
    assert "Ana <ana@example.com> (abc) - modo nuvem" in out

    assert main(["login", "--guest"]) == 0
    user = active_user()
    assert user is not None and user.is_guest

    assert main(["logout"]) == 0
    assert active_user() is None


def test_login_requires_uid_or_guest(data_root: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["login"]) == 1
    assert "--uid is required" in capsys.readouterr().out


def test_import_list_and_summary(data_root: Path, statement: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["import", str(statement)]) == 0
    out = capsys.readouterr().out
    assert "Novas categorias: Aplicativos" in out
    assert "2 transações importadas com sucesso!" in out
    assert len(stored_transactions(data_root)) == 2

    assert main(["list", "--month", "2024-03", "--type", "expense"]) == 0
    out = capsys.readouterr().out
    assert "Mercado Extra" in out
    assert "-R$ 150,00" in out

    assert main(["summary", "--month", "2024-03"]) == 0
    out = capsys.readouterr().out
    assert "Saídas:    R$ 173,40" in out
    assert "Maior gasto: Mercado" in out

    assert main(["categories", "list"]) == 0
    assert "Aplicativos" in capsys.readouterr().out


def test_import_dry_run_stores_nothing(data_root: Path, statement: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["import", str(statement), "--dry-run"]) == 0

    assert "2 transações lidas, 0 linhas ignoradas." in capsys.readouterr().out
    assert stored_transactions(data_root) == []


def test_import_missing_file(data_root: Path, tmp_path: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["import", str(tmp_path / "nope.csv")]) == 1
    assert "file not found" in capsys.readouterr().out


def test_add_delete_and_export(data_root: Path, tmp_path: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["add", "--amount", "1.234,56", "--description", "Aluguel", "--category", "Moradia",
                 "--date", "05/03/2024"]) == 0
    assert main(["add", "--amount", "abc", "--description", "x"]) == 1
    capsys.readouterr()

    [txn] = stored_transactions(data_root)
    assert str(txn.amount) == "1234.56"

    output = tmp_path / "backup.csv"
    assert main(["export", "-o", str(output)]) == 0
    content = output.read_text(encoding="utf-8")
    assert content.startswith("\ufeffData;Descrição;Categoria;Tipo;Valor")
    assert '05/03/2024;"Aluguel";"Moradia";Saída;1.234,56' in content

    assert main(["delete", "unknown-id"]) == 1
    assert main(["delete", txn.id]) == 0
    assert stored_transactions(data_root) == []
    assert main(["export"]) == 1


def test_export_default_location(data_root: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["add", "--amount", "10", "--description", "Café"]) == 0

    assert main(["export"]) == 0

    exported = list((data_root / "exports").glob("backup_financas_*.csv"))
    assert len(exported) == 1


def test_category_commands(data_root: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["add", "--amount", "50", "--description", "Cinema", "--category", "Lazer"]) == 0
    assert main(["categories", "add", "expense", "Pets"]) == 0
    assert main(["categories", "add", "expense", "pets"]) == 0
    assert "Nada a alterar." in capsys.readouterr().out

    assert main(["categories", "rename", "expense", "Lazer", "Diversão"]) == 0
    assert "Categorias atualizadas." in capsys.readouterr().out
    assert [t.category for t in stored_transactions(data_root)] == ["Diversão"]

    assert main(["categories", "remove", "expense", "Pets"]) == 0
    assert main(["categories"]) == 0
    out = capsys.readouterr().out
    assert "Diversão" in out
    assert "Pets" not in out


def test_theme(data_root: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["theme", "dark"]) == 0
    assert (data_root / "local" / "fs_theme.json").read_text(encoding="utf-8") == '"dark"'


def test_clear_requires_confirmation(
    data_root: Path, monkeypatch: MonkeyPatch, capsys: CaptureFixture[str]
) -> None:
    assert main(["add", "--amount", "10", "--description", "Café"]) == 0
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))

    assert main(["clear"]) == 1
    assert len(stored_transactions(data_root)) == 1

    assert main(["clear", "--yes"]) == 0
    assert "1 registros apagados." in capsys.readouterr().out
    assert stored_transactions(data_root) == []


def test_scan_without_api_key_reports_generic_error(
    data_root: Path, tmp_path: Path, monkeypatch: MonkeyPatch, capsys: CaptureFixture[str]
) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    document = tmp_path / "nota.pdf"
    document.write_bytes(b"%PDF-1.4 fake")

    assert main(["scan-receipt", str(document)]) == 1
    assert RECEIPT_SCAN_ERROR in capsys.readouterr().out

    assert main(["scan-market", str(tmp_path / "missing.jpg")]) == 1
    assert "file not found" in capsys.readouterr().out


def test_market_without_purchases(data_root: Path, capsys: CaptureFixture[str]) -> None:
    assert main(["market", "--month", "2024-03"]) == 0
    assert "Nenhuma compra encontrada." in capsys.readouterr().out


def test_storage_errors_are_reported(data_root: Path, monkeypatch: MonkeyPatch, capsys: CaptureFixture[str]) -> None:
    async def failing(session: SessionStore, args: argparse.Namespace) -> int:
        raise RemoteStorageError("Firestore batch write failed")

    monkeypatch.setitem(cli_main.SESSION_COMMANDS, "list", failing)

    assert main(["list"]) == 1
    assert "Storage error: Firestore batch write failed" in capsys.readouterr().out


def test_data_dir_option(tmp_path: Path, monkeypatch: MonkeyPatch, capsys: CaptureFixture[str]) -> None:
    from cofrinho.runtime import paths as paths_module

    monkeypatch.setattr(paths_module, "_paths", None)
    target = tmp_path / "alt"

    assert main(["--data-dir", str(target), "add", "--amount", "10", "--description", "Café"]) == 0

    assert len(stored_transactions(target)) == 1


def test_parse_month() -> None:
    assert parse_month("2024-03") == (2024, 3)
    for bad in ("2024-13", "março", "2024/03"):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_month(bad)


def test_invalid_month_exits_with_usage_error(data_root: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["summary", "--month", "2024-13"])
    assert excinfo.value.code == 2
