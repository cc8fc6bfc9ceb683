"""Tests for the device-local guest backend."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from cofrinho.domain.models import Settings, User
from cofrinho.storage import LocalStorage, load_active_user, open_storage, save_active_user
from cofrinho.storage.local import EXPENSE_CATEGORIES_KEY, RECORD_KEYS, THEME_KEY
from cofrinho.tests.factories import make_item, make_transaction


async def settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


def test_subscribe_delivers_asynchronously(tmp_path: Path) -> None:
    async def scenario() -> None:
        storage = LocalStorage(tmp_path)
        snapshots: list[list[Any]] = []

        storage.subscribe("transactions", snapshots.append)
        assert snapshots == []

        await settle()
        assert snapshots == [[]]

    asyncio.run(scenario())


def test_writes_notify_subscribers_newest_first(tmp_path: Path) -> None:
    async def scenario() -> None:
        storage = LocalStorage(tmp_path)
        snapshots: list[list[Any]] = []
        storage.subscribe("transactions", snapshots.append)
        await settle()

        first = make_transaction(description="Primeira")
        second = make_transaction(description="Segunda")
        await storage.add("transactions", first)
        await storage.add("transactions", second)
        await settle()

        assert [t.description for t in snapshots[-1]] == ["Segunda", "Primeira"]

        first.amount = first.amount * 2
        await storage.update("transactions", first)
        await storage.delete("transactions", second.id)
        await settle()

        assert snapshots[-1] == [first]

    asyncio.run(scenario())


def test_unsubscribed_callbacks_do_not_fire(tmp_path: Path) -> None:
    async def scenario() -> None:
        storage = LocalStorage(tmp_path)
        snapshots: list[list[Any]] = []
        subscription = storage.subscribe("transactions", snapshots.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        await storage.add("transactions", make_transaction())
        await settle()

        assert snapshots == []
        assert subscription.active is False

    asyncio.run(scenario())


def test_clear_all_empties_both_record_stores(tmp_path: Path) -> None:
    async def scenario() -> None:
        storage = LocalStorage(tmp_path)
        await storage.add_batch("transactions", [make_transaction(), make_transaction()])
        await storage.add("market_items", make_item())
        await storage.save_settings(Settings(theme="dark"))
        items: list[list[Any]] = []
        storage.subscribe("market_items", items.append)
        await settle()
        assert len(items[-1]) == 1

        await storage.clear_all()
        await settle()

        assert storage.load("transactions") == []
        assert storage.load("market_items") == []
        assert items[-1] == []
        assert (await storage.load_settings()).theme == "dark"

    asyncio.run(scenario())


def test_settings_are_saved_per_key(tmp_path: Path) -> None:
    async def scenario() -> None:
        storage = LocalStorage(tmp_path)
        await storage.save_settings(Settings(expense_categories=["Casa"]))
        await storage.save_settings(Settings(theme="light"))

        settings = await storage.load_settings()

        assert settings.expense_categories == ["Casa"]
        assert settings.income_categories is None
        assert settings.theme == "light"

    asyncio.run(scenario())
    assert json.loads((tmp_path / f"{EXPENSE_CATEGORIES_KEY}.json").read_text(encoding="utf-8")) == ["Casa"]
    assert json.loads((tmp_path / f"{THEME_KEY}.json").read_text(encoding="utf-8")) == "light"


def test_corrupt_or_foreign_records_are_ignored(tmp_path: Path) -> None:
    (tmp_path / f"{RECORD_KEYS['transactions']}.json").write_text("{not json", encoding="utf-8")
    (tmp_path / f"{RECORD_KEYS['market_items']}.json").write_text('[{"name": "sem id"}, 3]', encoding="utf-8")
    storage = LocalStorage(tmp_path)

    assert storage.load("transactions") == []
    assert storage.load("market_items") == []


def test_active_user_round_trip(tmp_path: Path) -> None:
    assert load_active_user(tmp_path) is None

    guest = User.guest()
    save_active_user(tmp_path, guest)
    assert load_active_user(tmp_path) == guest

    save_active_user(tmp_path, None)
    assert load_active_user(tmp_path) is None


def test_open_storage_uses_local_backend_for_guests(tmp_path: Path) -> None:
    storage = open_storage(User.guest(), local_directory=tmp_path)

    assert isinstance(storage, LocalStorage)
    assert storage.mode == "local"
