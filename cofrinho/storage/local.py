"""Device-local JSON store used by guest sessions.

Each resource lives under a fixed key, one JSON file per key:

    local/
    ├── fs_transactions.json   - transaction records, newest first
    ├── fs_market_items.json   - market item records, newest first
    ├── fs_income_cats.json    - income category labels
    ├── fs_expense_cats.json   - expense category labels
    ├── fs_theme.json          - theme name
    └── fs_user.json           - active session identity

Only writes made through the same ``LocalStorage`` instance reach its
subscribers; edits by other processes are picked up on the next subscribe.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Literal

from cofrinho.domain.models import Settings, User
from cofrinho.runtime import get_logger
from cofrinho.storage.base import (
    RECORD_KINDS,
    RecordKind,
    SnapshotCallback,
    StorageAdapter,
    StoredRecord,
    Subscription,
    decode_record,
)

logger = get_logger(__name__)

RECORD_KEYS: dict[RecordKind, str] = {
    "transactions": "fs_transactions",
    "market_items": "fs_market_items",
}
INCOME_CATEGORIES_KEY = "fs_income_cats"
EXPENSE_CATEGORIES_KEY = "fs_expense_cats"
THEME_KEY = "fs_theme"
USER_KEY = "fs_user"


class LocalKeyStore:
    """JSON values under fixed string keys in one directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Any:
        path = self.path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable local key %s: %s", key, exc)
            return None

    def write(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path(key).write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")

    def remove(self, key: str) -> None:
        self.path(key).unlink(missing_ok=True)


def load_active_user(directory: Path) -> User | None:
    """Return the persisted session identity, if any."""
    record = LocalKeyStore(directory).read(USER_KEY)
    if not isinstance(record, dict) or "id" not in record:
        return None
    return User.from_record(record)


def save_active_user(directory: Path, user: User | None) -> None:
    store = LocalKeyStore(directory)
    if user is None:
        store.remove(USER_KEY)
    else:
        store.write(USER_KEY, user.to_record())


@dataclass
class _Subscriber:
    kind: RecordKind
    callback: SnapshotCallback
    loop: asyncio.AbstractEventLoop
    active: bool = True


class LocalStorage(StorageAdapter):
    """Guest-session backend on top of ``LocalKeyStore``."""

    mode: ClassVar[Literal["local", "cloud"]] = "local"

    def __init__(self, directory: Path) -> None:
        self.keys = LocalKeyStore(directory)
        self._subscribers: list[_Subscriber] = []

    # --- reads ---

    def _load_raw(self, kind: RecordKind) -> list[dict[str, Any]]:
        value = self.keys.read(RECORD_KEYS[kind])
        if not isinstance(value, list):
            return []
        return [record for record in value if isinstance(record, dict) and "id" in record]

    def load(self, kind: RecordKind) -> list[StoredRecord]:
        return [decode_record(kind, record) for record in self._load_raw(kind)]

    def subscribe(self, kind: RecordKind, callback: SnapshotCallback) -> Subscription:
        subscriber = _Subscriber(kind=kind, callback=callback, loop=asyncio.get_running_loop())
        self._subscribers.append(subscriber)
        subscriber.loop.call_soon(self._deliver, subscriber, self.load(kind))

        def cancel() -> None:
            subscriber.active = False
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return Subscription(cancel)

    @staticmethod
    def _deliver(subscriber: _Subscriber, snapshot: list[StoredRecord]) -> None:
        # The subscriber may have gone away between scheduling and delivery.
        if subscriber.active:
            subscriber.callback(snapshot)

    def _notify(self, kind: RecordKind) -> None:
        targets = [s for s in self._subscribers if s.kind == kind]
        if not targets:
            return
        snapshot = self.load(kind)
        for subscriber in targets:
            subscriber.loop.call_soon(self._deliver, subscriber, list(snapshot))

    # --- writes ---

    def _store(self, kind: RecordKind, records: list[dict[str, Any]]) -> None:
        self.keys.write(RECORD_KEYS[kind], records)
        self._notify(kind)

    async def add_batch(self, kind: RecordKind, records: Sequence[StoredRecord]) -> None:
        if not records:
            return
        new_records = [record.to_record() for record in records]
        self._store(kind, new_records + self._load_raw(kind))
        logger.debug("Stored %d new %s locally", len(new_records), kind)

    async def update(self, kind: RecordKind, record: StoredRecord) -> None:
        data = record.to_record()
        self._store(kind, [data if r["id"] == record.id else r for r in self._load_raw(kind)])

    async def delete(self, kind: RecordKind, record_id: str) -> None:
        self._store(kind, [r for r in self._load_raw(kind) if r["id"] != record_id])

    # --- settings ---

    async def load_settings(self) -> Settings:
        return Settings.from_record(
            {
                "incomeCategories": self.keys.read(INCOME_CATEGORIES_KEY),
                "expenseCategories": self.keys.read(EXPENSE_CATEGORIES_KEY),
                "theme": self.keys.read(THEME_KEY),
            }
        )

    async def save_settings(self, partial: Settings) -> None:
        if partial.income_categories is not None:
            self.keys.write(INCOME_CATEGORIES_KEY, partial.income_categories)
        if partial.expense_categories is not None:
            self.keys.write(EXPENSE_CATEGORIES_KEY, partial.expense_categories)
        if partial.theme is not None:
            self.keys.write(THEME_KEY, partial.theme)

    async def clear_all(self) -> None:
        for kind in RECORD_KINDS:
            self.keys.remove(RECORD_KEYS[kind])
            self._notify(kind)
        logger.info("Cleared local transactions and market items in %s", self.keys.directory)
