"""Session state owner.

``SessionStore`` holds the in-memory view of one session (transactions,
market items, categories, theme) and is the only component that talks to the
storage adapter. Every change goes through ``dispatch`` with an explicit
action; the store applies it optimistically, then awaits the adapter.
Subscription snapshots overwrite the cached lists (last write wins).
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from cofrinho.domain.categories import CategoryRegistry
from cofrinho.domain.models import THEMES, MarketItem, Settings, Theme, Transaction, TransactionType, User
from cofrinho.runtime import default_registry, get_logger, get_paths
from cofrinho.storage import (
    RECORD_KINDS,
    ClearAllBlocked,
    RecordKind,
    StorageAdapter,
    Subscription,
    load_active_user,
    open_storage,
    save_active_user,
)

logger = get_logger(__name__)

DEFAULT_THEME: Theme = "system"


@dataclass(frozen=True)
class SaveTransaction:
    """Create ``transaction`` or replace the cached one with the same id."""

    transaction: Transaction


@dataclass(frozen=True)
class DeleteTransaction:
    transaction_id: str


@dataclass(frozen=True)
class SaveBatch:
    transactions: Sequence[Transaction]


@dataclass(frozen=True)
class SaveMarketReceipt:
    transaction: Transaction
    items: Sequence[MarketItem]


@dataclass(frozen=True)
class AddCategory:
    type: TransactionType
    name: str


@dataclass(frozen=True)
class RemoveCategory:
    type: TransactionType
    name: str


@dataclass(frozen=True)
class RenameCategory:
    type: TransactionType
    old: str
    new: str


@dataclass(frozen=True)
class SetTheme:
    theme: Theme


@dataclass(frozen=True)
class ClearAll:
    pass


Action = (
    SaveTransaction
    | DeleteTransaction
    | SaveBatch
    | SaveMarketReceipt
    | AddCategory
    | RemoveCategory
    | RenameCategory
    | SetTheme
    | ClearAll
)

ActionStatus = Literal["applied", "unchanged", "blocked"]


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a dispatched action.

    ``cascade_persisted`` is only set by ``RenameCategory``: False means the
    relabelled transactions were changed in memory but not written back, so
    the next remote snapshot restores the old label.
    """

    status: ActionStatus
    affected: int = 0
    message: str | None = None
    cascade_persisted: bool | None = None


@dataclass
class _Readiness:
    events: dict[RecordKind, asyncio.Event] = field(default_factory=dict)

    def reset(self) -> None:
        self.events = {kind: asyncio.Event() for kind in RECORD_KINDS}

    def mark(self, kind: RecordKind) -> None:
        event = self.events.get(kind)
        if event is not None:
            event.set()


class SessionStore:
    """State owner for one user session. Use ``open_session`` to create one."""

    def __init__(
        self,
        user: User,
        storage: StorageAdapter,
        *,
        defaults: CategoryRegistry | None = None,
    ) -> None:
        self.user = user
        self.storage = storage
        self.transactions: list[Transaction] = []
        self.market_items: list[MarketItem] = []
        self._defaults = defaults or default_registry()
        self.registry = CategoryRegistry(income=list(self._defaults.income), expense=list(self._defaults.expense))
        self.theme: Theme = DEFAULT_THEME
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._readiness = _Readiness()

    @property
    def is_guest(self) -> bool:
        return self.storage.mode == "local"

    # --- lifecycle ---

    async def start(self) -> None:
        """Load settings and subscribe to both record kinds."""
        settings = await self.storage.load_settings()
        self.registry = CategoryRegistry.from_settings(settings, self._defaults)
        self.theme = settings.theme or DEFAULT_THEME

        self._readiness.reset()
        self._subscriptions = [
            self.storage.subscribe("transactions", self._on_transactions),
            self.storage.subscribe("market_items", self._on_market_items),
        ]
        logger.debug("Session for %s started in %s mode", self.user.id, self.storage.mode)

    async def wait_ready(self, timeout: float | None = None) -> None:
        """Wait until the first snapshot of every record kind has arrived."""
        waiters = [event.wait() for event in self._readiness.events.values()]
        await asyncio.wait_for(asyncio.gather(*waiters), timeout)

    def _on_transactions(self, records: list[Transaction]) -> None:
        self.transactions = list(records)
        self._readiness.mark("transactions")

    def _on_market_items(self, records: list[MarketItem]) -> None:
        self.market_items = list(records)
        self._readiness.mark("market_items")

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run ``coro`` as a tracked task that ``cancel_pending`` can stop."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed: %s", task.exception())

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def cancel_pending(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight work and stop listening for snapshots."""
        await self.cancel_pending()
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    async def __aenter__(self) -> SessionStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- actions ---

    async def dispatch(self, action: Action) -> ActionResult:
        if isinstance(action, SaveTransaction):
            return await self._save_transaction(action.transaction)
        if isinstance(action, DeleteTransaction):
            return await self._delete_transaction(action.transaction_id)
        if isinstance(action, SaveBatch):
            return await self._save_batch(list(action.transactions))
        if isinstance(action, SaveMarketReceipt):
            return await self._save_market_receipt(action.transaction, list(action.items))
        if isinstance(action, AddCategory):
            changed = self.registry.add(action.type, action.name)
            return await self._categories_changed(action.type, changed)
        if isinstance(action, RemoveCategory):
            changed = self.registry.remove(action.type, action.name)
            return await self._categories_changed(action.type, changed)
        if isinstance(action, RenameCategory):
            return await self._rename_category(action)
        if isinstance(action, SetTheme):
            return await self._set_theme(action.theme)
        if isinstance(action, ClearAll):
            return await self._clear_all()
        raise TypeError(f"Unknown action: {action!r}")

    async def _save_transaction(self, transaction: Transaction) -> ActionResult:
        index = next((i for i, t in enumerate(self.transactions) if t.id == transaction.id), None)
        if index is None:
            self.transactions.insert(0, transaction)
            await self.storage.add("transactions", transaction)
        else:
            self.transactions[index] = transaction
            await self.storage.update("transactions", transaction)
        return ActionResult(status="applied", affected=1)

    async def _delete_transaction(self, transaction_id: str) -> ActionResult:
        self.transactions = [t for t in self.transactions if t.id != transaction_id]
        await self.storage.delete("transactions", transaction_id)
        return ActionResult(status="applied", affected=1)

    async def _save_batch(self, transactions: list[Transaction]) -> ActionResult:
        if not transactions:
            return ActionResult(status="unchanged")
        self.transactions = transactions + self.transactions
        await self.storage.add_batch("transactions", transactions)
        logger.info("Saved %d transactions", len(transactions))
        return ActionResult(status="applied", affected=len(transactions))

    async def _save_market_receipt(self, transaction: Transaction, items: list[MarketItem]) -> ActionResult:
        self.transactions.insert(0, transaction)
        self.market_items = items + self.market_items
        await self.storage.add("transactions", transaction)
        await self.storage.add_batch("market_items", items)
        logger.info("Saved receipt %s with %d items", transaction.description, len(items))
        return ActionResult(status="applied", affected=len(items))

    async def _categories_changed(self, txn_type: TransactionType, changed: bool) -> ActionResult:
        if not changed:
            return ActionResult(status="unchanged")
        labels = self.registry.labels(txn_type)
        if txn_type == "income":
            await self.storage.save_settings(Settings(income_categories=labels))
        else:
            await self.storage.save_settings(Settings(expense_categories=labels))
        return ActionResult(status="applied", affected=1)

    async def _rename_category(self, action: RenameCategory) -> ActionResult:
        new_label = action.new.strip()
        if not self.registry.rename(action.type, action.old, new_label):
            return ActionResult(status="unchanged")
        await self._categories_changed(action.type, True)
        # A merge keeps the casing of the label that was already registered.
        new_label = self.registry.find(action.type, new_label) or new_label

        relabelled: list[Transaction] = []
        for index, txn in enumerate(self.transactions):
            if txn.type == action.type and txn.category == action.old:
                updated = Transaction(
                    id=txn.id,
                    description=txn.description,
                    amount=txn.amount,
                    type=txn.type,
                    category=new_label,
                    date=txn.date,
                )
                self.transactions[index] = updated
                relabelled.append(updated)

        if not self.is_guest:
            if relabelled:
                logger.warning(
                    "Renamed %r to %r in memory only; %d stored transactions keep the old label",
                    action.old,
                    new_label,
                    len(relabelled),
                )
            return ActionResult(status="applied", affected=len(relabelled), cascade_persisted=False)

        for txn in relabelled:
            await self.storage.update("transactions", txn)
        return ActionResult(status="applied", affected=len(relabelled), cascade_persisted=True)

    async def _set_theme(self, theme: Theme) -> ActionResult:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme!r}")
        if theme == self.theme:
            return ActionResult(status="unchanged")
        self.theme = theme
        await self.storage.save_settings(Settings(theme=theme))
        return ActionResult(status="applied", affected=1)

    async def _clear_all(self) -> ActionResult:
        try:
            await self.storage.clear_all()
        except ClearAllBlocked as exc:
            logger.warning("Clear-all refused for %s: %s", self.user.id, exc)
            return ActionResult(status="blocked", message=str(exc))
        removed = len(self.transactions) + len(self.market_items)
        self.transactions = []
        self.market_items = []
        return ActionResult(status="applied", affected=removed)


async def open_session(
    user: User,
    storage: StorageAdapter | None = None,
    *,
    defaults: CategoryRegistry | None = None,
    timeout: float | None = 30.0,
) -> SessionStore:
    """Create, start and wait for the first snapshots of a session."""
    session = SessionStore(user, storage or open_storage(user), defaults=defaults)
    await session.start()
    await session.wait_ready(timeout)
    return session


def active_user() -> User | None:
    """The identity persisted by the last ``login``, if any."""
    return load_active_user(get_paths().local_store)


def set_active_user(user: User | None) -> None:
    save_active_user(get_paths().local_store, user)


async def open_active_session(*, timeout: float | None = 30.0) -> SessionStore:
    """Open the persisted session, starting a guest session when nobody is signed in."""
    user = active_user()
    if user is None:
        user = User.guest()
        set_active_user(user)
        logger.info("No active session; started guest session %s", user.id)
    return await open_session(user, timeout=timeout)
