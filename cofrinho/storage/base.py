"""Storage adapter contract shared by the local and the remote backends.

Every backend exposes the same asynchronous, subscription-based interface:
writes are coroutines, reads are subscriptions whose callbacks always run on
the event loop (never synchronously inside ``subscribe``). Callers treat the
subscription callback, not the write's return, as the source of truth.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, ClassVar, Literal

from cofrinho.domain.models import MarketItem, Settings, Transaction

RecordKind = Literal["transactions", "market_items"]
RECORD_KINDS: tuple[RecordKind, RecordKind] = ("transactions", "market_items")

StoredRecord = Transaction | MarketItem
SnapshotCallback = Callable[[list[Any]], None]

MANUAL_DELETION_MESSAGE = (
    "No modo nuvem, por segurança, a exclusão em massa foi desabilitada. Exclua os itens individualmente."
)


class StorageError(RuntimeError):
    """Base class for storage failures."""


class RemoteStorageError(StorageError):
    """Raised when the remote document store rejects or cannot complete an operation."""


class ClearAllBlocked(StorageError):
    """Raised when mass deletion is refused (remote sessions require manual deletion)."""


def decode_record(kind: RecordKind, data: dict[str, Any]) -> StoredRecord:
    if kind == "transactions":
        return Transaction.from_record(data)
    return MarketItem.from_record(data)


class Subscription:
    """Handle returned by ``subscribe``. ``unsubscribe`` is idempotent."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel: Callable[[], None] | None = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()


class StorageAdapter(ABC):
    """Uniform CRUD + subscribe interface for one session."""

    mode: ClassVar[Literal["local", "cloud"]]

    @abstractmethod
    def subscribe(self, kind: RecordKind, callback: SnapshotCallback) -> Subscription:
        """Deliver the full record list of ``kind`` to ``callback``.

        Must be called from a running event loop.
        """

    async def add(self, kind: RecordKind, record: StoredRecord) -> None:
        await self.add_batch(kind, [record])

    @abstractmethod
    async def add_batch(self, kind: RecordKind, records: Sequence[StoredRecord]) -> None: ...

    @abstractmethod
    async def update(self, kind: RecordKind, record: StoredRecord) -> None: ...

    @abstractmethod
    async def delete(self, kind: RecordKind, record_id: str) -> None: ...

    @abstractmethod
    async def load_settings(self) -> Settings: ...

    @abstractmethod
    async def save_settings(self, partial: Settings) -> None:
        """Merge the non-None fields of ``partial`` into the stored settings."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove every transaction and market item, or raise ClearAllBlocked."""
