"""Storage adapters: device-local JSON for guests, Firestore for signed-in users.

Usage:
    from cofrinho.storage import open_storage

    storage = open_storage(user)
    subscription = storage.subscribe("transactions", on_transactions)
    await storage.add("transactions", txn)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from cofrinho.domain.models import User
from cofrinho.runtime import get_paths
from cofrinho.storage.base import (
    RECORD_KINDS,
    ClearAllBlocked,
    RecordKind,
    RemoteStorageError,
    StorageAdapter,
    StorageError,
    Subscription,
)
from cofrinho.storage.local import LocalStorage, load_active_user, save_active_user


def open_storage(
    user: User,
    *,
    local_directory: Path | None = None,
    firestore_client: Any | None = None,
) -> StorageAdapter:
    """Pick the backend for ``user``. The choice is fixed for the session."""
    if user.is_guest:
        return LocalStorage(local_directory or get_paths().local_store)

    from cofrinho.storage.cloud import FirestoreStorage

    return FirestoreStorage(user.id, client=firestore_client)


__all__ = [
    "RECORD_KINDS",
    "ClearAllBlocked",
    "LocalStorage",
    "RecordKind",
    "RemoteStorageError",
    "StorageAdapter",
    "StorageError",
    "Subscription",
    "load_active_user",
    "open_storage",
    "save_active_user",
]
