"""Firestore backend for authenticated sessions.

Layout::

    users/{uid}                  - settings document (merged on write)
    users/{uid}/transactions     - one document per transaction
    users/{uid}/market_items     - one document per market item

Snapshot listeners fire on a client thread and are forwarded to the event
loop. Blocking client calls run in a worker thread. Nothing is retried.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, ClassVar, Literal

from google.api_core import exceptions as google_exceptions

from cofrinho.domain.models import Settings
from cofrinho.runtime import get_logger, get_paths
from cofrinho.storage.base import (
    MANUAL_DELETION_MESSAGE,
    ClearAllBlocked,
    RecordKind,
    RemoteStorageError,
    SnapshotCallback,
    StorageAdapter,
    StoredRecord,
    Subscription,
    decode_record,
)

logger = get_logger(__name__)

USERS_COLLECTION = "users"
# Firestore rejects batches with more writes than this.
MAX_BATCH_WRITES = 500


def create_firestore_client(credentials_path: Path | None = None) -> Any:
    """Initialize the default Firebase app once and return its Firestore client.

    Uses the service-account file when it exists, application default
    credentials otherwise.
    """
    import firebase_admin
    from firebase_admin import credentials, firestore
    from google.auth import exceptions as auth_exceptions

    try:
        if not firebase_admin._apps:
            path = credentials_path or get_paths().firebase_credentials
            if path.exists():
                logger.info("Initializing Firebase with service account %s", path)
                cred = credentials.Certificate(str(path))
            else:
                logger.info("Initializing Firebase with application default credentials")
                cred = credentials.ApplicationDefault()
            firebase_admin.initialize_app(cred)
        return firestore.client()
    except (ValueError, auth_exceptions.DefaultCredentialsError) as e:
        raise RemoteStorageError(f"Could not initialize Firestore: {e}") from e


class FirestoreStorage(StorageAdapter):
    """Remote backend scoped to one user id."""

    mode: ClassVar[Literal["local", "cloud"]] = "cloud"

    def __init__(self, user_id: str, client: Any | None = None) -> None:
        self.user_id = user_id
        self._client = client if client is not None else create_firestore_client()

    def _user_document(self) -> Any:
        return self._client.collection(USERS_COLLECTION).document(self.user_id)

    def _collection(self, kind: RecordKind) -> Any:
        return self._user_document().collection(kind)

    async def _call[R](self, operation: str, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except google_exceptions.GoogleAPIError as e:
            logger.error("Firestore %s failed for user %s: %s", operation, self.user_id, e)
            raise RemoteStorageError(f"Firestore {operation} failed: {e}") from e

    def _decode(self, kind: RecordKind, document: Any) -> StoredRecord:
        data = dict(document.to_dict() or {})
        stored_id = data.get("id")
        if stored_id is not None and stored_id != document.id:
            logger.warning(
                "Document %s/%s carries id field %r; using the document key",
                kind,
                document.id,
                stored_id,
            )
        data["id"] = document.id
        return decode_record(kind, data)

    def subscribe(self, kind: RecordKind, callback: SnapshotCallback) -> Subscription:
        loop = asyncio.get_running_loop()
        active = True

        def deliver(records: list[StoredRecord]) -> None:
            if active:
                callback(records)

        def on_snapshot(documents: Any, changes: Any, read_time: Any) -> None:
            records = [self._decode(kind, document) for document in documents]
            loop.call_soon_threadsafe(deliver, records)

        watch = self._collection(kind).on_snapshot(on_snapshot)

        def cancel() -> None:
            nonlocal active
            active = False
            watch.unsubscribe()

        return Subscription(cancel)

    async def add_batch(self, kind: RecordKind, records: Sequence[StoredRecord]) -> None:
        collection = self._collection(kind)
        for start in range(0, len(records), MAX_BATCH_WRITES):
            batch = self._client.batch()
            for record in records[start : start + MAX_BATCH_WRITES]:
                batch.set(collection.document(record.id), record.to_record())
            await self._call("batch write", batch.commit)
        logger.debug("Wrote %d %s to Firestore", len(records), kind)

    async def update(self, kind: RecordKind, record: StoredRecord) -> None:
        await self._call("update", self._collection(kind).document(record.id).update, record.to_record())

    async def delete(self, kind: RecordKind, record_id: str) -> None:
        await self._call("delete", self._collection(kind).document(record_id).delete)

    async def load_settings(self) -> Settings:
        snapshot = await self._call("settings read", self._user_document().get)
        if not snapshot.exists:
            return Settings()
        return Settings.from_record(snapshot.to_dict())

    async def save_settings(self, partial: Settings) -> None:
        await self._call("settings write", self._user_document().set, partial.to_record(), merge=True)

    async def clear_all(self) -> None:
        raise ClearAllBlocked(MANUAL_DELETION_MESSAGE)
