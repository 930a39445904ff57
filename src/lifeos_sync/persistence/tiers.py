"""Uniform adapters over the three storage tiers.

Every adapter catches its own failures, logs them and reports a plain
success flag (or None on load). A failure in one tier never affects
another: callers attempt tiers independently.

Tier-1 is synchronous; Tier-2 and Tier-3 are coroutines that suspend the
caller at the I/O point.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from lifeos_sync.clock import Clock
from lifeos_sync.models.enums import TierName
from lifeos_sync.models.snapshot import Snapshot
from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.codec import decode_snapshot, encode_snapshot
from lifeos_sync.persistence.errors import (
    QuotaExceeded,
    RemoteUnconfigured,
    RemoteUnreachable,
    SerializationError,
    StorageUnavailable,
)
from lifeos_sync.persistence.kv_store import KeyValueStore
from lifeos_sync.persistence.object_store import ObjectStore
from lifeos_sync.remote.service import Document, RemoteDocumentService, Unsubscribe

logger = get_logger(__name__)

# Keys the remote store adds to a document; they are never part of a Snapshot.
REMOTE_METADATA_KEYS = ("deviceId", "lastUpdated")


class TierAdapter(ABC):
    """Common surface of every storage tier."""

    name: TierName

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the tier can currently be used."""
        pass  # pragma: no cover


class SyncTierAdapter(TierAdapter):
    """A tier whose I/O is short and blocking."""

    @abstractmethod
    def load(self) -> Optional[Snapshot]:
        pass  # pragma: no cover

    @abstractmethod
    def save(self, snapshot: Snapshot) -> bool:
        pass  # pragma: no cover


class AsyncTierAdapter(TierAdapter):
    """A tier whose I/O is awaited."""

    @abstractmethod
    async def load(self) -> Optional[Snapshot]:
        pass  # pragma: no cover

    @abstractmethod
    async def save(self, snapshot: Snapshot) -> bool:
        pass  # pragma: no cover


class LocalTier(SyncTierAdapter):
    """Tier-1: the snapshot as JSON text under one key of a key-value store."""

    name = TierName.LOCAL

    def __init__(self, store: KeyValueStore, key: str):
        self.store = store
        self.key = key

    def is_available(self) -> bool:
        try:
            self.store.keys()
            return True
        except StorageUnavailable:
            return False

    def load(self) -> Optional[Snapshot]:
        try:
            raw = self.store.get(self.key)
        except StorageUnavailable as e:
            logger.warning(f"Local tier unavailable: {str(e)}")
            return None
        except SerializationError as e:
            logger.warning(f"Local snapshot is unreadable: {str(e)}")
            return None
        if not raw:
            return None
        try:
            return decode_snapshot(raw)
        except SerializationError as e:
            logger.warning(f"Local snapshot is unreadable: {str(e)}")
            return None

    def save(self, snapshot: Snapshot) -> bool:
        try:
            self.store.set(self.key, encode_snapshot(snapshot))
            return True
        except QuotaExceeded as e:
            logger.error(
                f"Local tier over quota: {str(e)}",
                extra={"extra_fields": {"tier": self.name.value, "required": e.required}},
            )
        except (StorageUnavailable, SerializationError) as e:
            logger.error(f"Local save failed: {str(e)}")
        return False

    def clear(self) -> bool:
        try:
            self.store.remove(self.key)
            return True
        except StorageUnavailable as e:
            logger.error(f"Local clear failed: {str(e)}")
            return False


class ObjectStoreTier(AsyncTierAdapter):
    """Tier-2: the snapshot as one row of the SQL object store."""

    name = TierName.OBJECT_STORE

    def __init__(self, store: ObjectStore, document_id: str = "userData"):
        self.store = store
        self.document_id = document_id

    def is_available(self) -> bool:
        try:
            self.store.open()
            return True
        except StorageUnavailable as e:
            logger.warning(f"Object store unavailable: {str(e)}")
            return False

    async def load(self) -> Optional[Snapshot]:
        try:
            body = await asyncio.to_thread(self.store.get, self.document_id)
        except (StorageUnavailable, SerializationError) as e:
            logger.warning(f"Object store load failed: {str(e)}")
            return None
        if body is None:
            return None
        try:
            return decode_snapshot(body)
        except SerializationError as e:
            logger.warning(f"Object store snapshot is unreadable: {str(e)}")
            return None

    async def save(self, snapshot: Snapshot) -> bool:
        try:
            await asyncio.to_thread(
                self.store.put, self.document_id, snapshot.to_document()
            )
            return True
        except (StorageUnavailable, SerializationError) as e:
            logger.error(f"Object store save failed: {str(e)}")
            return False


def strip_remote_metadata(document: Document) -> Document:
    """Drops the keys the remote store adds.

    Raises:
        SerializationError: If the remote returned something other than an
            object.
    """
    if not isinstance(document, dict):
        raise SerializationError(
            f"Remote document must be an object, got {type(document).__name__}"
        )
    return {k: v for k, v in document.items() if k not in REMOTE_METADATA_KEYS}


class RemoteTier(AsyncTierAdapter):
    """Tier-3: the snapshot as a document in the remote store.

    Remote sync is optional. Every operation first checks `configured()`
    and quietly does nothing when remote sync is not set up.
    """

    name = TierName.REMOTE

    def __init__(
        self,
        service: RemoteDocumentService,
        document_id: str,
        device_id: str,
        clock: Clock,
    ):
        self.service = service
        self.document_id = document_id
        self.device_id = device_id
        self.clock = clock
        self.last_success_ms = 0
        self.last_error: Optional[str] = None

    def configured(self) -> bool:
        return self.service.configured()

    def is_available(self) -> bool:
        return self.configured()

    def _require_configured(self):
        if not self.configured():
            raise RemoteUnconfigured("Remote sync is not configured")

    async def load(self) -> Optional[Snapshot]:
        try:
            self._require_configured()
            document = await self.service.load_document(self.document_id)
        except RemoteUnconfigured:
            return None
        except (RemoteUnreachable, SerializationError) as e:
            self.last_error = str(e)
            logger.warning(f"Remote load failed: {str(e)}")
            return None
        if document is None:
            return None
        try:
            return decode_snapshot(strip_remote_metadata(document))
        except SerializationError as e:
            logger.warning(f"Remote snapshot is unreadable: {str(e)}")
            return None

    async def save(self, snapshot: Snapshot) -> bool:
        try:
            self._require_configured()
            document = snapshot.to_document()
            document["deviceId"] = self.device_id
            document["lastUpdated"] = datetime.now(timezone.utc).isoformat()
            await self.service.save_document(self.document_id, document)
        except RemoteUnconfigured:
            return False
        except RemoteUnreachable as e:
            self.last_error = str(e)
            logger.warning(f"Remote save failed, will retry on next tick: {str(e)}")
            return False
        self.last_success_ms = self.clock.now_ms()
        self.last_error = None
        return True

    def subscribe(self, callback: Callable[[Snapshot], Any]) -> Unsubscribe:
        """Forwards decoded remote pushes to callback.

        Unreadable pushed documents are logged and dropped.
        """
        if not self.configured():
            return lambda: None

        def on_document(document: Document):
            try:
                snapshot = decode_snapshot(strip_remote_metadata(document))
            except SerializationError as e:
                logger.warning(f"Ignoring unreadable remote push: {str(e)}")
                return None
            return callback(snapshot)

        return self.service.subscribe(self.document_id, on_document)
