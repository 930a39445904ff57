"""Contract for the Tier-3 remote document service.

The remote store holds one JSON document per id and can notify listeners
when that document changes (typically because another device wrote it).
Authentication and sessions belong to the concrete service; the engine
only asks whether the service is configured.
"""

import asyncio
import copy
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.errors import RemoteUnreachable

logger = get_logger(__name__)

Document = dict[str, Any]
RemoteCallback = Callable[[Document], Any]
Unsubscribe = Callable[[], None]


class RemoteDocumentService(ABC):
    """Abstract interface for a remote whole-document store."""

    @abstractmethod
    def configured(self) -> bool:
        """Whether remote sync is set up and may be used at all."""
        pass  # pragma: no cover

    @abstractmethod
    async def load_document(self, document_id: str) -> Optional[Document]:
        """Fetches the document.

        Args:
            document_id: The fixed document identifier.

        Returns:
            The document, or None if the remote holds none.

        Raises:
            RemoteUnreachable: On transient network failures.
            SerializationError: If the remote returned something other
                than a JSON object.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def save_document(self, document_id: str, document: Document):
        """Overwrites the document as a whole.

        Raises:
            RemoteUnreachable: On transient network failures.
        """
        pass  # pragma: no cover

    @abstractmethod
    def subscribe(
        self, document_id: str, callback: RemoteCallback
    ) -> Unsubscribe:
        """Registers a listener for pushed document changes.

        The callback receives the new document and may be a coroutine
        function. Must be called from within a running event loop.

        Returns:
            A zero-argument callable that removes the listener.
        """
        pass  # pragma: no cover


class InMemoryRemoteService(RemoteDocumentService):
    """In-process remote store shared between engine instances.

    Two engines given the same instance behave like two devices signed in
    to one account. Change notifications are delivered on the event loop,
    never synchronously inside `save_document`.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.online = True
        self._documents: dict[str, Document] = {}
        self._subscribers: dict[str, list[RemoteCallback]] = {}
        self._deliveries: set[asyncio.Task] = set()

    def configured(self) -> bool:
        return self.enabled

    def _check_online(self):
        if not self.online:
            raise RemoteUnreachable("Remote store is offline")

    async def load_document(self, document_id: str) -> Optional[Document]:
        self._check_online()
        document = self._documents.get(document_id)
        return copy.deepcopy(document) if document is not None else None

    async def save_document(self, document_id: str, document: Document):
        self._check_online()
        self._documents[document_id] = copy.deepcopy(document)
        self._notify(document_id)

    def subscribe(
        self, document_id: str, callback: RemoteCallback
    ) -> Unsubscribe:
        self._subscribers.setdefault(document_id, []).append(callback)

        def unsubscribe():
            listeners = self._subscribers.get(document_id, [])
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def _notify(self, document_id: str):
        for callback in list(self._subscribers.get(document_id, [])):
            task = asyncio.get_running_loop().create_task(
                self._deliver(callback, copy.deepcopy(self._documents[document_id]))
            )
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, callback: RemoteCallback, document: Document):
        try:
            result = callback(document)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Remote listener failed: {str(e)}")

    async def drain(self):
        """Waits until every queued change notification has been delivered."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)
