"""HTTP implementation of the remote document service.

Talks to a plain JSON document endpoint:

    GET  {base_url}/documents/{id}   -> 200 document | 404
    PUT  {base_url}/documents/{id}   <- document

Push notifications are emulated by polling: a background task re-reads the
document and fires the listener whenever its `lastModified` changes.
"""

import asyncio
import inspect
from typing import Any, Optional

import requests

from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.errors import (
    PersistenceError,
    RemoteUnreachable,
    SerializationError,
)
from lifeos_sync.remote.service import (
    Document,
    RemoteCallback,
    RemoteDocumentService,
    Unsubscribe,
)

logger = get_logger(__name__)

_NO_DOCUMENT = object()


class HttpRemoteService(RemoteDocumentService):
    """Remote store reached over HTTP with a bearer token."""

    def __init__(
        self,
        base_url: Optional[str],
        token: Optional[str] = None,
        timeout: float = 10.0,
        poll_interval: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        """Initializes the HTTP client.

        Args:
            base_url: Root URL of the document API. None disables remote sync.
            token: Bearer token sent with every request.
            timeout: Per-request timeout in seconds.
            poll_interval: Seconds between change polls for subscribers.
            session: Optional pre-configured requests session.
        """
        self.base_url = base_url.rstrip("/") if base_url else None
        self.token = token
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.session = session or requests.Session()
        self._pollers: set[asyncio.Task] = set()

    def configured(self) -> bool:
        return bool(self.base_url and self.token)

    def _url(self, document_id: str) -> str:
        return f"{self.base_url}/documents/{document_id}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def _get(self, document_id: str) -> Optional[Document]:
        try:
            response = self.session.get(
                self._url(document_id),
                headers=self._headers(),
                timeout=self.timeout,
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RemoteUnreachable(f"GET {document_id} failed: {e}") from e
        if not isinstance(body, dict):
            raise SerializationError(
                f"GET {document_id} returned {type(body).__name__}, not an object"
            )
        return body

    def _put(self, document_id: str, document: Document):
        try:
            response = self.session.put(
                self._url(document_id),
                json=document,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise RemoteUnreachable(f"PUT {document_id} failed: {e}") from e

    async def load_document(self, document_id: str) -> Optional[Document]:
        return await asyncio.to_thread(self._get, document_id)

    async def save_document(self, document_id: str, document: Document):
        await asyncio.to_thread(self._put, document_id, document)

    def subscribe(
        self, document_id: str, callback: RemoteCallback
    ) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(
            self._poll(document_id, callback)
        )
        self._pollers.add(task)
        task.add_done_callback(self._pollers.discard)

        def unsubscribe():
            task.cancel()

        return unsubscribe

    async def _poll(self, document_id: str, callback: RemoteCallback):
        # The first successful read, including "no document", sets the
        # baseline; later changes of lastModified are delivered.
        has_baseline = False
        last_seen: Any = None
        while True:
            try:
                document = await self.load_document(document_id)
            except PersistenceError as e:
                logger.warning(f"Remote poll failed, retrying: {str(e)}")
            else:
                if document is None:
                    marker = _NO_DOCUMENT
                else:
                    marker = document.get("lastModified")
                if has_baseline and document is not None and marker != last_seen:
                    try:
                        result = callback(document)
                        if inspect.isawaitable(result):
                            await result
                    except Exception as e:
                        logger.exception(f"Remote listener failed: {str(e)}")
                last_seen = marker
                has_baseline = True
            await asyncio.sleep(self.poll_interval)
