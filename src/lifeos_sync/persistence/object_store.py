"""SQLAlchemy-backed document store for Tier-2."""

import threading
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.db import make_engine, make_session_factory
from lifeos_sync.persistence.errors import SerializationError, StorageUnavailable
from lifeos_sync.persistence.models import Base, StoredDocument

logger = get_logger(__name__)


class ObjectStore:
    """Transactional local store for whole JSON documents.

    The schema is created on first use rather than at construction, so a
    broken database URL only makes this tier unavailable instead of
    preventing the engine from starting.
    """

    def __init__(self, database_url: str):
        """Initialize the store with a database URL.

        Args:
            database_url: SQLAlchemy connection string.
        """
        self.database_url = database_url
        self.engine = make_engine(database_url)
        self.SessionLocal = make_session_factory(self.engine)
        self._schema_ready = False
        # One connection may be shared by worker threads (in-memory SQLite).
        self._lock = threading.Lock()

    def open(self):
        """Creates the schema if needed.

        Raises:
            StorageUnavailable: If the database cannot be reached.
        """
        if self._schema_ready:
            return
        with self._lock:
            try:
                Base.metadata.create_all(self.engine)
            except SQLAlchemyError as e:
                raise StorageUnavailable(
                    f"Cannot open object store at {self.database_url}: {e}"
                ) from e
            self._schema_ready = True

    def get(self, document_id: str) -> Optional[dict[str, Any]]:
        self.open()
        try:
            with self._lock, self.SessionLocal() as session:
                row = session.get(StoredDocument, document_id)
                if not row:
                    return None
                return dict(row.body)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Object store read failed: {e}") from e
        except (ValueError, TypeError) as e:
            raise SerializationError(
                f"Stored document '{document_id}' is corrupt: {e}"
            ) from e

    def put(self, document_id: str, body: dict[str, Any]):
        self.open()
        try:
            with self._lock, self.SessionLocal() as session:
                # Replaced without loading, so a corrupt row can be overwritten.
                session.execute(
                    delete(StoredDocument).where(StoredDocument.id == document_id)
                )
                session.add(
                    StoredDocument(
                        id=document_id,
                        body=body,
                        stored_at=datetime.now(timezone.utc),
                    )
                )
                session.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Object store write failed: {e}") from e
        except (ValueError, TypeError) as e:
            raise SerializationError(
                f"Document '{document_id}' is not JSON serializable: {e}"
            ) from e

    def close(self):
        self.engine.dispose()
        logger.debug("Object store engine disposed.")
