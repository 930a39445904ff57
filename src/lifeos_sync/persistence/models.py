"""SQLAlchemy models for the Tier-2 object store.

Tier-2 holds whole documents keyed by a fixed identifier. There is exactly
one live row per identifier; a save overwrites it in a single transaction.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class StoredDocument(Base):
    """A whole application-state document.

    Attributes:
        id: Fixed document identifier (e.g. 'userData').
        body: The JSON document exactly as the engine serialized it.
        stored_at: When the row was last written.
    """

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSON)
    stored_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
