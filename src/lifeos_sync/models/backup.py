"""Data model for disaster-recovery backup records."""

from pydantic import Field

from lifeos_sync.models.base import DocumentModel, Milliseconds
from lifeos_sync.models.snapshot import Snapshot


class BackupRecord(DocumentModel):
    """A historical copy of the application state.

    Attributes:
        timestamp: When the backup was taken, in milliseconds.
        reason: Free-text cause (e.g. 'auto-load', 'pre-realtime-sync').
        data: Deep copy of the snapshot at that moment.
    """

    timestamp: Milliseconds = Field(
        ..., description="When the backup was taken, in milliseconds."
    )
    reason: str = Field(..., description="Free-text cause of the backup.")
    data: Snapshot = Field(
        ..., description="Deep copy of the snapshot at that moment."
    )
