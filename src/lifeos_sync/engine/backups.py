"""Bounded, time-deduplicated ring of historical snapshots.

Backups are a best-effort safety net: no method here raises to its caller.
The ring lives as one JSON array, newest first, under a fixed key of the
Tier-1 key-value store.
"""

from typing import Optional

from lifeos_sync.clock import Clock
from lifeos_sync.engine.store import SnapshotStore
from lifeos_sync.models.backup import BackupRecord
from lifeos_sync.models.snapshot import Snapshot
from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.codec import decode_backups, encode_backups
from lifeos_sync.persistence.errors import PersistenceError
from lifeos_sync.persistence.kv_store import KeyValueStore

logger = get_logger(__name__)

DEFAULT_BACKUP_LIMIT = 10
DEFAULT_DEDUP_WINDOW_MS = 5 * 60 * 1000


class BackupManager:
    """Creates, lists and restores snapshot backups."""

    def __init__(
        self,
        kv_store: KeyValueStore,
        store: SnapshotStore,
        clock: Clock,
        key: str = "life_os_backups",
        limit: int = DEFAULT_BACKUP_LIMIT,
        dedup_window_ms: int = DEFAULT_DEDUP_WINDOW_MS,
    ):
        """Initializes the backup manager.

        Args:
            kv_store: Key-value store holding the backup ring.
            store: The snapshot store to copy from and restore into.
            clock: Time source for backup timestamps and the dedup window.
            key: Key of the backup ring inside kv_store.
            limit: Maximum number of records kept.
            dedup_window_ms: Minimum age of the newest record before a new
                one is taken.
        """
        self.kv_store = kv_store
        self.store = store
        self.clock = clock
        self.key = key
        self.limit = limit
        self.dedup_window_ms = dedup_window_ms

    def _read(self) -> list[BackupRecord]:
        raw = self.kv_store.get(self.key)
        if not raw:
            return []
        return decode_backups(raw)

    def create_backup(self, reason: str = "manual") -> bool:
        """Prepends a copy of the current snapshot to the ring.

        Returns:
            True if a backup was written or skipped because the newest one
            is still inside the dedup window; False if there is nothing
            worth backing up or the ring could not be written.
        """
        snapshot = self.store.get()
        if snapshot is None or not snapshot.has_schema_marker():
            return False

        try:
            backups = self._read()
            now = self.clock.now_ms()
            if backups and now - backups[0].timestamp < self.dedup_window_ms:
                return True

            backups.insert(
                0, BackupRecord(timestamp=now, reason=reason, data=snapshot)
            )
            backups = backups[: self.limit]
            self.kv_store.set(self.key, encode_backups(backups))
        except PersistenceError as e:
            logger.error(f"Backup error: {str(e)}")
            return False

        logger.info(
            f"Backup created: {reason}",
            extra={"extra_fields": {"reason": reason, "backups": len(backups)}},
        )
        return True

    def list_backups(self) -> list[BackupRecord]:
        """Returns all backups, newest first."""
        try:
            return self._read()
        except PersistenceError as e:
            logger.error(f"Cannot read backups: {str(e)}")
            return []

    def latest_recoverable(self) -> Optional[Snapshot]:
        """The newest backed-up snapshot that looks like real state."""
        for record in self.list_backups():
            if record.data.has_schema_marker():
                return record.data
        return None

    def restore_from_backup(self, index: int = 0) -> bool:
        """Replaces the live snapshot with a backup and writes it everywhere.

        The restored snapshot goes through the full cascade, including a
        push to the remote store so other devices pick it up.

        Args:
            index: Position in the ring, 0 being the newest.

        Returns:
            True if the snapshot was replaced.
        """
        if not self.store.ready:
            logger.error("Cannot restore a backup before startup recovery.")
            return False
        backups = self.list_backups()
        if index < 0 or index >= len(backups):
            logger.error(f"No backup found at index {index}")
            return False

        record = backups[index]
        if not self.store.adopt(record.data, push_remote=True):
            logger.warning("Restored backup could not be written to the local tier.")
        logger.info(
            f"Restored backup #{index} ({record.reason})",
            extra={"extra_fields": {"backup_timestamp": record.timestamp}},
        )
        return True
