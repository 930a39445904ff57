"""Cold-start search for the most authoritative usable snapshot."""

from typing import Optional

from pydantic import BaseModel

from lifeos_sync.engine.backups import BackupManager
from lifeos_sync.engine.store import SnapshotStore
from lifeos_sync.models.enums import RecoverySource
from lifeos_sync.models.snapshot import Snapshot
from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.errors import PersistenceError

logger = get_logger(__name__)


class RecoveryResult(BaseModel):
    source: RecoverySource
    snapshot: Optional[Snapshot] = None

    @property
    def found(self) -> bool:
        return self.source is not RecoverySource.NONE


class RecoveryOrchestrator:
    """Searches the local tiers and the backup ring in priority order.

    Order: Tier-1, then Tier-2 (only documents carrying a profile), then
    the newest usable backup. A failing source is skipped. When nothing is
    found the caller is expected to run first-time initialization. Runs
    once per process and unlocks the snapshot store for mutation when done.
    """

    def __init__(self, store: SnapshotStore, backups: BackupManager):
        self.store = store
        self.backups = backups
        self._ran = False

    async def recover(self) -> RecoveryResult:
        if self._ran:
            raise RuntimeError("Recovery already ran for this process")
        self._ran = True
        try:
            result = await self._search()
        finally:
            self.store.mark_ready()
        logger.info(
            f"Startup recovery finished: {result.source.value}",
            extra={"extra_fields": {"source": result.source.value}},
        )
        return result

    async def _search(self) -> RecoveryResult:
        sources = (
            (RecoverySource.LOCAL, self._from_local),
            (RecoverySource.OBJECT_STORE, self._from_object_store),
            (RecoverySource.BACKUP, self._from_backups),
        )
        for source, load in sources:
            try:
                snapshot = await load()
            except PersistenceError as e:
                logger.warning(f"Recovery from {source.value} failed: {str(e)}")
                continue
            except Exception as e:
                logger.exception(f"Recovery from {source.value} raised: {str(e)}")
                continue
            if snapshot is not None:
                return RecoveryResult(source=source, snapshot=snapshot)
        return RecoveryResult(source=RecoverySource.NONE)

    async def _from_local(self) -> Optional[Snapshot]:
        snapshot = self.store.local.load()
        if snapshot is None:
            return None
        self.store.adopt(snapshot, write_through=False)
        self.backups.create_backup("auto-load")
        return snapshot

    async def _from_object_store(self) -> Optional[Snapshot]:
        snapshot = await self.store.object_store.load()
        if snapshot is None or not snapshot.has_schema_marker():
            return None
        logger.info("Recovered data from the object store.")
        self.store.adopt(snapshot)
        return snapshot

    async def _from_backups(self) -> Optional[Snapshot]:
        snapshot = self.backups.latest_recoverable()
        if snapshot is None:
            return None
        logger.info("Recovered data from backup.")
        self.store.adopt(snapshot)
        return snapshot
