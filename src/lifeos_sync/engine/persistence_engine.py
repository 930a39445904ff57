"""Facade wiring the snapshot store, tiers, backups, sync and recovery.

One `PersistenceEngine` is constructed at process start and handed to
whatever needs the application state. Lifecycle:

    engine = PersistenceEngine(settings)
    await engine.start()          # recovery, startup sync, periodic sync
    if not engine.has_data():
        engine.init()             # first run
    engine.update_today(protein=140)
    ...
    await engine.stop()
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from lifeos_sync.clock import Clock, SystemClock
from lifeos_sync.config import EngineSettings
from lifeos_sync.engine.backups import BackupManager
from lifeos_sync.engine.conflict import count_entries
from lifeos_sync.engine.recovery import RecoveryOrchestrator
from lifeos_sync.engine.scheduler import SyncScheduler
from lifeos_sync.engine.store import Mutator, SnapshotStore
from lifeos_sync.models.backup import BackupRecord
from lifeos_sync.models.enums import RecoverySource, SyncState
from lifeos_sync.models.snapshot import DayRecord, Goals, Profile, Snapshot
from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.codec import decode_snapshot
from lifeos_sync.persistence.errors import SerializationError
from lifeos_sync.persistence.kv_store import FileKeyValueStore, KeyValueStore
from lifeos_sync.persistence.object_store import ObjectStore
from lifeos_sync.persistence.tiers import LocalTier, ObjectStoreTier, RemoteTier
from lifeos_sync.remote.http_service import HttpRemoteService
from lifeos_sync.remote.service import RemoteDocumentService
from lifeos_sync.utils import get_or_create_device_id, today_key

logger = get_logger(__name__)


class EngineStatus(BaseModel):
    has_data: bool
    last_modified: Optional[int] = None
    entries: int = 0
    backups: int = 0
    remote_configured: bool = False
    last_remote_sync_ms: int = 0
    last_remote_error: Optional[str] = None
    sync_state: SyncState = SyncState.IDLE
    pending_writes: int = 0
    device_id: str


def _default_running() -> dict[str, Any]:
    return {
        "goal": None,
        "injuries": [],
        "weekNumber": 1,
        "startDate": None,
        "baseline": {
            "currentDistance": None,
            "currentPace": None,
            "recentRaceTime": None,
            "maxHR": None,
        },
        "target": {"distance": None, "pace": None, "raceDate": None},
        "vdot": None,
        "currentPhase": "base",
    }


class PersistenceEngine:
    """Owns the application-state document for the lifetime of a process."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        kv_store: Optional[KeyValueStore] = None,
        object_store: Optional[ObjectStore] = None,
        remote_service: Optional[RemoteDocumentService] = None,
        clock: Optional[Clock] = None,
        render: Optional[Callable[[], None]] = None,
    ):
        """Builds the engine from settings, with optional injected parts.

        Args:
            settings: Engine configuration. Defaults to EngineSettings().
            kv_store: Tier-1 store. Defaults to files under storage_dir.
            object_store: Tier-2 store. Defaults to settings' database URL.
            remote_service: Tier-3 service. Defaults to the HTTP service.
            clock: Time source. Defaults to the system clock.
            render: UI refresh callback after pushed remote replacements.
        """
        self.settings = settings or EngineSettings()
        self.clock = clock or SystemClock()
        self.kv_store = kv_store or FileKeyValueStore(
            self.settings.storage_dir, quota_bytes=self.settings.local_quota_bytes
        )
        self.device_id = self.settings.device_id or get_or_create_device_id(
            self.kv_store, self.settings.device_id_key
        )

        if remote_service is None:
            remote_service = HttpRemoteService(
                self.settings.remote_url if self.settings.remote_enabled else None,
                token=self.settings.remote_token,
                timeout=self.settings.remote_timeout_seconds,
                poll_interval=self.settings.remote_poll_seconds,
            )

        if object_store is None and not self.settings.database_url:
            try:
                self.settings.storage_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Cannot create storage directory: {str(e)}")

        self.local = LocalTier(self.kv_store, self.settings.storage_key)
        self.object_store = ObjectStoreTier(
            object_store or ObjectStore(self.settings.resolved_database_url),
            self.settings.object_document_id,
        )
        self.remote = RemoteTier(
            remote_service,
            self.settings.remote_document_id,
            self.device_id,
            self.clock,
        )

        self.store = SnapshotStore(self.local, self.object_store, self.remote, self.clock)
        self.backups = BackupManager(
            self.kv_store,
            self.store,
            self.clock,
            key=self.settings.backups_key,
            limit=self.settings.backup_limit,
            dedup_window_ms=int(self.settings.backup_dedup_seconds * 1000),
        )
        self.scheduler = SyncScheduler(
            self.store,
            self.remote,
            self.backups,
            self.clock,
            render=render,
            interval_seconds=self.settings.sync_interval_seconds,
            min_gap_seconds=self.settings.sync_min_gap_seconds,
        )
        self.recovery = RecoveryOrchestrator(self.store, self.backups)

    async def start(self, start_scheduler: bool = True) -> RecoverySource:
        """Recovers local state and reconciles with the remote store.

        Call `init()` afterwards if `has_data()` is still False.

        Args:
            start_scheduler: Start periodic and push-driven sync. One-shot
                tools pass False.

        Returns:
            Where the local snapshot was recovered from.
        """
        result = await self.recovery.recover()
        await self.scheduler.reconcile_on_startup()
        if start_scheduler:
            self.scheduler.start()
        return result.source

    async def stop(self):
        """Stops syncing and waits for outstanding tier writes."""
        self.scheduler.stop()
        await self.store.flush()
        self.object_store.store.close()

    def init(self) -> Snapshot:
        """Creates and stores the first-run document."""
        snapshot = Snapshot(
            created_at=datetime.now(timezone.utc).isoformat(),
            profile=Profile(),
            running=_default_running(),
        )
        self.store.set(snapshot)
        logger.info("Initialized fresh application state.")
        return self.store.get()

    def get(self) -> Optional[Snapshot]:
        return self.store.get()

    def set(self, snapshot: Snapshot) -> bool:
        return self.store.set(snapshot)

    def mutate(self, fn: Mutator) -> bool:
        return self.store.mutate(fn)

    def has_data(self) -> bool:
        return self.store.get() is not None

    def is_onboarded(self) -> bool:
        snapshot = self.store.get()
        return bool(snapshot and snapshot.onboarding_complete)

    def reset(self):
        self.store.reset()

    def update_day(self, date_key: str, **updates: Any) -> bool:
        """Merges field updates into one day's record, creating it if needed."""

        def apply(snapshot: Snapshot):
            day = snapshot.days.get(date_key) or DayRecord()
            snapshot.days[date_key] = DayRecord.model_validate(
                {**day.model_dump(), **updates}
            )

        return self.store.mutate(apply)

    def update_today(self, **updates: Any) -> bool:
        return self.update_day(today_key(), **updates)

    def get_day(self, date_key: Optional[str] = None) -> Optional[DayRecord]:
        """Returns a copy of a day's record.

        Only today's record is created on demand; other missing days
        return None.
        """
        key = date_key or today_key()
        snapshot = self.store.get()
        if snapshot is None:
            return None
        if key not in snapshot.days:
            if key != today_key():
                return None
            self.update_day(key)
            snapshot = self.store.get()
        return snapshot.days[key]

    def set_profile(self, **fields: Any) -> bool:
        def apply(snapshot: Snapshot):
            current = snapshot.profile.model_dump() if snapshot.profile else {}
            snapshot.profile = Profile.model_validate({**current, **fields})

        return self.store.mutate(apply)

    def set_goals(self, **fields: Any) -> bool:
        def apply(snapshot: Snapshot):
            snapshot.goals = Goals.model_validate(
                {**snapshot.goals.model_dump(), **fields}
            )

        return self.store.mutate(apply)

    def complete_onboarding(self) -> bool:
        def apply(snapshot: Snapshot):
            snapshot.onboarding_complete = True

        return self.store.mutate(apply)

    def export_json(self) -> str:
        """Returns the current document as indented JSON ('null' if none)."""
        snapshot = self.store.get()
        return json.dumps(snapshot.to_document() if snapshot else None, indent=2)

    def import_json(self, text: str) -> bool:
        """Replaces the current document with an exported one.

        The document must carry a version. The previous state is backed
        up first.
        """
        try:
            document = json.loads(text)
            if not isinstance(document, dict) or not document.get("version"):
                logger.error("Import rejected: document has no version.")
                return False
            snapshot = decode_snapshot(document)
        except (json.JSONDecodeError, SerializationError) as e:
            logger.error(f"Import error: {str(e)}")
            return False

        self.backups.create_backup("pre-import")
        return self.store.set(snapshot)

    def create_backup(self, reason: str = "manual") -> bool:
        return self.backups.create_backup(reason)

    def restore_from_backup(self, index: int = 0) -> bool:
        return self.backups.restore_from_backup(index)

    def list_backups(self) -> list[BackupRecord]:
        return self.backups.list_backups()

    def status(self) -> EngineStatus:
        snapshot = self.store.get()
        return EngineStatus(
            has_data=snapshot is not None,
            last_modified=snapshot.last_modified if snapshot else None,
            entries=count_entries(snapshot),
            backups=len(self.backups.list_backups()),
            remote_configured=self.remote.configured(),
            last_remote_sync_ms=self.remote.last_success_ms,
            last_remote_error=self.remote.last_error,
            sync_state=self.scheduler.state,
            pending_writes=self.store.pending_writes,
            device_id=self.device_id,
        )
