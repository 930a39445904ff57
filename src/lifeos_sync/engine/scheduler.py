"""Periodic and push-triggered reconciliation with the remote store."""

from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lifeos_sync.clock import Clock
from lifeos_sync.engine.backups import BackupManager
from lifeos_sync.engine.conflict import (
    LIVE_THRESHOLDS,
    STARTUP_THRESHOLDS,
    ConflictResolver,
    ResolverThresholds,
    Verdict,
)
from lifeos_sync.engine.store import SnapshotStore
from lifeos_sync.models.enums import Resolution, SyncState
from lifeos_sync.models.snapshot import Snapshot
from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.tiers import RemoteTier

logger = get_logger(__name__)

SYNC_JOB_ID = "remote-sync"


class SyncScheduler:
    """Keeps the local snapshot and the remote copy converged.

    Pushes the local snapshot on a fixed interval, reacts to pushed remote
    changes through the conflict resolver, and runs one coarser
    reconciliation at startup. Remote operations are no-ops when remote
    sync is not configured.
    """

    def __init__(
        self,
        store: SnapshotStore,
        remote: RemoteTier,
        backups: BackupManager,
        clock: Clock,
        render: Optional[Callable[[], None]] = None,
        interval_seconds: float = 30,
        min_gap_seconds: float = 25,
        live_thresholds: ResolverThresholds = LIVE_THRESHOLDS,
        startup_thresholds: ResolverThresholds = STARTUP_THRESHOLDS,
    ):
        """Initializes the sync scheduler.

        Args:
            store: The snapshot store.
            remote: The Tier-3 adapter.
            backups: Used to back up local state before a remote overwrite.
            clock: Time source for the sync gap check.
            render: Zero-argument callback run after a pushed remote
                snapshot replaced the local one.
            interval_seconds: How often the periodic push job runs.
            min_gap_seconds: Skip a periodic push if the last successful
                remote save is more recent than this.
            live_thresholds: Resolver margins for pushed changes.
            startup_thresholds: Resolver margins for startup reconciliation.
        """
        self.store = store
        self.remote = remote
        self.backups = backups
        self.clock = clock
        self.render = render
        self.interval_seconds = interval_seconds
        self.min_gap_ms = int(min_gap_seconds * 1000)
        self.live_resolver = ConflictResolver(live_thresholds)
        self.startup_resolver = ConflictResolver(startup_thresholds)
        self.scheduler = AsyncIOScheduler()
        self._state = SyncState.IDLE
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> SyncState:
        return self._state

    def start(self):
        """Subscribes to remote pushes and starts the periodic job.

        Must be called from within a running event loop.
        """
        if self.scheduler.running:
            return
        if not self.remote.configured():
            logger.info("Remote sync not configured; running local-only.")
            return

        self._unsubscribe = self.remote.subscribe(self.handle_remote_push)
        self.scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.interval_seconds),
            id=SYNC_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Sync scheduler started (every {self.interval_seconds}s).")

    def stop(self):
        """Stops the periodic job and the push subscription."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.info("Sync scheduler stopped.")

    async def tick(self) -> bool:
        """Periodic job: pushes unless a push succeeded very recently."""
        if not self.remote.configured() or self.store.get() is None:
            return False
        since_last = self.clock.now_ms() - self.remote.last_success_ms
        if since_last <= self.min_gap_ms:
            return False
        return await self.push()

    async def push(self) -> bool:
        """Writes the local snapshot to the remote store.

        Returns:
            True on success; False if there is nothing to push, remote sync
            is off, a push is already running, or the write failed.
        """
        if self._state is SyncState.SYNCING:
            return False
        snapshot = self.store.get()
        if snapshot is None or not self.remote.configured():
            return False

        self._state = SyncState.SYNCING
        try:
            ok = await self.remote.save(snapshot)
        finally:
            self._state = SyncState.IDLE
        if ok:
            logger.debug("Local snapshot pushed to remote.")
        return ok

    async def handle_remote_push(self, remote: Snapshot) -> Optional[Resolution]:
        """Reacts to a snapshot pushed by the remote store.

        Returns:
            The resolution applied, or None if the push was ignored.
        """
        if not self.store.ready:
            logger.info("Ignoring remote push received before recovery.")
            return None
        local = self.store.get()
        if local is not None and local.to_document() == remote.to_document():
            # Echo of our own write.
            return None

        verdict = self.live_resolver.compare(local, remote)
        self._log_verdict("Realtime sync", verdict)

        if verdict.resolution is Resolution.TAKE_REMOTE:
            self.backups.create_backup("pre-realtime-sync")
            self.store.adopt(remote)
            self._render()
        else:
            await self.push()
        return verdict.resolution

    async def reconcile_on_startup(self) -> Optional[Resolution]:
        """Compares the local snapshot against a freshly loaded remote copy.

        Returns:
            The resolution applied, or None if remote sync is off or the
            remote store holds no copy.
        """
        if not self.remote.configured():
            return None

        remote = await self.remote.load()
        local = self.store.get()
        if remote is None:
            if local is not None:
                logger.info("No remote data, pushing local snapshot.")
                await self.push()
            return None

        verdict = self.startup_resolver.compare(local, remote)
        self._log_verdict("Startup sync", verdict)

        if verdict.resolution is Resolution.TAKE_REMOTE:
            if verdict.local_density >= self.startup_resolver.thresholds.empty_floor:
                self.backups.create_backup("pre-cloud-sync")
            self.store.adopt(remote)
        elif local is not None:
            await self.push()
        return verdict.resolution

    def _render(self):
        if self.render is None:
            return
        try:
            self.render()
        except Exception as e:
            logger.exception(f"Render callback failed: {str(e)}")

    def _log_verdict(self, context: str, verdict: Verdict):
        logger.info(
            f"{context}: {verdict.resolution.value} "
            f"(local {verdict.local_density} entries, remote {verdict.remote_density} entries)",
            extra={"extra_fields": verdict.model_dump(mode="json")},
        )
