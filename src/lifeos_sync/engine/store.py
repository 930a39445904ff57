"""In-memory owner of the authoritative application-state snapshot."""

import asyncio
from functools import partial
from typing import Callable, Coroutine, Optional

from lifeos_sync.clock import Clock
from lifeos_sync.models.enums import TierName
from lifeos_sync.models.snapshot import Snapshot
from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.errors import RecoveryPendingError
from lifeos_sync.persistence.tiers import LocalTier, ObjectStoreTier, RemoteTier

logger = get_logger(__name__)

Mutator = Callable[[Snapshot], Optional[Snapshot]]


class SnapshotStore:
    """Holds the single live snapshot and writes it through every tier.

    The in-memory copy is always replaced before any tier write is issued,
    so `get()` right after `set()` observes the new value no matter how the
    slower tiers resolve. Tier-1 is written synchronously; Tier-2 and
    Tier-3 writes run as tracked tasks, ordered per tier, whose failures
    are logged centrally.
    Readers only ever receive copies.
    """

    def __init__(
        self,
        local: LocalTier,
        object_store: ObjectStoreTier,
        remote: RemoteTier,
        clock: Clock,
    ):
        self.local = local
        self.object_store = object_store
        self.remote = remote
        self.clock = clock
        self._snapshot: Optional[Snapshot] = None
        self._ready = False
        self._pending: set[asyncio.Task] = set()
        self._tails: dict[TierName, asyncio.Task] = {}
        self._deferred: set[TierName] = set()

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self):
        """Allows mutations. Called once startup recovery has finished."""
        self._ready = True

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def get(self) -> Optional[Snapshot]:
        """Returns a copy of the current snapshot, or None if there is none."""
        if self._snapshot is None:
            return None
        return self._snapshot.model_copy(deep=True)

    def set(self, snapshot: Snapshot) -> bool:
        """Stamps and stores a new snapshot, then writes it through.

        Returns:
            True if the Tier-1 write succeeded.

        Raises:
            RecoveryPendingError: If called before startup recovery.
        """
        if not self._ready:
            raise RecoveryPendingError(
                "Snapshot cannot be mutated before startup recovery completes"
            )
        stamped = snapshot.model_copy(deep=True)
        stamped.last_modified = self.clock.now_ms()
        self._snapshot = stamped
        return self._write_through(stamped, push_remote=True)

    def mutate(self, fn: Mutator) -> bool:
        """Applies fn to a copy of the current snapshot and stores the result.

        fn may modify its argument in place and return None.

        Raises:
            LookupError: If there is no snapshot yet.
        """
        current = self.get()
        if current is None:
            raise LookupError("No snapshot to mutate; initialize first")
        result = fn(current)
        return self.set(result if result is not None else current)

    def adopt(
        self,
        snapshot: Snapshot,
        push_remote: bool = False,
        write_through: bool = True,
    ) -> bool:
        """Replaces the snapshot wholesale without re-stamping it.

        Used when the replacement comes from a tier, a backup or the remote
        store, so that it keeps the timestamp it was written with.

        Args:
            snapshot: The replacement.
            push_remote: Also write the replacement to Tier-3.
            write_through: Persist to Tier-1 and Tier-2 at all.

        Returns:
            True if Tier-1 succeeded, or if no write was requested.
        """
        self._snapshot = snapshot.model_copy(deep=True)
        if not write_through:
            return True
        return self._write_through(self._snapshot, push_remote=push_remote)

    def reset(self):
        """Clears Tier-1 and drops the in-memory snapshot.

        Tier-2 and Tier-3 keep their copies until overwritten.
        """
        self.local.clear()
        self._snapshot = None
        self._deferred.clear()
        logger.info("Snapshot store reset.")

    async def flush(self):
        """Waits for outstanding tier writes and performs deferred ones."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._deferred and self._snapshot is not None:
            deferred = set(self._deferred)
            self._deferred.clear()
            if TierName.OBJECT_STORE in deferred:
                self._report(TierName.OBJECT_STORE, await self.object_store.save(self._snapshot))
            if TierName.REMOTE in deferred and self.remote.is_available():
                self._report(TierName.REMOTE, await self.remote.save(self._snapshot))

    def _write_through(self, snapshot: Snapshot, push_remote: bool) -> bool:
        local_ok = self.local.save(snapshot)
        self._report(TierName.LOCAL, local_ok)

        self._spawn(TierName.OBJECT_STORE, self.object_store.save(snapshot))
        if push_remote and self.remote.is_available():
            self._spawn(TierName.REMOTE, self.remote.save(snapshot))
        return local_ok

    def _spawn(self, tier: TierName, coro: Coroutine):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to run on; the write happens on the next flush().
            coro.close()
            self._deferred.add(tier)
            return
        task = loop.create_task(
            self._after(self._tails.get(tier), coro),
            name=f"snapshot-write-{tier.value}",
        )
        self._tails[tier] = task
        self._pending.add(task)
        task.add_done_callback(partial(self._on_write_done, tier))

    @staticmethod
    async def _after(previous: Optional[asyncio.Task], coro: Coroutine) -> bool:
        # Writes to one tier land in the order they were issued.
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await coro

    def _on_write_done(self, tier: TierName, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            logger.warning(f"Write to {tier.value} tier was cancelled.")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Write to {tier.value} tier raised: {str(error)}",
                exc_info=error,
            )
            return
        self._report(tier, task.result())

    def _report(self, tier: TierName, ok: bool):
        if ok:
            logger.debug(f"Snapshot written to {tier.value} tier.")
        else:
            logger.warning(
                f"Snapshot write to {tier.value} tier failed.",
                extra={"extra_fields": {"tier": tier.value}},
            )
