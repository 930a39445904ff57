"""Enumeration definitions for lifeos-sync.

This module contains the standard Enum classes shared by the persistence
tiers, the conflict resolver, the sync scheduler and recovery.
"""

from enum import Enum


class TierName(str, Enum):
    """Identifies one physical storage medium in the persistence hierarchy.

    Attributes:
        LOCAL: Tier-1, the fast synchronous key-value store.
        OBJECT_STORE: Tier-2, the asynchronous transactional local store.
        REMOTE: Tier-3, the remote durable document store.
    """

    LOCAL = "local"
    OBJECT_STORE = "object_store"
    REMOTE = "remote"


class Resolution(str, Enum):
    """Outcome of comparing a local snapshot with a remote candidate.

    Attributes:
        TAKE_LOCAL: Keep the local snapshot and assert it back to the remote.
        TAKE_REMOTE: Replace the local snapshot with the remote one.
    """

    TAKE_LOCAL = "take_local"
    TAKE_REMOTE = "take_remote"


class SyncState(str, Enum):
    """State of the sync scheduler.

    Attributes:
        IDLE: No remote operation in flight.
        SYNCING: A push to the remote store is in progress.
    """

    IDLE = "idle"
    SYNCING = "syncing"


class RecoverySource(str, Enum):
    """Where the startup snapshot was found.

    Attributes:
        LOCAL: Tier-1 held a parseable snapshot.
        OBJECT_STORE: Tier-2 held a snapshot with the schema marker.
        BACKUP: The newest usable backup record was adopted.
        NONE: No prior state exists; first-run initialization is required.
    """

    LOCAL = "local"
    OBJECT_STORE = "object_store"
    BACKUP = "backup"
    NONE = "none"
