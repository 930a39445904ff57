"""Error taxonomy for the persistence tiers.

Tier adapters raise these internally and convert them to boolean or None
results at their public boundary. None of them is allowed to escape the
SnapshotStore.
"""


class PersistenceError(Exception):
    """Base class for all persistence failures."""


class StorageUnavailable(PersistenceError):
    """A tier cannot be reached or opened."""


class QuotaExceeded(PersistenceError):
    """A Tier-1 write would exceed the store's capacity."""

    def __init__(self, key: str, required: int, quota: int):
        super().__init__(
            f"Writing '{key}' needs {required} bytes, quota is {quota} bytes"
        )
        self.key = key
        self.required = required
        self.quota = quota


class SerializationError(PersistenceError):
    """A snapshot could not be encoded or decoded."""


class RemoteUnconfigured(PersistenceError):
    """Remote sync has not been set up; remote operations are no-ops."""


class RemoteUnreachable(PersistenceError):
    """A transient network failure talking to the remote store."""


class RecoveryPendingError(RuntimeError):
    """The snapshot was mutated before startup recovery finished."""
