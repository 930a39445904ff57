"""Whole-snapshot conflict resolution between local and remote copies.

The policy is biased towards data density: losing logged entries is worse
than keeping a slightly stale copy, because device clocks are unreliable
while entry counts track user effort. A winner is always a whole snapshot;
the two copies are never merged field by field.
"""

from typing import Optional

from pydantic import BaseModel

from lifeos_sync.models.enums import Resolution
from lifeos_sync.models.snapshot import Snapshot


class ResolverThresholds(BaseModel):
    """Tunable margins of the resolution policy.

    Attributes:
        empty_floor: Local copies with fewer entries than this count as empty.
        richer_margin: How many more entries local needs before a newer
            remote copy stops winning on timestamp.
    """

    empty_floor: int = 3
    richer_margin: int = 5


STARTUP_THRESHOLDS = ResolverThresholds(empty_floor=3, richer_margin=5)
LIVE_THRESHOLDS = ResolverThresholds(empty_floor=3, richer_margin=3)


class Verdict(BaseModel):
    resolution: Resolution
    local_density: int
    local_timestamp: int
    remote_density: int
    remote_timestamp: int


def count_entries(snapshot: Optional[Snapshot]) -> int:
    """Counts meaningful logged entries in a snapshot.

    Each day contributes one per logged weight, protein, calories and run
    distance, plus one per exercise slot. Every lift history row counts once.
    """
    if snapshot is None:
        return 0

    count = 0
    for day in snapshot.days.values():
        if day.weight:
            count += 1
        if day.protein:
            count += 1
        if day.calories:
            count += 1
        if isinstance(day.exercises, (dict, list)):
            count += len(day.exercises)
        if day.run_distance:
            count += 1

    if isinstance(snapshot.lift_history, dict):
        for rows in snapshot.lift_history.values():
            if isinstance(rows, list):
                count += len(rows)

    return count


def resolve_conflict(
    local_density: int,
    local_timestamp: int,
    remote_density: int,
    remote_timestamp: int,
    thresholds: ResolverThresholds = STARTUP_THRESHOLDS,
) -> Resolution:
    """Decides whether the local or the remote snapshot should win.

    Rules, first match wins:
        1. An effectively empty local copy defers to any non-trivial remote.
        2. Strictly more remote entries win regardless of timestamp.
        3. A newer remote wins unless local is richer by more than the margin.
        4. Otherwise local wins.
    """
    if local_density < thresholds.empty_floor and remote_density > thresholds.empty_floor:
        return Resolution.TAKE_REMOTE
    if remote_density > local_density:
        return Resolution.TAKE_REMOTE
    local_much_richer = local_density > remote_density + thresholds.richer_margin
    if remote_timestamp > local_timestamp and not local_much_richer:
        return Resolution.TAKE_REMOTE
    return Resolution.TAKE_LOCAL


class ConflictResolver:
    """Applies `resolve_conflict` to whole snapshots."""

    def __init__(self, thresholds: ResolverThresholds = STARTUP_THRESHOLDS):
        self.thresholds = thresholds

    def compare(self, local: Optional[Snapshot], remote: Snapshot) -> Verdict:
        local_density = count_entries(local)
        remote_density = count_entries(remote)
        local_timestamp = local.last_modified if local else 0
        resolution = resolve_conflict(
            local_density,
            local_timestamp,
            remote_density,
            remote.last_modified,
            self.thresholds,
        )
        return Verdict(
            resolution=resolution,
            local_density=local_density,
            local_timestamp=local_timestamp,
            remote_density=remote_density,
            remote_timestamp=remote.last_modified,
        )
