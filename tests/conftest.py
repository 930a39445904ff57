from datetime import date, timedelta

import pytest

from lifeos_sync.config import EngineSettings
from lifeos_sync.engine.persistence_engine import PersistenceEngine
from lifeos_sync.engine.store import SnapshotStore
from lifeos_sync.models.snapshot import DayRecord, Profile, Snapshot
from lifeos_sync.persistence.kv_store import InMemoryKeyValueStore
from lifeos_sync.persistence.object_store import ObjectStore
from lifeos_sync.persistence.tiers import LocalTier, ObjectStoreTier, RemoteTier
from lifeos_sync.remote.service import InMemoryRemoteService


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def now_ms(self) -> int:
        return self.now

    def advance(self, seconds: float = 0, ms: int = 0):
        self.now += int(seconds * 1000) + ms


def build_snapshot(density: int = 0, last_modified: int = 0, **fields) -> Snapshot:
    """A snapshot with a profile and exactly `density` logged entries."""
    start = date(2024, 1, 1)
    days = {
        (start + timedelta(days=i)).isoformat(): DayRecord(weight=180 + i)
        for i in range(density)
    }
    fields.setdefault("profile", Profile(start_weight=190, height=70, age=35))
    return Snapshot(days=days, last_modified=last_modified, **fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def snapshot_factory():
    return build_snapshot


@pytest.fixture
def engine_factory(tmp_path, clock):
    def make(remote=None, name="device-a", render=None, kv_store=None):
        settings = EngineSettings(
            storage_dir=tmp_path / name,
            database_url="sqlite:///:memory:",
            device_id=name,
        )
        return PersistenceEngine(
            settings,
            kv_store=kv_store or InMemoryKeyValueStore(),
            object_store=ObjectStore("sqlite:///:memory:"),
            remote_service=remote or InMemoryRemoteService(enabled=False),
            clock=clock,
            render=render,
        )

    return make


@pytest.fixture
def store_factory(clock):
    def make(kv_store=None, object_store=None, remote=None, ready=True):
        store = SnapshotStore(
            LocalTier(kv_store or InMemoryKeyValueStore(), "lifeOS_v1"),
            ObjectStoreTier(object_store or ObjectStore("sqlite:///:memory:")),
            RemoteTier(
                remote or InMemoryRemoteService(), "userData", "test-device", clock
            ),
            clock,
        )
        if ready:
            store.mark_ready()
        return store

    return make


@pytest.fixture
def app_document():
    """A document as the web client writes it, loose values included."""
    return {
        "version": 1,
        "lastModified": 1_700_000_000_500,
        "onboardingComplete": True,
        "createdAt": "2024-01-01T08:00:00.000Z",
        "profile": {"startWeight": "205", "height": 70, "age": 34},
        "goals": {"targetWeight": 185, "dailyProtein": 180, "dailyCalories": None, "tdee": 2600},
        "stats": {"totalXP": 420, "skillXP": {"strength": 120}, "bestStreak": 6},
        "debt": [{"type": "workout", "date": "2024-01-02", "exercises": 2}],
        "days": {
            "2024-01-02": {"weight": 204.2, "protein": 150, "exercises": {"0": True, "1": True}},
            "2024-01-03": {"runDistance": 3.1, "habits": {"water": True}, "sleep": "7.5"},
        },
        "running": {"goal": "10k", "currentPhase": "build"},
        "runLog": [
            {"date": "2024-01-03", "distance": 3.1, "time": "27:00", "pace": "8:42", "effort": 6}
        ],
        "alcoholLog": [],
        "reading": {"currentBook": {"title": "Dune", "pagesRead": 120}, "completedBooks": [], "yearlyGoal": 20},
        "exerciseWeek": 3,
        "liftHistory": {
            "Squat": [{"date": "2024-01-02", "sets": [{"weight": 225, "reps": 5}], "volume": 1125, "estimated1RM": 262}]
        },
        "personalRecords": {"Squat": {"weight": 225, "reps": 5, "estimated1RM": 262, "date": "2024-01-02"}},
    }
