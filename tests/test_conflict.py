import pytest

from lifeos_sync.engine.conflict import (
    LIVE_THRESHOLDS,
    STARTUP_THRESHOLDS,
    ConflictResolver,
    count_entries,
    resolve_conflict,
)
from lifeos_sync.models.enums import Resolution
from lifeos_sync.models.snapshot import DayRecord, Snapshot


class TestResolveConflict:
    @pytest.mark.parametrize("local_ts, remote_ts", [(0, 0), (5000, 1000), (1000, 5000)])
    def test_empty_local_takes_remote(self, local_ts, remote_ts):
        assert resolve_conflict(0, local_ts, 20, remote_ts) == Resolution.TAKE_REMOTE

    def test_richer_local_beats_newer_remote(self):
        assert resolve_conflict(30, 1000, 10, 2000) == Resolution.TAKE_LOCAL

    def test_genuine_staleness(self):
        assert resolve_conflict(10, 1000, 12, 2000) == Resolution.TAKE_REMOTE

    def test_denser_remote_wins_even_when_older(self):
        assert resolve_conflict(10, 2000, 11, 1000) == Resolution.TAKE_REMOTE

    def test_newer_remote_wins_within_margin(self):
        # local is richer, but by no more than 5
        assert resolve_conflict(13, 1000, 8, 2000) == Resolution.TAKE_REMOTE

    def test_newer_remote_loses_beyond_margin(self):
        assert resolve_conflict(14, 1000, 8, 2000) == Resolution.TAKE_LOCAL

    def test_equal_data_older_remote_keeps_local(self):
        assert resolve_conflict(8, 2000, 8, 1000) == Resolution.TAKE_LOCAL

    def test_equal_timestamps_keep_local(self):
        assert resolve_conflict(8, 2000, 8, 2000) == Resolution.TAKE_LOCAL

    def test_trivial_remote_does_not_rescue_empty_local(self):
        assert resolve_conflict(2, 2000, 2, 1000) == Resolution.TAKE_LOCAL

    def test_live_thresholds_are_tighter(self):
        assert resolve_conflict(12, 1000, 8, 2000, STARTUP_THRESHOLDS) == Resolution.TAKE_REMOTE
        assert resolve_conflict(12, 1000, 8, 2000, LIVE_THRESHOLDS) == Resolution.TAKE_LOCAL


class TestCountEntries:
    def test_none_is_empty(self):
        assert count_entries(None) == 0

    def test_counts_day_fields_and_lift_rows(self):
        snap = Snapshot(
            days={
                "2024-01-01": DayRecord(
                    weight=180,
                    protein=150,
                    calories=2200,
                    run_distance=3,
                    exercises={"0": True, "1": False, "2": True},
                ),
                "2024-01-02": DayRecord(weight=179),
            },
            lift_history={
                "Squat": [{"date": "2024-01-01"}, {"date": "2024-01-03"}],
                "Bench": [{"date": "2024-01-02"}],
            },
        )
        assert count_entries(snap) == 7 + 1 + 3

    def test_zero_and_empty_values_do_not_count(self):
        snap = Snapshot(
            days={"2024-01-01": DayRecord(weight=0, protein=None, exercises={}, xp=50)}
        )
        assert count_entries(snap) == 0

    def test_irregular_shapes_are_tolerated(self, app_document):
        app_document["days"]["2024-01-04"] = {"exercises": "none", "weight": "181"}
        app_document["liftHistory"]["Deadlift"] = {"date": "2024-01-04"}
        snap = Snapshot.model_validate(app_document)
        # weight, protein and two slots; run distance; weight string; one squat row
        assert count_entries(snap) == 4 + 1 + 1 + 1


class TestConflictResolver:
    def test_compare_without_local(self, snapshot_factory):
        remote = snapshot_factory(density=6, last_modified=500)
        verdict = ConflictResolver().compare(None, remote)
        assert verdict.resolution == Resolution.TAKE_REMOTE
        assert verdict.local_density == 0
        assert verdict.local_timestamp == 0
        assert verdict.remote_density == 6
        assert verdict.remote_timestamp == 500

    def test_compare_uses_thresholds(self, snapshot_factory):
        local = snapshot_factory(density=12, last_modified=1000)
        remote = snapshot_factory(density=8, last_modified=2000)
        assert ConflictResolver(STARTUP_THRESHOLDS).compare(local, remote).resolution == Resolution.TAKE_REMOTE
        assert ConflictResolver(LIVE_THRESHOLDS).compare(local, remote).resolution == Resolution.TAKE_LOCAL
