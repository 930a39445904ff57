import pytest

from lifeos_sync.models.backup import BackupRecord
from lifeos_sync.models.snapshot import DayRecord, Profile, Snapshot
from lifeos_sync.persistence.codec import (
    decode_backups,
    decode_snapshot,
    encode_backups,
    encode_snapshot,
)
from lifeos_sync.persistence.errors import SerializationError


class TestSnapshotModel:
    def test_defaults(self):
        snap = Snapshot()
        assert snap.version == 1
        assert snap.last_modified == 0
        assert snap.profile is None
        assert snap.reading["yearlyGoal"] == 12
        assert snap.stats["skillXP"]["strength"] == 0

    def test_document_uses_camel_case_keys(self):
        snap = Snapshot(
            last_modified=42,
            profile=Profile(start_weight=200),
            days={"2024-01-01": DayRecord(run_distance=3.1)},
        )
        doc = snap.to_document()
        assert doc["lastModified"] == 42
        assert doc["profile"]["startWeight"] == 200
        assert doc["days"]["2024-01-01"]["runDistance"] == 3.1
        assert "onboardingComplete" in doc
        assert "last_modified" not in doc

    def test_unknown_keys_survive_round_trip(self):
        doc = {
            "version": 1,
            "futureFeature": {"enabled": True},
            "days": {"2024-02-01": {"weight": 181.5, "mood": "great"}},
        }
        snap = Snapshot.model_validate(doc)
        out = snap.to_document()
        assert out["futureFeature"] == {"enabled": True}
        assert out["days"]["2024-02-01"]["mood"] == "great"
        assert out["days"]["2024-02-01"]["weight"] == 181.5

    def test_client_document_keeps_its_values(self, app_document):
        snap = decode_snapshot(app_document)
        out = snap.to_document()
        for key, value in app_document.items():
            if key != "days":
                assert out[key] == value
        for date, day in app_document["days"].items():
            for field, value in day.items():
                assert out["days"][date][field] == value
        assert snap.profile.start_weight == "205"

    @pytest.mark.parametrize(
        "run_log",
        [
            [{"distance": 3.1, "time": "27:00", "pace": "8:42"}],
            {"2024-01-03": {"distance": "3.1", "time": 1620}},
            [],
        ],
    )
    def test_run_log_shapes(self, app_document, run_log):
        app_document["runLog"] = run_log
        assert decode_snapshot(app_document).to_document()["runLog"] == run_log

    def test_schema_marker(self):
        assert not Snapshot().has_schema_marker()
        assert Snapshot(profile=Profile()).has_schema_marker()


class TestCodec:
    def test_snapshot_round_trip(self, snapshot_factory):
        snap = snapshot_factory(density=4, last_modified=123)
        loaded = decode_snapshot(encode_snapshot(snap))
        assert loaded.to_document() == snap.to_document()

    def test_decode_accepts_documents(self, snapshot_factory):
        snap = snapshot_factory(density=1)
        assert decode_snapshot(snap.to_document()).to_document() == snap.to_document()

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '{"version": "abc"}', "null"])
    def test_decode_rejects_bad_input(self, raw):
        with pytest.raises(SerializationError):
            decode_snapshot(raw)

    def test_backups_round_trip(self, snapshot_factory):
        records = [
            BackupRecord(timestamp=2, reason="b", data=snapshot_factory(density=2)),
            BackupRecord(timestamp=1, reason="a", data=snapshot_factory(density=1)),
        ]
        loaded = decode_backups(encode_backups(records))
        assert [r.reason for r in loaded] == ["b", "a"]
        assert loaded[0].data.to_document() == records[0].data.to_document()

    def test_decode_backups_rejects_non_list(self):
        with pytest.raises(SerializationError):
            decode_backups('{"timestamp": 1}')
