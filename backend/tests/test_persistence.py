"""Tests for the local persistence store."""
import json
from datetime import datetime, timedelta, timezone

import pytest

from station_ops.services import persistence
from station_ops.services.persistence import (
    SNAPSHOT_COLLECTIONS,
    LocalStore,
    format_bytes,
    load_app_state,
    load_collection,
    save_app_state,
    save_collection,
)

BASE_TIME = datetime(2026, 5, 4, 12, 30, 15, 250000, tzinfo=timezone.utc)


def _mixed_snapshot(total=100):
    """Snapshot spread across all seven collections, with nested datetimes."""
    snapshot = {key: [] for key in SNAPSHOT_COLLECTIONS}
    for i in range(total):
        key = SNAPSHOT_COLLECTIONS[i % len(SNAPSHOT_COLLECTIONS)]
        ts = BASE_TIME + timedelta(minutes=i)
        snapshot[key].append({
            "id": f"{key}-{i}",
            "timestamp": ts,
            "label": f"record {i}",
            "amount": i * 1.5,
            "flags": [True, False, None],
            "history": [{"status": "pending", "timestamp": ts - timedelta(hours=1)}],
        })
    return snapshot


class TestSnapshotRoundTrip:
    def test_hundred_entries_round_trip(self, store):
        snapshot = _mixed_snapshot(100)
        assert save_app_state(store, snapshot) is True
        loaded = load_app_state(store)
        assert loaded == snapshot
        assert sum(len(v) for v in loaded.values()) == 100

    def test_nested_dates_revived(self, store):
        save_app_state(store, _mixed_snapshot(7))
        record = load_app_state(store)["gps_data"][0]
        assert isinstance(record["timestamp"], datetime)
        assert isinstance(record["history"][0]["timestamp"], datetime)
        assert record["label"] == "record 5"

    def test_blob_envelope(self, store):
        save_collection(store, "trucks", [{"id": "t-1"}])
        blob = json.loads(store.path_for("trucks").read_text())
        assert blob["schema_version"] == persistence.SCHEMA_VERSION
        assert blob["data"] == [{"id": "t-1"}]
        assert "saved_at" in blob

    def test_keys_use_prefix(self, tmp_path):
        store = LocalStore(tmp_path, key_prefix="po_system_")
        save_collection(store, "drivers", [])
        assert (tmp_path / "po_system_drivers.json").exists()

    def test_unknown_collections_ignored(self, store):
        assert save_app_state(store, {"purchase_orders": [], "staff": [{"id": "x"}]}) is True
        assert not store.path_for("staff").exists()

    def test_empty_snapshot_refused(self, store):
        assert save_app_state(store, {}) is False

    def test_offsetless_timestamps_read_as_utc(self, store):
        store.path_for("gps_data").write_text(json.dumps({
            "schema_version": persistence.SCHEMA_VERSION,
            "data": [{"id": "g-1", "timestamp": "2026-05-04T12:30:15", "at": "2026-05-04T12:30:15+01:00"}],
        }))
        record = load_collection(store, "gps_data")[0]
        assert record["timestamp"] == datetime(2026, 5, 4, 12, 30, 15, tzinfo=timezone.utc)
        assert record["at"].utcoffset() == timedelta(hours=1)

    def test_load_defaults_when_missing(self, store):
        loaded = load_app_state(store, defaults={"suppliers": [{"id": "s-1"}]})
        assert loaded["suppliers"] == [{"id": "s-1"}]
        assert loaded["purchase_orders"] == []


class TestFailureModes:
    def test_corrupt_blob_falls_back_to_default(self, store):
        save_collection(store, "suppliers", [{"id": "s-1"}])
        store.path_for("logs").write_text("{not json", encoding="utf-8")
        assert load_collection(store, "logs", default=[{"id": "fallback"}]) == [{"id": "fallback"}]
        loaded = load_app_state(store)
        assert loaded["logs"] == []
        assert loaded["suppliers"] == [{"id": "s-1"}]

    def test_unknown_schema_version_falls_back(self, store):
        store.path_for("trucks").write_text(json.dumps({"schema_version": 99, "data": [{"id": "t"}]}))
        assert load_collection(store, "trucks") == []

    def test_save_non_list_refused(self, store):
        assert save_collection(store, "trucks", {"id": "t"}) is False

    def test_over_quota_writes_nothing(self, tmp_path):
        store = LocalStore(tmp_path, quota_bytes=512)
        assert save_app_state(store, _mixed_snapshot(50)) is False
        assert not any(store.path_for(key).exists() for key in SNAPSHOT_COLLECTIONS)

    def test_over_quota_keeps_previous_snapshot(self, tmp_path):
        store = LocalStore(tmp_path, quota_bytes=2048)
        small = {"suppliers": [{"id": "s-1"}]}
        assert save_app_state(store, small) is True
        assert save_app_state(store, _mixed_snapshot(50)) is False
        assert load_collection(store, "suppliers") == [{"id": "s-1"}]

    def test_overwrite_counts_replaced_size(self, tmp_path):
        store = LocalStore(tmp_path, quota_bytes=300)
        records = [{"id": "x" * 100}]
        assert save_collection(store, "trucks", records) is True
        assert save_collection(store, "trucks", records) is True


class TestOperatorTooling:
    def test_database_info(self, store):
        save_app_state(store, {"purchase_orders": [{"id": "a"}, {"id": "b"}], "trucks": [{"id": "t"}]})
        info = persistence.get_database_info(store)
        assert info.record_counts["purchase_orders"] == 2
        assert info.record_counts["trucks"] == 1
        assert info.record_counts["activity_logs"] == 0
        assert info.total_size_bytes == store.total_size() > 0
        assert info.quota_bytes == store.quota_bytes

    def test_export_import_reset(self, store, tmp_path):
        save_app_state(store, _mixed_snapshot(14))
        exported = persistence.export_database(store)

        assert persistence.reset_database(store) is True
        assert persistence.get_database_info(store).record_counts["suppliers"] == 0

        assert persistence.import_database(store, exported) is True
        assert load_app_state(store) == _mixed_snapshot(14)

    def test_import_rejects_garbage(self, store):
        assert persistence.import_database(store, "not json") is False
        assert persistence.import_database(store, "[1, 2]") is False
        assert persistence.import_database(store, '{"staff": []}') is False


@pytest.mark.parametrize("num_bytes,expected", [
    (0, "0 Bytes"),
    (512, "512 Bytes"),
    (1024, "1 KB"),
    (1536, "1.5 KB"),
    (5 * 1024 * 1024, "5 MB"),
])
def test_format_bytes(num_bytes, expected):
    assert format_bytes(num_bytes) == expected
