"""Tests for the order-scoped log and the system-wide activity log."""
from datetime import datetime, timedelta, timezone

from station_ops.schemas.log import ActivityLog
from station_ops.services import activity_ledger
from station_ops.services.persistence import ACTIVITY_LOGS_KEY, load_collection

BASE_TIME = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _activity(log_id, minutes, entity_type="supplier", action="create"):
    return ActivityLog(
        id=log_id,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        action=action,
        entity_type=entity_type,
        entity_id=f"{entity_type}-{log_id}",
        actor="Current User",
    )


class TestOrderLogs:
    def test_add_appends_at_end(self, state):
        first = activity_ledger.add_log(state, "po-1", "created")
        second = activity_ledger.add_log(state, "po-1", "approved", actor="Manager")
        assert state.logs == [first, second]
        assert second.actor == "Manager"
        assert first.id.startswith("log-")
        assert first.entity_id == "po-1"

    def test_get_by_id_and_order(self, state):
        entry = activity_ledger.add_log(state, "po-1", "created")
        activity_ledger.add_log(state, "po-2", "created")
        assert activity_ledger.get_log_by_id(state, entry.id) == entry
        assert activity_ledger.get_log_by_id(state, "log-missing") is None
        assert [log.po_id for log in activity_ledger.get_logs_by_order_id(state, "po-1")] == ["po-1"]

    def test_delete_log(self, state):
        entry = activity_ledger.add_log(state, "po-1", "created")
        assert activity_ledger.delete_log(state, entry.id) is True
        assert activity_ledger.delete_log(state, entry.id) is False
        assert state.logs == []

    def test_paginated(self, state):
        for i in range(12):
            activity_ledger.add_log(state, "po-1", f"action {i}")
        page = activity_ledger.get_all_logs(state, page=2, limit=5)
        assert [log.action for log in page.data] == ["action 5", "action 6", "action 7", "action 8", "action 9"]
        assert page.total_pages == 3


class TestActivityLogs:
    def test_add_appends_at_end(self, state):
        first = activity_ledger.add_activity_log(state, "create", "supplier", "s-1")
        second = activity_ledger.add_activity_log(state, "update", "truck", "t-1", details="marked unavailable")
        assert state.activity_logs[-1] == second
        assert state.activity_logs.index(first) < state.activity_logs.index(second)

    def test_written_through_to_store(self, state, store):
        entry = activity_ledger.add_activity_log(state, "create", "driver", "d-1", metadata={"source": "test"})
        stored = load_collection(store, ACTIVITY_LOGS_KEY)
        assert len(stored) == 1
        assert stored[0]["id"] == entry.id
        assert stored[0]["metadata"] == {"source": "test"}
        assert isinstance(stored[0]["timestamp"], datetime)

    def test_recent_sorted_newest_first(self, state):
        # Storage order deliberately differs from timestamp order.
        state.activity_logs.extend([_activity("b", 5), _activity("a", 1), _activity("c", 9)])
        recent = activity_ledger.get_recent_activity_logs(state, limit=10)
        assert [log.id for log in recent] == ["c", "b", "a"]

    def test_recent_respects_limit(self, state):
        state.activity_logs.extend([_activity(str(i), i) for i in range(8)])
        recent = activity_ledger.get_recent_activity_logs(state, limit=3)
        assert [log.id for log in recent] == ["7", "6", "5"]
        assert activity_ledger.get_recent_activity_logs(state, limit=0) == []

    def test_recent_ties_favor_later_append(self, state):
        state.activity_logs.extend([_activity("early", 0), _activity("late", 0)])
        assert [log.id for log in activity_ledger.get_recent_activity_logs(state)] == ["late", "early"]

    def test_filters(self, state):
        state.activity_logs.extend([
            _activity("1", 1, entity_type="supplier", action="create"),
            _activity("2", 2, entity_type="truck", action="create"),
            _activity("3", 3, entity_type="truck", action="update"),
        ])
        assert [l.id for l in activity_ledger.get_activity_logs_by_entity_type(state, "truck")] == ["2", "3"]
        assert [l.id for l in activity_ledger.get_activity_logs_by_action(state, "create")] == ["1", "2"]

        page = activity_ledger.get_activity_logs(state, entity_type="truck", action="update")
        assert page.total == 1
        assert page.data[0].id == "3"

    def test_unfiltered_listing_keeps_storage_order(self, state):
        state.activity_logs.extend([_activity("b", 5), _activity("a", 1)])
        page = activity_ledger.get_activity_logs(state)
        assert [log.id for log in page.data] == ["b", "a"]

    def test_naive_timestamp_stored_as_utc(self, state):
        entry = activity_ledger.add_activity_log(
            state, "create", "supplier", "s-1", timestamp=datetime(2026, 5, 4, 9, 0),
        )
        assert entry.timestamp == datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)

    def test_recent_after_reload_of_offsetless_timestamps(self, state):
        state.replace_collection(ACTIVITY_LOGS_KEY, [
            {"id": "old", "timestamp": "2026-05-04T09:00:00", "action": "create",
             "entity_type": "supplier", "entity_id": "s-1", "actor": "System"},
        ])
        fresh = activity_ledger.add_activity_log(state, "update", "supplier", "s-1")
        recent = activity_ledger.get_recent_activity_logs(state, limit=5)
        assert [log.id for log in recent] == [fresh.id, "old"]
        assert recent[1].timestamp.tzinfo is not None
