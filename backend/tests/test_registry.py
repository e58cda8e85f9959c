"""Tests for the supplier/driver/truck registry service."""
from station_ops.schemas.registry import DriverCreate, SupplierCreate, TruckCreate
from station_ops.services import activity_ledger, registry_service


def _truck(state, **fields):
    return registry_service.add_entity(state, "trucks", TruckCreate(plate_number="LAG-123-XY", **fields))


class TestCopies:
    """Callers never hold the stored dicts."""

    def test_get_entity_returns_copy(self, state):
        supplier = registry_service.add_entity(state, "suppliers", SupplierCreate(name="NNPC Retail"))
        fetched = registry_service.get_entity(state, "suppliers", supplier["id"])
        fetched["name"] = "Tampered"
        assert state.suppliers[0]["name"] == "NNPC Retail"

    def test_add_and_list_return_copies(self, state):
        driver = registry_service.add_entity(state, "drivers", DriverCreate(name="Musa"))
        driver["name"] = "Tampered"
        page = registry_service.list_entities(state, "drivers")
        page.data[0]["contact"] = "tampered"
        assert state.drivers[0]["name"] == "Musa"
        assert state.drivers[0]["contact"] == ""

    def test_available_returns_copies(self, state):
        _truck(state)
        registry_service.get_available(state, "trucks")[0]["is_available"] = False
        assert state.trucks[0]["is_available"] is True


class TestMaintenance:
    def test_update_merges_and_logs(self, state):
        driver = registry_service.add_entity(state, "drivers", DriverCreate(name="Musa", license_number="LAG-001"))
        updated = registry_service.update_entity(
            state, "drivers", driver["id"], {"contact": "0803", "id": "forged"}, actor="Admin",
        )
        assert updated["id"] == driver["id"]
        assert updated["contact"] == "0803"
        assert updated["license_number"] == "LAG-001"
        assert updated["updated_at"] >= driver["updated_at"]

        last = state.activity_logs[-1]
        assert (last.action, last.entity_id, last.actor) == ("update", driver["id"], "Admin")
        assert last.metadata == {"fields": ["contact"]}

    def test_update_unknown(self, state):
        assert registry_service.update_entity(state, "trucks", "nonexistent", {"capacity": 1}) is None

    def test_delete_records_removal(self, state):
        truck = _truck(state)
        assert registry_service.delete_entity(state, "trucks", truck["id"]) is True
        assert state.trucks == []
        assert state.drain_removed() == {"trucks": {truck["id"]}}
        assert registry_service.delete_entity(state, "trucks", truck["id"]) is False
        assert [log.action for log in activity_ledger.get_activity_logs_by_entity_type(state, "truck")] == [
            "create", "delete",
        ]

    def test_available_filter(self, state):
        registry_service.add_entity(state, "drivers", DriverCreate(name="Busy", is_available=False))
        free = registry_service.add_entity(state, "drivers", DriverCreate(name="Free"))
        state.drivers.append({"id": "legacy", "name": "No flag"})
        ids = [d["id"] for d in registry_service.get_available(state, "drivers")]
        assert ids == [free["id"], "legacy"]


class TestGpsTagging:
    def test_tag_sets_initial_fix(self, state):
        truck = _truck(state, has_gps=True)
        assert [t["id"] for t in registry_service.get_non_gps_trucks(state)] == [truck["id"]]

        assert registry_service.tag_truck_with_gps(state, truck["id"], "GPS-778", actor="Fleet") is True
        stored = registry_service.get_entity(state, "trucks", truck["id"])
        assert stored["is_gps_tagged"] is True
        assert stored["gps_device_id"] == "GPS-778"
        assert (stored["last_latitude"], stored["last_longitude"]) == (
            registry_service.INITIAL_GPS_LATITUDE, registry_service.INITIAL_GPS_LONGITUDE,
        )
        assert registry_service.get_non_gps_trucks(state) == []

        fix = state.gps_data[-1]
        assert fix["truck_id"] == truck["id"]
        assert fix["speed"] == 0
        assert fix["location"] == "Initial tagging location"

        last = state.activity_logs[-1]
        assert last.action == "tag_gps"
        assert last.details == "GPS device GPS-778 tagged to truck"

    def test_untag(self, state):
        truck = _truck(state)
        registry_service.tag_truck_with_gps(state, truck["id"], "GPS-1")
        assert registry_service.untag_truck_gps(state, truck["id"]) is True
        stored = registry_service.get_entity(state, "trucks", truck["id"])
        assert stored["is_gps_tagged"] is False
        assert stored["gps_device_id"] is None
        assert state.activity_logs[-1].action == "untag_gps"

    def test_unknown_truck(self, state):
        assert registry_service.tag_truck_with_gps(state, "nonexistent", "GPS-1") is False
        assert registry_service.untag_truck_gps(state, "nonexistent") is False
        assert state.gps_data == []
