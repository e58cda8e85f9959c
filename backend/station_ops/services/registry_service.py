"""Supplier, driver and truck registry.

Records live in the working copy as plain dicts so they persist and sync
like the other opaque collections. Every mutation writes an activity log.
Callers always get copies; the stored dicts are only touched under the lock.
"""
import logging
from typing import Any, Optional

from pydantic import BaseModel

from station_ops.schemas.pagination import PaginatedResult
from station_ops.services import activity_ledger
from station_ops.services.identifiers import new_id, utcnow
from station_ops.services.pagination import paginate
from station_ops.state import AppState

logger = logging.getLogger(__name__)

# collection name → (entity type, display field)
REGISTRIES = {
    "suppliers": ("supplier", "name"),
    "drivers": ("driver", "name"),
    "trucks": ("truck", "plate_number"),
}

# Where a freshly tagged truck is placed until its first GPS fix (Lagos).
INITIAL_GPS_LATITUDE = 6.5244
INITIAL_GPS_LONGITUDE = 3.3792

PROTECTED_FIELDS = frozenset({"id", "created_at"})


def _find(state: AppState, collection: str, entity_id: str) -> Optional[dict[str, Any]]:
    return next((r for r in getattr(state, collection) if r.get("id") == entity_id), None)


def add_entity(state: AppState, collection: str, payload: BaseModel, actor: Optional[str] = None) -> dict[str, Any]:
    entity_type, label_field = REGISTRIES[collection]
    now = utcnow()
    record = {"id": new_id(), **payload.model_dump(), "created_at": now, "updated_at": now}
    with state.lock:
        getattr(state, collection).insert(0, record)
        activity_ledger.add_activity_log(
            state,
            action="create",
            entity_type=entity_type,
            entity_id=record["id"],
            actor=actor,
            details=f'New {entity_type} "{record.get(label_field)}" added to the system',
        )
    logger.info("Added %s %s", entity_type, record["id"])
    return dict(record)


def get_entity(state: AppState, collection: str, entity_id: str) -> Optional[dict[str, Any]]:
    with state.lock:
        record = _find(state, collection, entity_id)
        return dict(record) if record is not None else None


def list_entities(state: AppState, collection: str, page: int = 1, limit: int = 10) -> PaginatedResult:
    with state.lock:
        return paginate([dict(r) for r in getattr(state, collection)], page, limit)


def update_entity(
    state: AppState,
    collection: str,
    entity_id: str,
    fields: dict[str, Any],
    actor: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """Shallow-merge ``fields`` into a record. None when the id is unknown."""
    entity_type, label_field = REGISTRIES[collection]
    updates = {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}
    with state.lock:
        record = _find(state, collection, entity_id)
        if record is None:
            return None
        record.update(updates, updated_at=utcnow())
        activity_ledger.add_activity_log(
            state,
            action="update",
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            details=f'{entity_type.capitalize()} "{record.get(label_field)}" updated',
            metadata={"fields": sorted(updates)},
        )
        result = dict(record)
    logger.info("Updated %s %s fields %s", entity_type, entity_id, sorted(updates))
    return result


def delete_entity(state: AppState, collection: str, entity_id: str, actor: Optional[str] = None) -> bool:
    entity_type, label_field = REGISTRIES[collection]
    with state.lock:
        record = _find(state, collection, entity_id)
        if record is None:
            return False
        getattr(state, collection).remove(record)
        state.mark_removed(collection, entity_id)
        activity_ledger.add_activity_log(
            state,
            action="delete",
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            details=f'{entity_type.capitalize()} "{record.get(label_field)}" removed from the system',
        )
    logger.info("Deleted %s %s", entity_type, entity_id)
    return True


def set_availability(
    state: AppState,
    collection: str,
    entity_id: str,
    is_available: bool,
    actor: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """Toggle ``is_available`` on a driver or truck. None when the id is unknown."""
    entity_type, label_field = REGISTRIES[collection]
    with state.lock:
        record = _find(state, collection, entity_id)
        if record is None:
            return None
        record["is_available"] = is_available
        record["updated_at"] = utcnow()
        activity_ledger.add_activity_log(
            state,
            action="update",
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            details=f'{entity_type.capitalize()} "{record.get(label_field)}" marked '
                    f'{"available" if is_available else "unavailable"}',
            metadata={"is_available": is_available},
        )
        result = dict(record)
    logger.info("%s %s availability → %s", entity_type, entity_id, is_available)
    return result


def get_available(state: AppState, collection: str) -> list[dict[str, Any]]:
    """Drivers or trucks not explicitly marked unavailable."""
    with state.lock:
        return [dict(r) for r in getattr(state, collection) if r.get("is_available") is not False]


def get_non_gps_trucks(state: AppState) -> list[dict[str, Any]]:
    with state.lock:
        return [dict(t) for t in state.trucks if not t.get("is_gps_tagged")]


def tag_truck_with_gps(state: AppState, truck_id: str, gps_device_id: str, actor: Optional[str] = None) -> bool:
    """Attach a GPS device and record the truck's first position."""
    now = utcnow()
    with state.lock:
        truck = _find(state, "trucks", truck_id)
        if truck is None:
            return False
        truck.update(
            is_gps_tagged=True,
            gps_device_id=gps_device_id,
            last_latitude=INITIAL_GPS_LATITUDE,
            last_longitude=INITIAL_GPS_LONGITUDE,
            last_speed=0,
            updated_at=now,
        )
        state.gps_data.append({
            "id": f"gps-{new_id()[:8]}",
            "truck_id": truck_id,
            "latitude": INITIAL_GPS_LATITUDE,
            "longitude": INITIAL_GPS_LONGITUDE,
            "speed": 0,
            "timestamp": now,
            "fuel_level": 100,
            "location": "Initial tagging location",
        })
        activity_ledger.add_activity_log(
            state,
            action="tag_gps",
            entity_type="truck",
            entity_id=truck_id,
            actor=actor,
            details=f"GPS device {gps_device_id} tagged to truck",
            metadata={"gps_device_id": gps_device_id},
        )
    logger.info("Truck %s tagged with GPS device %s", truck_id, gps_device_id)
    return True


def untag_truck_gps(state: AppState, truck_id: str, actor: Optional[str] = None) -> bool:
    with state.lock:
        truck = _find(state, "trucks", truck_id)
        if truck is None:
            return False
        truck.update(is_gps_tagged=False, gps_device_id=None, updated_at=utcnow())
        activity_ledger.add_activity_log(
            state,
            action="untag_gps",
            entity_type="truck",
            entity_id=truck_id,
            actor=actor,
            details="GPS device untagged from truck",
        )
    logger.info("Truck %s GPS untagged", truck_id)
    return True
