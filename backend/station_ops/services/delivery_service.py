"""Delivery workflow for paid purchase orders.

Flow: assign a driver and truck to an ``active`` order → start the trip
(``in_transit``) → complete it (``delivered``, which fulfils the order and
frees the driver and truck) → record offloading measurements and any
incidents along the way.

Unknown order ids are reported as ``None``. A missing driver or truck is a
404, a step taken out of order (no delivery yet, wrong delivery status,
untagged GPS truck, unpaid order) is a 409. Every successful step writes
one order log.
"""
import logging
from datetime import timedelta
from typing import Any, Optional

from fastapi import HTTPException, status as http_status

from station_ops.schemas.delivery import (
    DeliveryDetails,
    DeliveryStatus,
    Incident,
    IncidentCreate,
    IncidentImpact,
    OffloadingCreate,
    OffloadingDetails,
    OffloadingStatus,
)
from station_ops.schemas.order import OrderStatus, PurchaseOrder
from station_ops.services import activity_ledger, order_service
from station_ops.services.identifiers import new_id, utcnow
from station_ops.state import AppState

logger = logging.getLogger(__name__)

EXPECTED_TRIP_DURATION = timedelta(hours=24)
# Route length used until real distances are available, in km.
DEFAULT_ROUTE_DISTANCE = 100.0
# Loaded vs delivered volume loss above this share is flagged for investigation.
DISCREPANCY_THRESHOLD_PERCENT = 5.0


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=detail)


def _find_record(state: AppState, collection: str, record_id: Optional[str]) -> Optional[dict[str, Any]]:
    return next((r for r in getattr(state, collection) if r.get("id") == record_id), None)


def _require_delivery(order: PurchaseOrder) -> DeliveryDetails:
    if order.delivery_details is None:
        raise _conflict(f"Purchase Order {order.po_number} has no delivery assigned")
    return order.delivery_details


def _check_gps(truck: dict[str, Any]) -> None:
    if truck.get("has_gps") and not truck.get("is_gps_tagged"):
        raise _conflict(f"Truck {truck.get('plate_number')} has GPS capability but is not tagged with a device")


def _set_availability(state: AppState, collection: str, record_id: Optional[str], is_available: bool) -> None:
    record = _find_record(state, collection, record_id)
    if record is not None:
        record["is_available"] = is_available
        record["updated_at"] = utcnow()


def assign_driver_to_order(
    state: AppState,
    order_id: str,
    driver_id: str,
    truck_id: str,
    actor: Optional[str] = None,
) -> Optional[PurchaseOrder]:
    """Attach a driver and truck to a paid order and mark both unavailable."""
    with state.lock:
        order = order_service.get_purchase_order_by_id(state, order_id)
        if order is None:
            return None
        driver = _find_record(state, "drivers", driver_id)
        if driver is None:
            raise HTTPException(status_code=404, detail="Driver not found")
        truck = _find_record(state, "trucks", truck_id)
        if truck is None:
            raise HTTPException(status_code=404, detail="Truck not found")
        if order.status != OrderStatus.active:
            raise _conflict("Only paid (active) orders can be assigned to drivers")
        _check_gps(truck)

        now = utcnow()
        previous = order.delivery_details
        order.delivery_details = DeliveryDetails(
            id=previous.id if previous else f"delivery-{new_id()[:8]}",
            po_id=order_id,
            driver_id=driver_id,
            truck_id=truck_id,
            status=DeliveryStatus.pending,
            expected_arrival_time=now + EXPECTED_TRIP_DURATION,
            is_gps_tagged=bool(truck.get("is_gps_tagged")),
            gps_device_id=truck.get("gps_device_id"),
        )
        order.updated_at = now
        _set_availability(state, "drivers", driver_id, False)
        _set_availability(state, "trucks", truck_id, False)

        activity_ledger.add_log(
            state,
            po_id=order_id,
            action=f"Driver {driver.get('name')} with truck {truck.get('plate_number')} "
                   f"assigned to Purchase Order {order.po_number}",
            actor=actor,
            metadata={"driver_id": driver_id, "truck_id": truck_id},
        )
    logger.info("Order %s assigned to driver %s / truck %s", order_id, driver_id, truck_id)
    return order


def start_delivery(state: AppState, order_id: str, actor: Optional[str] = None) -> Optional[PurchaseOrder]:
    """Truck leaves the depot: delivery goes ``in_transit``."""
    with state.lock:
        order = order_service.get_purchase_order_by_id(state, order_id)
        if order is None:
            return None
        delivery = _require_delivery(order)
        truck = _find_record(state, "trucks", delivery.truck_id)
        if truck is None:
            raise _conflict("The assigned truck is no longer registered")
        _check_gps(truck)

        departed = utcnow()
        order.delivery_details = delivery.model_copy(update={
            "status": DeliveryStatus.in_transit,
            "depot_departure_time": departed,
            "expected_arrival_time": departed + EXPECTED_TRIP_DURATION,
            "distance_covered": 0.0,
            "total_distance": DEFAULT_ROUTE_DISTANCE,
        })
        order.updated_at = departed
        activity_ledger.add_log(
            state,
            po_id=order_id,
            action=f"Delivery started for Purchase Order {order.po_number}. Truck departed from depot.",
            actor=actor,
        )
    logger.info("Delivery started for order %s", order_id)
    return order


def complete_delivery(state: AppState, order_id: str, actor: Optional[str] = None) -> Optional[PurchaseOrder]:
    """Truck reached the station. Only deliveries in transit can complete."""
    with state.lock:
        order = order_service.get_purchase_order_by_id(state, order_id)
        if order is None:
            return None
        delivery = _require_delivery(order)
        if delivery.status != DeliveryStatus.in_transit:
            raise _conflict("Only deliveries in transit can be marked as delivered")
        _apply_delivery_update(
            state,
            order,
            {
                "status": DeliveryStatus.delivered,
                "destination_arrival_time": utcnow(),
                "distance_covered": delivery.total_distance or DEFAULT_ROUTE_DISTANCE,
            },
            action=f"Delivery completed for Purchase Order {order.po_number}. Truck arrived at destination.",
            actor=actor,
        )
    logger.info("Delivery completed for order %s", order_id)
    return order


def _describe_delivery_update(updates: dict[str, Any]) -> str:
    if updates.get("depot_departure_time"):
        return f"Truck departed from depot at {updates['depot_departure_time']:%H:%M:%S}"
    if updates.get("destination_arrival_time"):
        return f"Truck arrived at destination at {updates['destination_arrival_time']:%H:%M:%S}"
    if updates.get("status") == DeliveryStatus.in_transit:
        return "Delivery status changed to In Transit"
    if updates.get("status") == DeliveryStatus.delivered:
        return "Delivery completed successfully"
    return "Delivery details updated"


def _fulfil(state: AppState, order: PurchaseOrder, actor: Optional[str]) -> None:
    """Walk the order to ``fulfilled`` through the status engine so history stays in step."""
    if order.status == OrderStatus.fulfilled:
        return
    if order.status != OrderStatus.delivered:
        order_service.update_order_status(
            state, order.id, OrderStatus.delivered, note="Truck arrived at destination", actor=actor,
        )
    order_service.update_order_status(
        state, order.id, OrderStatus.fulfilled, note="Delivery completed", actor=actor,
    )


def _apply_delivery_update(
    state: AppState,
    order: PurchaseOrder,
    updates: dict[str, Any],
    action: str,
    actor: Optional[str],
) -> DeliveryDetails:
    """Caller holds the lock and has checked the order has a delivery."""
    delivery = order.delivery_details
    merged = DeliveryDetails.model_validate({**delivery.model_dump(), **updates})
    if updates.get("status") == DeliveryStatus.delivered:
        _fulfil(state, order, actor)
        _set_availability(state, "drivers", delivery.driver_id, True)
        _set_availability(state, "trucks", delivery.truck_id, True)

    order.delivery_details = merged
    order.updated_at = utcnow()
    activity_ledger.add_log(
        state,
        po_id=order.id,
        action=action,
        actor=actor,
        metadata={"delivery_status": merged.status.value},
    )
    return merged


def update_delivery_status(
    state: AppState,
    order_id: str,
    updates: dict[str, Any],
    actor: Optional[str] = None,
) -> Optional[PurchaseOrder]:
    """Merge delivery fields; reaching ``delivered`` fulfils the order and frees driver and truck."""
    updates = {k: v for k, v in updates.items() if v is not None}
    if "status" in updates:
        updates["status"] = DeliveryStatus(updates["status"])

    with state.lock:
        order = order_service.get_purchase_order_by_id(state, order_id)
        if order is None:
            return None
        delivery = _require_delivery(order)

        if updates.get("status") == DeliveryStatus.in_transit:
            truck = _find_record(state, "trucks", delivery.truck_id)
            if truck is not None:
                _check_gps(truck)
            updates.setdefault("depot_departure_time", utcnow())

        merged = _apply_delivery_update(
            state,
            order,
            updates,
            action=f"{_describe_delivery_update(updates)} for Purchase Order {order.po_number}",
            actor=actor,
        )
    logger.info("Delivery for order %s updated (%s)", order_id, merged.status.value)
    return order


def record_offloading_details(
    state: AppState,
    order_id: str,
    data: OffloadingCreate,
    actor: Optional[str] = None,
) -> Optional[PurchaseOrder]:
    """Store tank measurements; a volume loss above the threshold is flagged."""
    discrepancy = (data.loaded_volume - data.delivered_volume) * 100 / data.loaded_volume
    flagged = discrepancy > DISCREPANCY_THRESHOLD_PERCENT

    with state.lock:
        order = order_service.get_purchase_order_by_id(state, order_id)
        if order is None:
            return None
        delivery = _require_delivery(order)

        now = utcnow()
        order.offloading_details = OffloadingDetails(
            id=f"offloading-{new_id()[:8]}",
            delivery_id=delivery.id,
            **data.model_dump(),
            discrepancy_percentage=discrepancy,
            is_discrepancy_flagged=flagged,
            status=OffloadingStatus.under_investigation if flagged else OffloadingStatus.approved,
            timestamp=now,
        )
        order.updated_at = now

        action = f"Offloading details recorded for Purchase Order {order.po_number}"
        if flagged:
            action += f" - FLAGGED for investigation ({discrepancy:.2f}% discrepancy)"
        activity_ledger.add_log(
            state,
            po_id=order_id,
            action=action,
            actor=actor,
            metadata={"discrepancy_percentage": round(discrepancy, 2)},
        )
    if flagged:
        logger.warning("Order %s: %.2f%% volume discrepancy flagged", order_id, discrepancy)
    return order


_IMPACT_MARKS = {IncidentImpact.positive: "+ ", IncidentImpact.negative: "- ", IncidentImpact.neutral: ""}


def add_incident(
    state: AppState,
    order_id: str,
    data: IncidentCreate,
    actor: Optional[str] = None,
) -> Optional[PurchaseOrder]:
    with state.lock:
        order = order_service.get_purchase_order_by_id(state, order_id)
        if order is None:
            return None
        delivery = _require_delivery(order)

        now = utcnow()
        order.incidents.append(Incident(
            id=f"incident-{new_id()[:8]}",
            delivery_id=delivery.id,
            timestamp=now,
            **data.model_dump(),
        ))
        order.updated_at = now
        activity_ledger.add_log(
            state,
            po_id=order_id,
            action=f"{_IMPACT_MARKS[data.impact]}Incident reported: {data.type.value} - {data.description}",
            actor=actor or data.reported_by,
        )
    logger.info("Incident (%s) recorded on order %s", data.type.value, order_id)
    return order
