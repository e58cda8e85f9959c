"""Purchase order API routes — delegates to order_service for lifecycle rules."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from station_ops.dependencies import get_state
from station_ops.schemas.delivery import (
    DeliveryStatus,
    DeliveryUpdate,
    DriverAssignment,
    IncidentCreate,
    OffloadingCreate,
)
from station_ops.schemas.log import LogEntry
from station_ops.schemas.order import (
    OrderStatus,
    PurchaseOrder,
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
    StatusTracker,
    StatusUpdateRequest,
)
from station_ops.schemas.pagination import PaginatedResult
from station_ops.services import activity_ledger, delivery_service, order_service
from station_ops.services.pagination import paginate
from station_ops.services.status_tracker import build_status_tracker
from station_ops.state import AppState

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_or_404(state: AppState, order_id: str) -> PurchaseOrder:
    order = order_service.get_purchase_order_by_id(state, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return order


@router.post("/", response_model=PurchaseOrder, status_code=status.HTTP_201_CREATED)
def create_order(payload: PurchaseOrderCreate, state: AppState = Depends(get_state)):
    """Create a purchase order; PO number and initial history are generated."""
    fields = payload.model_dump(exclude={"actor"})
    return order_service.add_purchase_order(state, fields, actor=payload.actor)


@router.get("/", response_model=PaginatedResult[PurchaseOrder])
def list_orders(
    page: int = Query(1),
    limit: int = Query(10),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    delivery_status: Optional[DeliveryStatus] = Query(None),
    flagged: bool = Query(False),
    state: AppState = Depends(get_state),
):
    """List orders in insertion order, optionally filtered by status.

    ``delivery_status`` selects orders by the state of their delivery and
    ``flagged=true`` keeps only orders with an offloading discrepancy under
    investigation.
    """
    if flagged:
        return paginate(order_service.get_orders_with_discrepancies(state), page, limit)
    if delivery_status:
        return paginate(order_service.get_orders_with_delivery_status(state, delivery_status), page, limit)
    if status_filter:
        return paginate(order_service.get_orders_by_status(state, status_filter), page, limit)
    return order_service.get_all_purchase_orders(state, page, limit)


@router.get("/{order_id}", response_model=PurchaseOrder)
def get_order(order_id: str, state: AppState = Depends(get_state)):
    return _get_or_404(state, order_id)


@router.patch("/{order_id}", response_model=PurchaseOrder)
def update_order(
    order_id: str,
    payload: PurchaseOrderUpdate,
    actor: Optional[str] = Query(None),
    state: AppState = Depends(get_state),
):
    """Merge free-form fields into an order. Status changes are not applied here."""
    try:
        updated = order_service.update_purchase_order(state, order_id, dict(payload.model_extra or {}), actor=actor)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    if not updated:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return _get_or_404(state, order_id)


@router.post("/{order_id}/status", response_model=PurchaseOrder)
def update_status(order_id: str, payload: StatusUpdateRequest, state: AppState = Depends(get_state)):
    """Transition an order's status and append to its history."""
    updated = order_service.update_order_status(
        state,
        order_id,
        payload.status,
        note=payload.note,
        actor=payload.actor,
        approved_by=payload.approved_by,
        rejection_reason=payload.rejection_reason,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return _get_or_404(state, order_id)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: str, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    if not order_service.delete_purchase_order(state, order_id, actor=actor):
        raise HTTPException(status_code=404, detail="Purchase order not found")


@router.get("/{order_id}/tracker", response_model=StatusTracker)
def get_tracker(order_id: str, state: AppState = Depends(get_state)):
    """Progress indicator and per-status timeline."""
    return build_status_tracker(_get_or_404(state, order_id))


@router.get("/{order_id}/logs", response_model=list[LogEntry])
def get_order_logs(order_id: str, state: AppState = Depends(get_state)):
    return activity_ledger.get_logs_by_order_id(state, order_id)


# ── Delivery ───────────────────────────────────────────────────────
def _found_or_404(order: Optional[PurchaseOrder]) -> PurchaseOrder:
    if order is None:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return order


@router.post("/{order_id}/assignment", response_model=PurchaseOrder)
def assign_driver(order_id: str, payload: DriverAssignment, state: AppState = Depends(get_state)):
    """Assign a driver and truck to a paid order."""
    return _found_or_404(delivery_service.assign_driver_to_order(
        state, order_id, payload.driver_id, payload.truck_id, actor=payload.actor,
    ))


@router.post("/{order_id}/delivery/start", response_model=PurchaseOrder)
def start_delivery(order_id: str, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    return _found_or_404(delivery_service.start_delivery(state, order_id, actor=actor))


@router.post("/{order_id}/delivery/complete", response_model=PurchaseOrder)
def complete_delivery(order_id: str, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    return _found_or_404(delivery_service.complete_delivery(state, order_id, actor=actor))


@router.patch("/{order_id}/delivery", response_model=PurchaseOrder)
def update_delivery(
    order_id: str,
    payload: DeliveryUpdate,
    actor: Optional[str] = Query(None),
    state: AppState = Depends(get_state),
):
    """Merge delivery fields; setting ``status=delivered`` fulfils the order."""
    return _found_or_404(delivery_service.update_delivery_status(
        state, order_id, payload.model_dump(exclude_unset=True), actor=actor,
    ))


@router.post("/{order_id}/offloading", response_model=PurchaseOrder)
def record_offloading(
    order_id: str,
    payload: OffloadingCreate,
    actor: Optional[str] = Query(None),
    state: AppState = Depends(get_state),
):
    return _found_or_404(delivery_service.record_offloading_details(state, order_id, payload, actor=actor))


@router.post("/{order_id}/incidents", response_model=PurchaseOrder, status_code=status.HTTP_201_CREATED)
def add_incident(
    order_id: str,
    payload: IncidentCreate,
    actor: Optional[str] = Query(None),
    state: AppState = Depends(get_state),
):
    return _found_or_404(delivery_service.add_incident(state, order_id, payload, actor=actor))
