"""Order lifecycle engine — owns the purchase-order collection.

Responsibilities:
- PO creation with a seeded, single-entry status history
- Status transitions that append to the history (and mark ``active`` orders paid)
- Field updates that never touch status or history
- Transition policy: permissive (any → any) by default, strict on request
- One order-log entry for every mutation

Unknown ids are reported as ``False``/``None``, never raised.
"""
import enum
import logging
from typing import Any, Optional

from fastapi import HTTPException, status as http_status

from station_ops.config import settings
from station_ops.schemas.delivery import DeliveryStatus
from station_ops.schemas.order import (
    OrderStatus,
    PaymentStatus,
    PurchaseOrder,
    StatusHistoryEntry,
)
from station_ops.schemas.pagination import PaginatedResult
from station_ops.services import activity_ledger
from station_ops.services.identifiers import generate_po_number, new_id, utcnow
from station_ops.services.pagination import paginate
from station_ops.state import AppState

logger = logging.getLogger(__name__)


class TransitionPolicy(str, enum.Enum):
    permissive = "permissive"
    strict = "strict"


# Transitions honoured under the strict policy.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.draft: frozenset({OrderStatus.pending, OrderStatus.cancelled}),
    OrderStatus.pending: frozenset({OrderStatus.approved, OrderStatus.rejected, OrderStatus.cancelled}),
    OrderStatus.approved: frozenset({OrderStatus.active, OrderStatus.rejected, OrderStatus.cancelled}),
    OrderStatus.active: frozenset({OrderStatus.delivered, OrderStatus.cancelled}),
    OrderStatus.delivered: frozenset({OrderStatus.fulfilled, OrderStatus.completed}),
    OrderStatus.fulfilled: frozenset({OrderStatus.completed}),
    OrderStatus.rejected: frozenset(),
    OrderStatus.cancelled: frozenset(),
    OrderStatus.completed: frozenset(),
}

STATUS_DESCRIPTIONS = {
    OrderStatus.draft: "Draft",
    OrderStatus.pending: "Pending",
    OrderStatus.approved: "Approved",
    OrderStatus.rejected: "Rejected",
    OrderStatus.active: "Active (Paid)",
    OrderStatus.delivered: "Delivered",
    OrderStatus.fulfilled: "Fulfilled",
    OrderStatus.cancelled: "Cancelled",
    OrderStatus.completed: "Completed",
}

# Owned by the engine; a field update cannot set these.
PROTECTED_FIELDS = frozenset({
    "id", "po_number", "status", "status_history", "created_at", "updated_at",
    # written by the delivery workflow
    "delivery_details", "offloading_details", "incidents",
})


def get_status_description(order_status: OrderStatus | str) -> str:
    try:
        return STATUS_DESCRIPTIONS[OrderStatus(order_status)]
    except ValueError:
        return str(order_status)


def is_transition_allowed(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def _check_transition(order: PurchaseOrder, new_status: OrderStatus, policy: TransitionPolicy) -> None:
    """Strict policy only — refuse transitions missing from the table."""
    if policy == TransitionPolicy.strict and not is_transition_allowed(order.status, new_status):
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail=f"Transition {order.status.value} → {new_status.value} is not allowed for {order.po_number}",
        )


def _find(state: AppState, order_id: str) -> Optional[PurchaseOrder]:
    return next((po for po in state.purchase_orders if po.id == order_id), None)


def add_purchase_order(state: AppState, fields: dict[str, Any], actor: Optional[str] = None) -> PurchaseOrder:
    """Create an order with a generated PO number and one history entry."""
    fields = dict(fields)
    actor = actor or fields.pop("actor", None) or settings.DEFAULT_ACTOR
    fields.pop("actor", None)
    initial_status = OrderStatus(fields.pop("status", None) or OrderStatus.pending)
    order_id = fields.pop("id", None) or new_id()
    for key in PROTECTED_FIELDS:
        fields.pop(key, None)

    now = utcnow()
    order = PurchaseOrder(
        id=order_id,
        po_number=generate_po_number(settings.PO_NUMBER_PREFIX),
        status=initial_status,
        status_history=[
            StatusHistoryEntry(id=new_id(), status=initial_status, timestamp=now, actor=actor, note="Order created"),
        ],
        created_at=now,
        updated_at=now,
        **fields,
    )

    with state.lock:
        state.purchase_orders.append(order)
        activity_ledger.add_log(
            state,
            po_id=order.id,
            action=f"Purchase Order {order.po_number} created with status {initial_status.value}",
            actor=actor,
        )
    logger.info("Created purchase order %s (%s) with status %s", order.po_number, order.id, initial_status.value)
    return order


def update_order_status(
    state: AppState,
    order_id: str,
    new_status: OrderStatus | str,
    note: Optional[str] = None,
    actor: Optional[str] = None,
    approved_by: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    policy: Optional[TransitionPolicy | str] = None,
) -> bool:
    """Move an order to ``new_status`` and append the change to its history."""
    new_status = OrderStatus(new_status)
    policy = TransitionPolicy(policy or settings.ORDER_TRANSITION_POLICY)
    actor = actor or settings.DEFAULT_ACTOR

    with state.lock:
        order = _find(state, order_id)
        if order is None:
            logger.warning("Status update for unknown order %s", order_id)
            return False

        _check_transition(order, new_status, policy)

        previous = order.status
        now = utcnow()
        entry = StatusHistoryEntry(
            id=new_id(),
            status=new_status,
            timestamp=now,
            actor=actor,
            note=note if note is not None else f"Status changed from {previous.value} to {new_status.value}",
        )
        order.status = new_status
        order.updated_at = now
        order.status_history.append(entry)

        if new_status == OrderStatus.active:
            order.payment_status = PaymentStatus.paid
        if new_status == OrderStatus.approved and approved_by:
            order.approved_by = approved_by
        if new_status == OrderStatus.rejected and rejection_reason:
            order.rejection_reason = rejection_reason

        activity_ledger.add_log(
            state,
            po_id=order.id,
            action=f"Status updated to {get_status_description(new_status)} for Purchase Order {order.po_number}",
            actor=actor,
            details=entry.note,
            metadata={"from": previous.value, "to": new_status.value},
        )
    logger.info("Order %s: %s → %s", order_id, previous.value, new_status.value)
    return True


def update_purchase_order(
    state: AppState,
    order_id: str,
    fields: dict[str, Any],
    actor: Optional[str] = None,
) -> bool:
    """Shallow-merge non-status fields into an order.

    ``status`` and the other engine-owned fields are dropped with a warning;
    status changes go through :func:`update_order_status` so the history
    always ends at the current status.
    """
    updates = dict(fields)
    ignored = sorted(PROTECTED_FIELDS & updates.keys())
    if ignored:
        logger.warning("Ignoring engine-owned fields %s in update of order %s", ignored, order_id)
    updates = {k: v for k, v in updates.items() if k not in PROTECTED_FIELDS}

    with state.lock:
        order = _find(state, order_id)
        if order is None:
            logger.warning("Field update for unknown order %s", order_id)
            return False

        merged = PurchaseOrder.model_validate({**order.model_dump(), **updates, "updated_at": utcnow()})
        index = state.purchase_orders.index(order)
        state.purchase_orders[index] = merged

        activity_ledger.add_log(
            state,
            po_id=order_id,
            action=f"Purchase Order {merged.po_number} updated",
            actor=actor,
            metadata={"fields": sorted(updates)},
        )
    logger.info("Updated order %s fields %s", order_id, sorted(updates))
    return True


def delete_purchase_order(state: AppState, order_id: str, actor: Optional[str] = None) -> bool:
    """Remove an order and its history irrevocably."""
    with state.lock:
        order = _find(state, order_id)
        if order is None:
            return False
        state.purchase_orders.remove(order)
        state.mark_removed("purchase_orders", order_id)
        activity_ledger.add_log(
            state,
            po_id=order_id,
            action=f"Purchase Order {order.po_number} deleted",
            actor=actor,
        )
    logger.info("Deleted purchase order %s (%s)", order.po_number, order_id)
    return True


def get_purchase_order_by_id(state: AppState, order_id: str) -> Optional[PurchaseOrder]:
    with state.lock:
        return _find(state, order_id)


def get_all_purchase_orders(state: AppState, page: int = 1, limit: int = 10) -> PaginatedResult:
    with state.lock:
        return paginate(list(state.purchase_orders), page, limit)


def get_orders_by_status(state: AppState, order_status: OrderStatus | str) -> list[PurchaseOrder]:
    order_status = OrderStatus(order_status)
    with state.lock:
        return [po for po in state.purchase_orders if po.status == order_status]


def get_orders_with_delivery_status(state: AppState, delivery_status: DeliveryStatus | str) -> list[PurchaseOrder]:
    delivery_status = DeliveryStatus(delivery_status)
    with state.lock:
        return [
            po for po in state.purchase_orders
            if po.delivery_details is not None and po.delivery_details.status == delivery_status
        ]


def get_orders_with_discrepancies(state: AppState) -> list[PurchaseOrder]:
    """Orders whose offloading measurements were flagged for investigation."""
    with state.lock:
        return [
            po for po in state.purchase_orders
            if po.offloading_details is not None and po.offloading_details.is_discrepancy_flagged
        ]
