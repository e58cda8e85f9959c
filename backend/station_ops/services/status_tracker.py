"""Status tracker — progress indicator and per-step timeline for one order."""
from typing import Optional

from station_ops.config import settings
from station_ops.schemas.order import (
    OrderStatus,
    PurchaseOrder,
    StatusHistoryEntry,
    StatusTracker,
    StatusTrackerStep,
)
from station_ops.services.identifiers import to_station_time
from station_ops.services.order_service import get_status_description

PROGRESSION = [
    OrderStatus.pending,
    OrderStatus.approved,
    OrderStatus.active,
    OrderStatus.delivered,
    OrderStatus.fulfilled,
]

TERMINAL_STATUSES = frozenset({OrderStatus.rejected, OrderStatus.cancelled, OrderStatus.completed})


def progress_percent(order_status: OrderStatus) -> float:
    """Position along the progression as 0–100.

    ``completed`` counts as the end of the line; ``draft``, ``rejected`` and
    ``cancelled`` sit at 0.
    """
    if order_status == OrderStatus.completed:
        return 100.0
    if order_status not in PROGRESSION:
        return 0.0
    pct = PROGRESSION.index(order_status) / (len(PROGRESSION) - 1) * 100
    return float(min(100.0, max(0.0, pct)))


def latest_entry(order: PurchaseOrder, order_status: OrderStatus) -> Optional[StatusHistoryEntry]:
    """Most recent history entry with this status; later appends win ties."""
    matches = [(entry.timestamp, i, entry) for i, entry in enumerate(order.status_history) if entry.status == order_status]
    if not matches:
        return None
    return max(matches, key=lambda m: (m[0], m[1]))[2]


def _is_reached(order: PurchaseOrder, step: OrderStatus, entry: Optional[StatusHistoryEntry]) -> bool:
    current = order.status
    if current in PROGRESSION:
        return PROGRESSION.index(step) <= PROGRESSION.index(current)
    if current == OrderStatus.completed:
        return True
    return entry is not None


def build_status_tracker(order: PurchaseOrder, tz_name: Optional[str] = None) -> StatusTracker:
    tz_name = tz_name or settings.STATION_TIMEZONE
    steps = []
    for step in PROGRESSION:
        entry = latest_entry(order, step)
        steps.append(StatusTrackerStep(
            status=step,
            reached=_is_reached(order, step, entry),
            timestamp=entry.timestamp if entry else None,
            local_time=to_station_time(entry.timestamp, tz_name) if entry else None,
            actor=entry.actor if entry else None,
            note=entry.note if entry else None,
        ))

    is_rejected = order.status == OrderStatus.rejected
    rejection_note = None
    if is_rejected:
        rejected_entry = latest_entry(order, OrderStatus.rejected)
        rejection_note = (rejected_entry.note if rejected_entry else None) or order.rejection_reason

    return StatusTracker(
        order_id=order.id,
        po_number=order.po_number,
        current_status=order.status,
        description=get_status_description(order.status),
        progress_percent=None if is_rejected else progress_percent(order.status),
        is_terminal=order.status in TERMINAL_STATUSES,
        is_rejected=is_rejected,
        rejection_note=rejection_note,
        steps=steps,
    )
