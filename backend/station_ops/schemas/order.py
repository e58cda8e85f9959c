"""Pydantic schemas for purchase orders and their status history."""
from __future__ import annotations
import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from station_ops.schemas.delivery import DeliveryDetails, Incident, OffloadingDetails


class OrderStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"
    approved = "approved"
    active = "active"
    delivered = "delivered"
    fulfilled = "fulfilled"
    rejected = "rejected"
    cancelled = "cancelled"
    completed = "completed"


class PaymentStatus(str, enum.Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"


class StatusHistoryEntry(BaseModel):
    id: str
    status: OrderStatus
    timestamp: datetime
    actor: str
    note: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class PurchaseOrder(BaseModel):
    """Working-copy order. Unknown fields (supplier, items, totals …) ride along untouched."""

    id: str
    po_number: str
    status: OrderStatus
    status_history: list[StatusHistoryEntry]
    payment_status: PaymentStatus = PaymentStatus.unpaid
    created_at: datetime
    updated_at: datetime
    approved_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    delivery_details: Optional[DeliveryDetails] = None
    offloading_details: Optional[OffloadingDetails] = None
    incidents: list[Incident] = []

    model_config = ConfigDict(extra="allow")


class PurchaseOrderCreate(BaseModel):
    id: Optional[str] = None
    status: OrderStatus = OrderStatus.pending
    payment_status: PaymentStatus = PaymentStatus.unpaid
    actor: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class PurchaseOrderUpdate(BaseModel):
    """Partial field update. ``status`` is not honoured here; use the status endpoint."""

    model_config = ConfigDict(extra="allow")


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    note: Optional[str] = None
    actor: Optional[str] = None
    approved_by: Optional[str] = None
    rejection_reason: Optional[str] = None


class StatusTrackerStep(BaseModel):
    status: OrderStatus
    reached: bool
    timestamp: Optional[datetime] = None
    local_time: Optional[str] = None
    actor: Optional[str] = None
    note: Optional[str] = None


class StatusTracker(BaseModel):
    order_id: str
    po_number: str
    current_status: OrderStatus
    description: str
    progress_percent: Optional[float] = None
    is_terminal: bool = False
    is_rejected: bool = False
    rejection_note: Optional[str] = None
    steps: list[StatusTrackerStep] = []
