"""Pydantic schemas for delivery tracking, offloading records and incidents."""
from __future__ import annotations
import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class DeliveryStatus(str, enum.Enum):
    pending = "pending"
    in_transit = "in_transit"
    delivered = "delivered"


class OffloadingStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    under_investigation = "under_investigation"


class IncidentType(str, enum.Enum):
    delay = "delay"
    mechanical = "mechanical"
    accident = "accident"
    feedback = "feedback"
    other = "other"


class IncidentImpact(str, enum.Enum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"


class DeliveryDetails(BaseModel):
    id: str
    po_id: str
    driver_id: Optional[str] = None
    truck_id: Optional[str] = None
    status: DeliveryStatus = DeliveryStatus.pending
    depot_departure_time: Optional[datetime] = None
    destination_arrival_time: Optional[datetime] = None
    expected_arrival_time: Optional[datetime] = None
    distance_covered: Optional[float] = None
    total_distance: Optional[float] = None
    is_gps_tagged: bool = False
    gps_device_id: Optional[str] = None


class OffloadingDetails(BaseModel):
    id: str
    delivery_id: str
    initial_tank_volume: float
    final_tank_volume: float
    loaded_volume: float
    delivered_volume: float
    measured_by: str
    measured_by_role: str
    discrepancy_percentage: float
    is_discrepancy_flagged: bool
    status: OffloadingStatus
    notes: Optional[str] = None
    timestamp: datetime


class Incident(BaseModel):
    id: str
    delivery_id: str
    type: IncidentType
    description: str
    impact: IncidentImpact = IncidentImpact.neutral
    reported_by: str
    timestamp: datetime


# ── Requests ───────────────────────────────────────────────────────
class DriverAssignment(BaseModel):
    driver_id: str
    truck_id: str
    actor: Optional[str] = None


class DeliveryUpdate(BaseModel):
    status: Optional[DeliveryStatus] = None
    depot_departure_time: Optional[datetime] = None
    destination_arrival_time: Optional[datetime] = None
    expected_arrival_time: Optional[datetime] = None
    distance_covered: Optional[float] = None
    total_distance: Optional[float] = None


class OffloadingCreate(BaseModel):
    initial_tank_volume: float
    final_tank_volume: float
    loaded_volume: float = Field(gt=0)
    delivered_volume: float = Field(ge=0)
    measured_by: str
    measured_by_role: str
    notes: Optional[str] = None


class IncidentCreate(BaseModel):
    type: IncidentType
    description: str
    impact: IncidentImpact = IncidentImpact.neutral
    reported_by: str
