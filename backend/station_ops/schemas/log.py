"""Pydantic schemas for the order-scoped log and the system-wide activity log."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class LogEntry(BaseModel):
    id: str
    po_id: str
    action: str
    actor: str
    timestamp: datetime
    details: Optional[str] = None
    entity_type: str = "purchase_order"
    entity_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)


class LogCreate(BaseModel):
    po_id: str
    action: str
    actor: Optional[str] = None
    details: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class ActivityLog(BaseModel):
    id: str
    timestamp: datetime
    action: str
    entity_type: str
    entity_id: str
    actor: str
    details: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)


class ActivityLogCreate(BaseModel):
    action: str
    entity_type: str
    entity_id: str
    actor: Optional[str] = None
    details: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
