"""Pydantic schemas for storage statistics and sync status."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class DatabaseInfo(BaseModel):
    record_counts: dict[str, int]
    total_size_bytes: int
    total_size: str
    quota_bytes: int
    last_update: datetime


class SaveResult(BaseModel):
    success: bool
    saved_at: datetime


class SyncStatus(BaseModel):
    sync_ready: bool
    degraded: bool
    notice: Optional[str] = None
    conflict_policy: str
    subscribed_tables: list[str] = []
    last_push_at: Optional[datetime] = None
