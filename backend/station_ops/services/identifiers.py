"""Identifier and timestamp helpers shared by every service."""
import random
import uuid
from datetime import datetime, timezone
from typing import Optional

import pytz


def new_id() -> str:
    return str(uuid.uuid4())


def new_log_id() -> str:
    """Short ledger id, e.g. ``log-1f2e3d4c``."""
    return f"log-{uuid.uuid4().hex[:8]}"


def generate_po_number(prefix: str = "PO") -> str:
    """``PREFIX-######`` with a random 6-digit suffix.

    Not guaranteed unique across the collection; collisions are accepted
    without retry.
    """
    return f"{prefix}-{random.randint(0, 999999):06d}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(ts: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def to_station_time(ts: Optional[datetime], tz_name: str) -> Optional[str]:
    """Render a timestamp in the station's local timezone for display."""
    if ts is None:
        return None
    ts = ensure_aware(ts)
    tz = pytz.timezone(tz_name)
    return ts.astimezone(tz).strftime("%Y-%m-%d %H:%M %Z")
