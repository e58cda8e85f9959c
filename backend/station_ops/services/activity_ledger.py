"""Activity ledger — the order-scoped ``logs`` and the system-wide ``activity_logs``.

Both ledgers append at the end; "recent" views sort by timestamp at query
time and never depend on storage order. Entries are never edited: an order
log may be deleted by id, an activity log never is.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from station_ops.config import settings
from station_ops.schemas.log import ActivityLog, LogEntry
from station_ops.schemas.pagination import PaginatedResult
from station_ops.services.identifiers import ensure_aware, new_log_id, utcnow
from station_ops.services.pagination import paginate
from station_ops.state import AppState

logger = logging.getLogger(__name__)


def add_log(
    state: AppState,
    po_id: str,
    action: str,
    actor: Optional[str] = None,
    details: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> LogEntry:
    """Append an entry to the order-scoped ledger."""
    entry = LogEntry(
        id=new_log_id(),
        po_id=po_id,
        action=action,
        actor=actor or settings.DEFAULT_ACTOR,
        timestamp=ensure_aware(timestamp) if timestamp else utcnow(),
        details=details,
        entity_id=po_id,
        metadata=metadata,
    )
    with state.lock:
        state.logs.append(entry)
    logger.debug("Log %s for %s: %s", entry.id, po_id, action)
    return entry


def delete_log(state: AppState, log_id: str) -> bool:
    with state.lock:
        before = len(state.logs)
        state.logs = [log for log in state.logs if log.id != log_id]
        removed = len(state.logs) < before
        if removed:
            state.mark_removed("logs", log_id)
    if removed:
        logger.info("Deleted log %s", log_id)
    return removed


def get_log_by_id(state: AppState, log_id: str) -> Optional[LogEntry]:
    with state.lock:
        return next((log for log in state.logs if log.id == log_id), None)


def get_logs_by_order_id(state: AppState, order_id: str) -> list[LogEntry]:
    with state.lock:
        return [log for log in state.logs if log.po_id == order_id]


def get_all_logs(state: AppState, page: int = 1, limit: int = 10) -> PaginatedResult:
    with state.lock:
        return paginate(list(state.logs), page, limit)


def add_activity_log(
    state: AppState,
    action: str,
    entity_type: str,
    entity_id: str,
    actor: Optional[str] = None,
    details: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> ActivityLog:
    """Append to the system-wide ledger and write it through to the local store."""
    entry = ActivityLog(
        id=new_log_id(),
        timestamp=ensure_aware(timestamp) if timestamp else utcnow(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor or settings.DEFAULT_ACTOR,
        details=details,
        metadata=metadata,
    )
    with state.lock:
        state.activity_logs.append(entry)
        if state.store is not None and not state.persist_activity_logs():
            logger.warning("Activity log %s kept in memory only; local save failed", entry.id)
    logger.info("Activity %s on %s %s by %s", action, entity_type, entity_id, entry.actor)
    return entry


def get_activity_logs(
    state: AppState,
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> PaginatedResult:
    """Filtered activity logs in storage order, paginated."""
    with state.lock:
        logs = list(state.activity_logs)
    if entity_type:
        logs = [log for log in logs if log.entity_type == entity_type]
    if action:
        logs = [log for log in logs if log.action == action]
    return paginate(logs, page, limit)


def get_activity_logs_by_entity_type(state: AppState, entity_type: str) -> list[ActivityLog]:
    with state.lock:
        return [log for log in state.activity_logs if log.entity_type == entity_type]


def get_activity_logs_by_action(state: AppState, action: str) -> list[ActivityLog]:
    with state.lock:
        return [log for log in state.activity_logs if log.action == action]


def get_recent_activity_logs(state: AppState, limit: int = 10) -> list[ActivityLog]:
    """Newest first by timestamp; on equal timestamps the later append wins."""
    with state.lock:
        logs = list(reversed(state.activity_logs))
    ordered = sorted(logs, key=lambda log: log.timestamp, reverse=True)
    return ordered[: max(0, limit)]
