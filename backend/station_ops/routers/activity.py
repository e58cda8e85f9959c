"""System-wide activity log API routes."""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from station_ops.dependencies import get_state
from station_ops.schemas.log import ActivityLog, ActivityLogCreate
from station_ops.schemas.pagination import PaginatedResult
from station_ops.services import activity_ledger
from station_ops.state import AppState

router = APIRouter()


@router.post("/", response_model=ActivityLog, status_code=status.HTTP_201_CREATED)
def create_activity_log(payload: ActivityLogCreate, state: AppState = Depends(get_state)):
    return activity_ledger.add_activity_log(
        state,
        action=payload.action,
        entity_type=payload.entity_type,
        entity_id=payload.entity_id,
        actor=payload.actor,
        details=payload.details,
        metadata=payload.metadata,
    )


@router.get("/", response_model=PaginatedResult[ActivityLog])
def list_activity_logs(
    entity_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(10),
    state: AppState = Depends(get_state),
):
    return activity_ledger.get_activity_logs(state, entity_type=entity_type, action=action, page=page, limit=limit)


@router.get("/recent", response_model=list[ActivityLog])
def recent_activity_logs(limit: int = Query(10, ge=0), state: AppState = Depends(get_state)):
    """Newest first, regardless of storage order."""
    return activity_ledger.get_recent_activity_logs(state, limit)
