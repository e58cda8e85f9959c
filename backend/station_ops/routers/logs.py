"""Order-scoped log API routes."""
from fastapi import APIRouter, Depends, HTTPException, Query, status

from station_ops.dependencies import get_state
from station_ops.schemas.log import LogCreate, LogEntry
from station_ops.schemas.pagination import PaginatedResult
from station_ops.services import activity_ledger
from station_ops.state import AppState

router = APIRouter()


@router.post("/", response_model=LogEntry, status_code=status.HTTP_201_CREATED)
def create_log(payload: LogCreate, state: AppState = Depends(get_state)):
    return activity_ledger.add_log(
        state,
        po_id=payload.po_id,
        action=payload.action,
        actor=payload.actor,
        details=payload.details,
        metadata=payload.metadata,
    )


@router.get("/", response_model=PaginatedResult[LogEntry])
def list_logs(page: int = Query(1), limit: int = Query(10), state: AppState = Depends(get_state)):
    return activity_ledger.get_all_logs(state, page, limit)


@router.get("/{log_id}", response_model=LogEntry)
def get_log(log_id: str, state: AppState = Depends(get_state)):
    log = activity_ledger.get_log_by_id(state, log_id)
    if log is None:
        raise HTTPException(status_code=404, detail="Log entry not found")
    return log


@router.delete("/{log_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_log(log_id: str, state: AppState = Depends(get_state)):
    if not activity_ledger.delete_log(state, log_id):
        raise HTTPException(status_code=404, detail="Log entry not found")
