"""Local storage and sync status API routes."""
import logging
from typing import Any
from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from station_ops.dependencies import get_runtime
from station_ops.runtime import Runtime
from station_ops.schemas.storage import DatabaseInfo, SaveResult, SyncStatus
from station_ops.services import persistence
from station_ops.services.identifiers import utcnow

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/info", response_model=DatabaseInfo)
def storage_info(runtime: Runtime = Depends(get_runtime)):
    """Record counts and size of the local store."""
    return persistence.get_database_info(runtime.store)


@router.post("/save", response_model=SaveResult)
def save_now(runtime: Runtime = Depends(get_runtime)):
    """Flush the working copy immediately."""
    if not runtime.autosaver.flush():
        raise HTTPException(
            status_code=status.HTTP_507_INSUFFICIENT_STORAGE,
            detail="Local storage is full or unavailable; data kept in memory only",
        )
    return SaveResult(success=True, saved_at=runtime.autosaver.last_saved_at or utcnow())


@router.get("/export")
def export_data(runtime: Runtime = Depends(get_runtime)):
    runtime.autosaver.flush()
    return Response(content=persistence.export_database(runtime.store), media_type="application/json")


@router.post("/import")
def import_data(payload: dict[str, Any] = Body(...), runtime: Runtime = Depends(get_runtime)):
    """Replace stored collections with the uploaded ones and reload the working copy."""
    if not persistence.import_database(runtime.store, persistence.dumps(payload)):
        raise HTTPException(status_code=400, detail="Import failed: no usable collections or storage full")
    runtime.state.load_snapshot(persistence.load_app_state(runtime.store))
    runtime.state.replace_collection(
        persistence.ACTIVITY_LOGS_KEY,
        persistence.load_collection(runtime.store, persistence.ACTIVITY_LOGS_KEY),
    )
    logger.info("Imported collections %s", sorted(k for k in payload if k in persistence.ALL_KEYS))
    return {"imported": True}


@router.post("/reset")
def reset_data(runtime: Runtime = Depends(get_runtime)):
    """Clear the local store and empty the working copy."""
    persistence.reset_database(runtime.store)
    for name in persistence.ALL_KEYS:
        runtime.state.replace_collection(name, [])
    return {"reset": True}


@router.get("/sync", response_model=SyncStatus)
def sync_status(runtime: Runtime = Depends(get_runtime)):
    return runtime.bridge.status()
