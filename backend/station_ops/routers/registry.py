"""Supplier, driver and truck API routes."""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from station_ops.dependencies import get_state
from station_ops.schemas.pagination import PaginatedResult
from station_ops.schemas.registry import (
    AvailabilityUpdate,
    DriverCreate,
    DriverOut,
    DriverUpdate,
    GPSTagRequest,
    SupplierCreate,
    SupplierOut,
    TruckCreate,
    TruckOut,
    TruckUpdate,
)
from station_ops.services import registry_service
from station_ops.state import AppState

router = APIRouter()


def _get_or_404(state: AppState, collection: str, entity_id: str) -> dict:
    record = registry_service.get_entity(state, collection, entity_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{collection[:-1].capitalize()} not found")
    return record


def _updated_or_404(record: Optional[dict], collection: str) -> dict:
    if record is None:
        raise HTTPException(status_code=404, detail=f"{collection[:-1].capitalize()} not found")
    return record


def _ok_or_404(ok: bool, collection: str) -> None:
    if not ok:
        raise HTTPException(status_code=404, detail=f"{collection[:-1].capitalize()} not found")


# ── Suppliers ──────────────────────────────────────────────────────
@router.post("/suppliers", response_model=SupplierOut, status_code=status.HTTP_201_CREATED)
def add_supplier(payload: SupplierCreate, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    return registry_service.add_entity(state, "suppliers", payload, actor=actor)


@router.get("/suppliers", response_model=PaginatedResult[SupplierOut])
def list_suppliers(page: int = Query(1), limit: int = Query(10), state: AppState = Depends(get_state)):
    return registry_service.list_entities(state, "suppliers", page, limit)


@router.get("/suppliers/{supplier_id}", response_model=SupplierOut)
def get_supplier(supplier_id: str, state: AppState = Depends(get_state)):
    return _get_or_404(state, "suppliers", supplier_id)


# ── Drivers ────────────────────────────────────────────────────────
@router.post("/drivers", response_model=DriverOut, status_code=status.HTTP_201_CREATED)
def add_driver(payload: DriverCreate, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    return registry_service.add_entity(state, "drivers", payload, actor=actor)


@router.get("/drivers", response_model=PaginatedResult[DriverOut])
def list_drivers(page: int = Query(1), limit: int = Query(10), state: AppState = Depends(get_state)):
    return registry_service.list_entities(state, "drivers", page, limit)


@router.get("/drivers/available", response_model=list[DriverOut])
def list_available_drivers(state: AppState = Depends(get_state)):
    return registry_service.get_available(state, "drivers")


@router.get("/drivers/{driver_id}", response_model=DriverOut)
def get_driver(driver_id: str, state: AppState = Depends(get_state)):
    return _get_or_404(state, "drivers", driver_id)


@router.patch("/drivers/{driver_id}", response_model=DriverOut)
def update_driver(
    driver_id: str,
    payload: DriverUpdate,
    actor: Optional[str] = Query(None),
    state: AppState = Depends(get_state),
):
    fields = payload.model_dump(exclude_unset=True)
    return _updated_or_404(registry_service.update_entity(state, "drivers", driver_id, fields, actor=actor), "drivers")


@router.delete("/drivers/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_driver(driver_id: str, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    _ok_or_404(registry_service.delete_entity(state, "drivers", driver_id, actor=actor), "drivers")


@router.patch("/drivers/{driver_id}/availability", response_model=DriverOut)
def set_driver_availability(driver_id: str, payload: AvailabilityUpdate, state: AppState = Depends(get_state)):
    record = registry_service.set_availability(state, "drivers", driver_id, payload.is_available, actor=payload.actor)
    return _updated_or_404(record, "drivers")


# ── Trucks ─────────────────────────────────────────────────────────
@router.post("/trucks", response_model=TruckOut, status_code=status.HTTP_201_CREATED)
def add_truck(payload: TruckCreate, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    return registry_service.add_entity(state, "trucks", payload, actor=actor)


@router.get("/trucks", response_model=PaginatedResult[TruckOut])
def list_trucks(page: int = Query(1), limit: int = Query(10), state: AppState = Depends(get_state)):
    return registry_service.list_entities(state, "trucks", page, limit)


@router.get("/trucks/available", response_model=list[TruckOut])
def list_available_trucks(state: AppState = Depends(get_state)):
    return registry_service.get_available(state, "trucks")


@router.get("/trucks/non-gps", response_model=list[TruckOut])
def list_non_gps_trucks(state: AppState = Depends(get_state)):
    """Trucks without a GPS device attached."""
    return registry_service.get_non_gps_trucks(state)


@router.get("/trucks/{truck_id}", response_model=TruckOut)
def get_truck(truck_id: str, state: AppState = Depends(get_state)):
    return _get_or_404(state, "trucks", truck_id)


@router.patch("/trucks/{truck_id}", response_model=TruckOut)
def update_truck(
    truck_id: str,
    payload: TruckUpdate,
    actor: Optional[str] = Query(None),
    state: AppState = Depends(get_state),
):
    fields = payload.model_dump(exclude_unset=True)
    return _updated_or_404(registry_service.update_entity(state, "trucks", truck_id, fields, actor=actor), "trucks")


@router.delete("/trucks/{truck_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_truck(truck_id: str, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    _ok_or_404(registry_service.delete_entity(state, "trucks", truck_id, actor=actor), "trucks")


@router.patch("/trucks/{truck_id}/availability", response_model=TruckOut)
def set_truck_availability(truck_id: str, payload: AvailabilityUpdate, state: AppState = Depends(get_state)):
    record = registry_service.set_availability(state, "trucks", truck_id, payload.is_available, actor=payload.actor)
    return _updated_or_404(record, "trucks")


@router.post("/trucks/{truck_id}/gps", response_model=TruckOut)
def tag_truck_gps(truck_id: str, payload: GPSTagRequest, state: AppState = Depends(get_state)):
    """Attach a GPS device and record the truck's initial position."""
    _ok_or_404(
        registry_service.tag_truck_with_gps(state, truck_id, payload.gps_device_id, actor=payload.actor), "trucks",
    )
    return _get_or_404(state, "trucks", truck_id)


@router.delete("/trucks/{truck_id}/gps", response_model=TruckOut)
def untag_truck_gps(truck_id: str, actor: Optional[str] = Query(None), state: AppState = Depends(get_state)):
    _ok_or_404(registry_service.untag_truck_gps(state, truck_id, actor=actor), "trucks")
    return _get_or_404(state, "trucks", truck_id)
