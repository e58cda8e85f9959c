"""Pydantic schemas for suppliers, drivers and trucks."""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, ConfigDict


class SupplierCreate(BaseModel):
    name: str
    address: str = ""
    contact: str = ""


class SupplierOut(SupplierCreate):
    id: str

    model_config = ConfigDict(extra="allow")


class DriverCreate(BaseModel):
    name: str
    contact: str = ""
    license_number: str = ""
    is_available: bool = True


class DriverOut(DriverCreate):
    id: str

    model_config = ConfigDict(extra="allow")


class TruckCreate(BaseModel):
    plate_number: str
    capacity: float = 0
    model: str = ""
    has_gps: bool = False
    is_available: bool = True
    is_gps_tagged: bool = False
    gps_device_id: Optional[str] = None


class TruckOut(TruckCreate):
    id: str

    model_config = ConfigDict(extra="allow")


class AvailabilityUpdate(BaseModel):
    is_available: bool
    actor: Optional[str] = None


class DriverUpdate(BaseModel):
    name: Optional[str] = None
    contact: Optional[str] = None
    license_number: Optional[str] = None
    is_available: Optional[bool] = None


class TruckUpdate(BaseModel):
    plate_number: Optional[str] = None
    capacity: Optional[float] = None
    model: Optional[str] = None
    has_gps: Optional[bool] = None
    is_available: Optional[bool] = None


class GPSTagRequest(BaseModel):
    gps_device_id: str
    actor: Optional[str] = None
