"""Supplier, driver, truck, GPS and AI-insight remote tables."""
from station_ops.database import Base
from station_ops.models.base import RecordMixin


class SupplierRecord(RecordMixin, Base):
    __tablename__ = "suppliers"


class DriverRecord(RecordMixin, Base):
    __tablename__ = "drivers"


class TruckRecord(RecordMixin, Base):
    __tablename__ = "trucks"


class GPSDataRecord(RecordMixin, Base):
    __tablename__ = "gps_data"


class AIInsightRecord(RecordMixin, Base):
    __tablename__ = "ai_insights"
