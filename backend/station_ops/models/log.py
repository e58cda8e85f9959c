"""Ledger remote tables — order-scoped logs and system-wide activity logs."""
from sqlalchemy import Column, String

from station_ops.database import Base
from station_ops.models.base import RecordMixin


class LogRecord(RecordMixin, Base):
    __tablename__ = "logs"

    po_id = Column(String(64), nullable=True, index=True)

    @classmethod
    def indexed_columns(cls, record: dict) -> dict:
        return {"po_id": record.get("po_id")}


class ActivityLogRecord(RecordMixin, Base):
    __tablename__ = "activity_logs"

    entity_type = Column(String(64), nullable=True, index=True)
    action = Column(String(255), nullable=True)

    @classmethod
    def indexed_columns(cls, record: dict) -> dict:
        return {"entity_type": record.get("entity_type"), "action": record.get("action")}
