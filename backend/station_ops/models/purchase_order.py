"""PurchaseOrder remote table."""
from sqlalchemy import Column, String

from station_ops.database import Base
from station_ops.models.base import RecordMixin


class PurchaseOrderRecord(RecordMixin, Base):
    __tablename__ = "purchase_orders"

    po_number = Column(String(32), nullable=True, index=True)
    status = Column(String(32), nullable=True, index=True)
    payment_status = Column(String(32), nullable=True)

    @classmethod
    def indexed_columns(cls, record: dict) -> dict:
        return {
            "po_number": record.get("po_number"),
            "status": record.get("status"),
            "payment_status": record.get("payment_status"),
        }
