"""Columns shared by every remote table mirrored from the working copy."""
from sqlalchemy import Column, String, Integer, DateTime, JSON
from sqlalchemy.sql import func


class RecordMixin:
    """One row per record: the full record travels in ``payload``.

    ``position`` keeps the working copy's insertion order so a reload
    reproduces the collection exactly.
    """

    id = Column(String(64), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @classmethod
    def indexed_columns(cls, record: dict) -> dict:
        """Extra queryable columns derived from the payload."""
        return {}
