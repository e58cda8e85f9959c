"""In-memory working copy — the point of truth during a live session.

Every collection is owned here and mutated only by the service modules,
which take ``state.lock`` around each operation so mutations apply one at a
time in call order, whichever thread (request handler, auto-save timer,
sync timer) issues them.
"""
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from station_ops.schemas.log import ActivityLog, LogEntry
from station_ops.schemas.order import PurchaseOrder
from station_ops.services.identifiers import new_id
from station_ops.services.persistence import (
    ACTIVITY_LOGS_KEY,
    ALL_KEYS,
    SNAPSHOT_COLLECTIONS,
    LocalStore,
    dumps,
    loads,
    save_collection,
    to_jsonable,
)

logger = logging.getLogger(__name__)

TYPED_COLLECTIONS = {
    "purchase_orders": PurchaseOrder,
    "logs": LogEntry,
    ACTIVITY_LOGS_KEY: ActivityLog,
}

DEFAULT_SUPPLIERS = [
    {"name": "Total Energies Depot", "address": "Apapa Depot Road", "contact": "depot@total.example"},
    {"name": "Oando Terminal", "address": "Ijora Causeway", "contact": "terminal@oando.example"},
]


@dataclass
class InitializationState:
    """Whether default data has been seeded for this process."""

    seeded: bool = False


class AppState:
    def __init__(self, init_state: Optional[InitializationState] = None, store: Optional[LocalStore] = None):
        self.purchase_orders: list[PurchaseOrder] = []
        self.logs: list[LogEntry] = []
        self.activity_logs: list[ActivityLog] = []
        self.suppliers: list[dict[str, Any]] = []
        self.drivers: list[dict[str, Any]] = []
        self.trucks: list[dict[str, Any]] = []
        self.gps_data: list[dict[str, Any]] = []
        self.ai_insights: list[dict[str, Any]] = []

        self.lock = threading.RLock()
        self.init_state = init_state or InitializationState()
        self.store = store
        # ids deleted locally since the last push, per collection
        self._removed: dict[str, set[str]] = defaultdict(set)

    def snapshot(self) -> dict[str, list]:
        """JSON-safe copy of the seven persisted collections."""
        with self.lock:
            return {name: to_jsonable(getattr(self, name)) for name in SNAPSHOT_COLLECTIONS}

    def export_collection(self, name: str) -> list:
        with self.lock:
            return to_jsonable(getattr(self, name))

    def replace_collection(self, name: str, records: list) -> None:
        """Swap a whole collection for ``records`` (dicts, dates as strings or datetimes)."""
        if name not in ALL_KEYS:
            raise KeyError(name)
        parsed = _parse_records(name, records)
        with self.lock:
            setattr(self, name, parsed)
        logger.info("Replaced %s with %d records", name, len(parsed))

    def load_snapshot(self, snapshot: dict[str, list]) -> None:
        for name, records in snapshot.items():
            if name in ALL_KEYS and isinstance(records, list):
                self.replace_collection(name, records)

    def mark_removed(self, name: str, record_id: str) -> None:
        with self.lock:
            self._removed[name].add(record_id)

    def drain_removed(self) -> dict[str, set[str]]:
        """Hand over the pending deletions and start a fresh set."""
        with self.lock:
            removed, self._removed = dict(self._removed), defaultdict(set)
        return removed

    def restore_removed(self, removed: dict[str, set[str]]) -> None:
        with self.lock:
            for name, ids in removed.items():
                self._removed[name].update(ids)

    def persist_activity_logs(self) -> bool:
        if self.store is None:
            return False
        return save_collection(self.store, ACTIVITY_LOGS_KEY, self.export_collection(ACTIVITY_LOGS_KEY))

    def seed_defaults(self) -> bool:
        """Seed default suppliers once per initialization state."""
        with self.lock:
            if self.init_state.seeded:
                return False
            self.init_state.seeded = True
            if self.suppliers:
                return False
            self.suppliers = [{"id": new_id(), **supplier} for supplier in DEFAULT_SUPPLIERS]
        logger.info("Seeded %d default suppliers", len(DEFAULT_SUPPLIERS))
        return True


def _parse_records(name: str, records: list) -> list:
    # Round-trip through the codec so ISO strings come back as datetimes.
    revived = loads(dumps(records))
    model = TYPED_COLLECTIONS.get(name)
    if model is None:
        return [r for r in revived if isinstance(r, dict)]

    parsed = []
    for record in revived:
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning("Skipping unreadable %s record: %s", name, e)
    return parsed
