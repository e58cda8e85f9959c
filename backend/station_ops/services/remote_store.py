"""Remote relational store — row-level read, mirror and change subscription per table.

Change notifications are raised for commits made through this store's own
sessions: ``after_flush`` records what changed, ``after_commit`` delivers it,
a rollback discards it. Each change carries the ``origin`` tag of the session
that wrote it. Cross-process push (e.g. database NOTIFY) is left to an
external transport that can call :meth:`SqlRemoteStore.notify`.
"""
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol

from sqlalchemy import event, func, select
from sqlalchemy.engine import Engine

from station_ops.database import Base, make_session_factory
from station_ops.models import TABLE_MODELS

logger = logging.getLogger(__name__)

_PENDING_CHANGES = "station_ops.pending_changes"


@dataclass(frozen=True)
class RemoteChange:
    event_kind: str  # INSERT | UPDATE | DELETE
    table: str
    payload: dict[str, Any] = field(default_factory=dict)
    origin: Optional[str] = None


ChangeCallback = Callable[[RemoteChange], None]


class Subscription:
    """Handle returned by ``subscribe``; ``unsubscribe`` is idempotent."""

    def __init__(self, store: "SqlRemoteStore", table: str, callback: ChangeCallback):
        self.store = store
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> bool:
        if not self.active:
            return False
        self.active = False
        self.store._remove_subscription(self)
        return True


class RemoteStore(Protocol):
    def probe(self) -> None: ...

    def fetch_table(self, table: str) -> list[dict[str, Any]]: ...

    def mirror_table(
        self,
        table: str,
        records: list[dict[str, Any]],
        deleted_ids: Iterable[str] = (),
        origin: Optional[str] = None,
    ) -> int: ...

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription: ...


class SqlRemoteStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = make_session_factory(engine)
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()
        self._closed = False

        event.listen(self._session_factory, "after_flush", self._collect_changes)
        event.listen(self._session_factory, "after_commit", self._dispatch_changes)
        event.listen(self._session_factory, "after_rollback", self._discard_changes)

    def create_schema(self) -> None:
        """Create tables directly (SQLite dev/test mode; production uses Alembic)."""
        Base.metadata.create_all(bind=self.engine)

    def session(self, origin: Optional[str] = None):
        return self._session_factory(info={"origin": origin})

    # ── Read / write ───────────────────────────────────────────────
    def probe(self) -> None:
        """Cheap round-trip; raises on any connectivity problem."""
        trucks = TABLE_MODELS["trucks"].__table__
        with self.engine.connect() as conn:
            conn.execute(select(func.count()).select_from(trucks)).scalar()

    def fetch_table(self, table: str) -> list[dict[str, Any]]:
        model = TABLE_MODELS[table]
        with self._session_factory() as session:
            rows = session.query(model).order_by(model.position).all()
            return [dict(row.payload) for row in rows]

    def mirror_table(
        self,
        table: str,
        records: list[dict[str, Any]],
        deleted_ids: Iterable[str] = (),
        origin: Optional[str] = None,
    ) -> int:
        """Upsert ``records`` and delete ``deleted_ids``; rows not named in either are left alone."""
        model = TABLE_MODELS[table]
        deleted = set(deleted_ids)
        with self.session(origin) as session:
            existing = {row.id: row for row in session.query(model).all()}
            written = 0
            for position, record in enumerate(records):
                record_id = record.get("id")
                if not record_id:
                    logger.warning("Skipping %s record without id", table)
                    continue
                written += 1
                columns = model.indexed_columns(record)
                row = existing.get(record_id)
                if row is None:
                    session.add(model(id=record_id, position=position, payload=record, **columns))
                elif row.payload != record or row.position != position:
                    row.payload = record
                    row.position = position
                    for name, value in columns.items():
                        setattr(row, name, value)
            for record_id in deleted:
                row = existing.get(record_id)
                if row is not None:
                    session.delete(row)
            session.commit()
        return written

    # ── Subscriptions ──────────────────────────────────────────────
    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        if table not in TABLE_MODELS:
            raise KeyError(table)
        sub = Subscription(self, table, callback)
        with self._lock:
            self._subscribers[table].append(sub)
        logger.info("Subscribed to changes on %s", table)
        return sub

    def _remove_subscription(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.table, [])
            if sub in subs:
                subs.remove(sub)

    def notify(self, change: RemoteChange) -> None:
        """Deliver a change to every active subscriber of its table."""
        with self._lock:
            subs = list(self._subscribers.get(change.table, ()))
        for sub in subs:
            if sub.active:
                sub.callback(change)

    def _collect_changes(self, session, flush_context) -> None:
        pending = session.info.setdefault(_PENDING_CHANGES, [])
        for kind, objects in (("INSERT", session.new), ("UPDATE", session.dirty), ("DELETE", session.deleted)):
            for obj in objects:
                table = getattr(obj, "__tablename__", None)
                if table in TABLE_MODELS:
                    pending.append(RemoteChange(kind, table, dict(obj.payload or {}), session.info.get("origin")))

    def _dispatch_changes(self, session) -> None:
        for change in session.info.pop(_PENDING_CHANGES, []):
            self.notify(change)

    def _discard_changes(self, session) -> None:
        session.info.pop(_PENDING_CHANGES, None)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        event.remove(self._session_factory, "after_flush", self._collect_changes)
        event.remove(self._session_factory, "after_commit", self._dispatch_changes)
        event.remove(self._session_factory, "after_rollback", self._discard_changes)
        with self._lock:
            for subs in self._subscribers.values():
                for sub in subs:
                    sub.active = False
            self._subscribers.clear()
        self.engine.dispose()
