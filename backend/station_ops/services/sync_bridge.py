"""Sync bridge — reconciles the working copy with the remote store.

Lifecycle:
- ``start``: one bounded connectivity probe. Failure puts the bridge in
  degraded mode (local data only, no retry). Success pulls every synced
  table, subscribes to each one and starts the periodic push.
- Remote change on a table → full reload of that collection, per
  ``CONFLICT_POLICY``. Changes tagged with the bridge's own origin (its
  pushes) are skipped.
- ``push``: upserts every local record and deletes only the ids removed
  locally since the previous push; rows other clients wrote are kept.
- ``dispose``: idempotent; releases every subscription even if one fails.
"""
import enum
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from station_ops.schemas.storage import SyncStatus
from station_ops.services.identifiers import utcnow
from station_ops.services.persistence import ALL_KEYS
from station_ops.services.remote_store import RemoteChange, RemoteStore, Subscription
from station_ops.services.scheduler import PeriodicTask
from station_ops.state import AppState

logger = logging.getLogger(__name__)


class ConflictPolicy(str, enum.Enum):
    # Remote reload replaces the local collection wholesale; unsynced local edits are lost.
    last_writer_wins = "last_writer_wins"


CONFLICT_POLICY = ConflictPolicy.last_writer_wins

# Working-copy collection name == remote table name.
SYNCED_TABLES: tuple[str, ...] = ALL_KEYS

DEGRADED_NOTICE = "Unable to connect to the database. Using local data only."


class SyncBridge:
    def __init__(
        self,
        state: AppState,
        remote: Optional[RemoteStore],
        tables: Sequence[str] = SYNCED_TABLES,
        probe_timeout: float = 5.0,
        push_interval: float = 60.0,
        conflict_policy: ConflictPolicy = CONFLICT_POLICY,
    ):
        self.state = state
        self.remote = remote
        self.tables = tuple(tables)
        self.probe_timeout = probe_timeout
        self.conflict_policy = ConflictPolicy(conflict_policy)
        self.origin = f"sync-bridge-{uuid.uuid4().hex[:8]}"

        self.sync_ready = False
        self.degraded = False
        self.notice: Optional[str] = None
        self.last_push_at: Optional[datetime] = None

        self._subscriptions: list[Subscription] = []
        self._disposed = False
        self._push_lock = threading.Lock()
        self._push_task = PeriodicTask("remote-push", push_interval, self.push)

    # ── Startup ────────────────────────────────────────────────────
    def start(self) -> bool:
        if self._disposed:
            return False
        if self.remote is None:
            return self._enter_degraded("remote store not configured")

        error = self._probe()
        if error:
            return self._enter_degraded(error)

        self.sync_ready = True
        self.pull()
        for table in self.tables:
            try:
                self._subscriptions.append(self.remote.subscribe(table, self._on_remote_change))
            except (KeyError, SQLAlchemyError) as e:
                logger.warning("Could not subscribe to %s: %s", table, e)
        self._push_task.start()
        logger.info("Sync ready: %d tables subscribed", len(self._subscriptions))
        return True

    def _probe(self) -> Optional[str]:
        """Run the probe with a hard timeout. Returns an error message, or None when healthy."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="remote-probe")
        future = executor.submit(self.remote.probe)
        try:
            future.result(timeout=self.probe_timeout)
            return None
        except FutureTimeout:
            return f"connectivity probe timed out after {self.probe_timeout:g}s"
        except (SQLAlchemyError, OSError) as e:
            return str(e)
        finally:
            executor.shutdown(wait=False)

    def _enter_degraded(self, reason: str) -> bool:
        self.degraded = True
        self.sync_ready = False
        self.notice = DEGRADED_NOTICE
        logger.warning("Remote store unavailable (%s); running in degraded mode", reason)
        return False

    # ── Pull / reload ──────────────────────────────────────────────
    def pull(self) -> None:
        """Load-on-start: a non-empty remote table replaces the local collection."""
        for table in self.tables:
            try:
                rows = self.remote.fetch_table(table)
            except SQLAlchemyError as e:
                logger.warning("Initial pull of %s failed: %s", table, e)
                continue
            if rows:
                self.state.replace_collection(table, rows)

    def reload(self, table: str) -> bool:
        try:
            rows = self.remote.fetch_table(table)
        except SQLAlchemyError as e:
            logger.warning("Reload of %s failed, keeping local copy: %s", table, e)
            return False
        self.state.replace_collection(table, rows)
        return True

    def _on_remote_change(self, change: RemoteChange) -> None:
        if self._disposed or change.origin == self.origin:
            return
        logger.info("Remote %s on %s; reloading", change.event_kind, change.table)
        self.reload(change.table)

    # ── Push ───────────────────────────────────────────────────────
    def push(self) -> bool:
        """Upsert every synced collection and send pending local deletions."""
        if not self.sync_ready or self._disposed:
            return False
        with self._push_lock:
            removed = self.state.drain_removed()
            try:
                for table in self.tables:
                    self.remote.mirror_table(
                        table,
                        self.state.export_collection(table),
                        deleted_ids=removed.get(table, ()),
                        origin=self.origin,
                    )
            except SQLAlchemyError as e:
                self.state.restore_removed(removed)
                logger.warning("Push to remote store failed: %s", e)
                return False
            self.last_push_at = utcnow()
        return True

    # ── Teardown ───────────────────────────────────────────────────
    def dispose(self) -> bool:
        if self._disposed:
            return False
        self._disposed = True
        self.sync_ready = False
        self._push_task.cancel()

        subscriptions, self._subscriptions = self._subscriptions, []
        for sub in subscriptions:
            try:
                sub.unsubscribe()
            except Exception:
                logger.exception("Failed to release subscription on %s", sub.table)
        logger.info("Sync bridge disposed (%d subscriptions released)", len(subscriptions))
        return True

    def status(self) -> SyncStatus:
        return SyncStatus(
            sync_ready=self.sync_ready,
            degraded=self.degraded,
            notice=self.notice,
            conflict_policy=self.conflict_policy.value,
            subscribed_tables=[sub.table for sub in self._subscriptions if sub.active],
            last_push_at=self.last_push_at,
        )
