"""Runtime — wires the working copy, local store, auto-save and sync bridge."""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from station_ops.config import Settings, settings
from station_ops.database import make_engine
from station_ops.services.autosave import AutoSaver, TerminationDecision
from station_ops.services.persistence import (
    ACTIVITY_LOGS_KEY,
    LocalStore,
    load_app_state,
    load_collection,
)
from station_ops.services.remote_store import SqlRemoteStore
from station_ops.services.sync_bridge import SyncBridge
from station_ops.state import AppState, InitializationState

logger = logging.getLogger(__name__)


class Runtime:
    def __init__(
        self,
        config: Settings,
        state: AppState,
        store: LocalStore,
        autosaver: AutoSaver,
        bridge: SyncBridge,
        remote: Optional[SqlRemoteStore] = None,
    ):
        self.config = config
        self.state = state
        self.store = store
        self.autosaver = autosaver
        self.bridge = bridge
        self.remote = remote
        self._started = False
        self._stopped = False

    def start(self) -> None:
        """Restore the last snapshot, seed defaults, then start timers and sync."""
        if self._started:
            return
        self._started = True

        self.state.load_snapshot(load_app_state(self.store))
        self.state.replace_collection(ACTIVITY_LOGS_KEY, load_collection(self.store, ACTIVITY_LOGS_KEY))
        self.state.seed_defaults()
        logger.info(
            "Working copy restored: %d orders, %d logs, %d activity logs",
            len(self.state.purchase_orders), len(self.state.logs), len(self.state.activity_logs),
        )

        self.autosaver.start()
        self.bridge.start()

    def shutdown(self) -> TerminationDecision:
        if self._stopped:
            return TerminationDecision(proceed=True)
        self._stopped = True

        decision = self.autosaver.flush_on_terminate()
        self.autosaver.stop()
        try:
            self.bridge.push()
        finally:
            self.bridge.dispose()
            if self.remote is not None:
                self.remote.close()
        return decision


def connect_remote(database_url: str) -> Optional[SqlRemoteStore]:
    """Build the remote store, or None when the driver/URL is unusable."""
    try:
        remote = SqlRemoteStore(make_engine(database_url))
        if database_url.startswith("sqlite"):
            remote.create_schema()
    except (ImportError, SQLAlchemyError, ValueError) as e:
        logger.warning("Remote store disabled: %s", e)
        return None
    return remote


def build_runtime(
    config: Settings = settings,
    remote: Optional[SqlRemoteStore] = None,
    init_state: Optional[InitializationState] = None,
) -> Runtime:
    store = LocalStore(config.LOCAL_STORE_PATH, config.LOCAL_STORE_KEY_PREFIX, config.LOCAL_STORAGE_QUOTA_BYTES)
    state = AppState(init_state=init_state, store=store)
    if remote is None and config.REMOTE_SYNC_ENABLED:
        remote = connect_remote(config.DATABASE_URL)

    autosaver = AutoSaver(state, store, interval=config.AUTOSAVE_INTERVAL_SECONDS)
    bridge = SyncBridge(
        state,
        remote,
        probe_timeout=config.REMOTE_PROBE_TIMEOUT_SECONDS,
        push_interval=config.REMOTE_PUSH_INTERVAL_SECONDS,
    )
    return Runtime(config, state, store, autosaver, bridge, remote)
