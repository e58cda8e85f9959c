"""Auto-save — periodic and termination flushes of the working copy."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from station_ops.services.identifiers import utcnow
from station_ops.services.persistence import LocalStore, save_app_state
from station_ops.services.scheduler import PeriodicTask
from station_ops.state import AppState

logger = logging.getLogger(__name__)

UNSAVED_CHANGES_WARNING = (
    "Your latest changes could not be saved to local storage. "
    "Stay on this session and try again, or export your data first."
)


@dataclass
class TerminationDecision:
    """Outcome of the termination flush; ``proceed=False`` asks the caller to hold off."""

    proceed: bool
    warning: Optional[str] = None


class AutoSaver:
    def __init__(self, state: AppState, store: LocalStore, interval: float = 30.0):
        self.state = state
        self.store = store
        self.last_saved_at: Optional[datetime] = None
        self.last_result: Optional[bool] = None
        self._task = PeriodicTask("autosave", interval, self.flush)

    def flush(self) -> bool:
        """Serialize the seven snapshot collections to the local store."""
        ok = save_app_state(self.store, self.state.snapshot())
        self.last_result = ok
        if ok:
            self.last_saved_at = utcnow()
        else:
            logger.warning("Auto-save failed; working copy kept in memory")
        return ok

    def start(self) -> None:
        self._task.start()

    def stop(self) -> bool:
        return self._task.cancel()

    def flush_on_terminate(self) -> TerminationDecision:
        if self.flush():
            return TerminationDecision(proceed=True)
        logger.warning("Termination flush failed: %s", UNSAVED_CHANGES_WARNING)
        return TerminationDecision(proceed=False, warning=UNSAVED_CHANGES_WARNING)
