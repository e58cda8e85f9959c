"""Local persistence store — durable key-value snapshot of the working copy.

Each named collection is one JSON blob on disk::

    {"schema_version": 1, "saved_at": "<ISO-8601>", "data": [...]}

Datetimes are written as ISO-8601 strings and re-hydrated on load. Writes
are capacity-checked against a quota before anything touches disk, and every
public function reports failure through its return value instead of raising.
"""
import enum
import json
import logging
import os
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from station_ops.schemas.storage import DatabaseInfo
from station_ops.services.identifiers import ensure_aware, utcnow

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# The snapshot contract: exactly these collections, nothing more.
SNAPSHOT_COLLECTIONS = (
    "purchase_orders",
    "logs",
    "suppliers",
    "drivers",
    "trucks",
    "gps_data",
    "ai_insights",
)
ACTIVITY_LOGS_KEY = "activity_logs"
ALL_KEYS = SNAPSHOT_COLLECTIONS + (ACTIVITY_LOGS_KEY,)

_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})?$")


# ── Codec ──────────────────────────────────────────────────────────
def _encode_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _parse_datetime(value: str) -> Any:
    """Offset-less timestamps are read as UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return ensure_aware(parsed)


def revive_dates(obj: dict) -> dict:
    """``json.loads`` object hook turning ISO-8601 strings back into datetimes."""
    for key, value in obj.items():
        if isinstance(value, str) and _ISO_DATETIME.match(value):
            obj[key] = _parse_datetime(value)
    return obj


def dumps(value: Any, **kwargs) -> str:
    return json.dumps(value, default=_encode_default, **kwargs)


def loads(text: str) -> Any:
    return json.loads(text, object_hook=revive_dates)


def to_jsonable(value: Any) -> Any:
    """Plain JSON types only (datetimes stay ISO strings)."""
    return json.loads(dumps(value))


def format_bytes(num_bytes: int) -> str:
    """Human readable size, e.g. ``1.5 KB``."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    size = float(num_bytes)
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{round(size, 2):g} {units[i]}"


# ── Store ──────────────────────────────────────────────────────────
class LocalStore:
    """Directory-backed key-value store holding one blob per key."""

    def __init__(self, root: str | Path, key_prefix: str = "po_system_", quota_bytes: int = 5 * 1024 * 1024):
        self.root = Path(root)
        self.key_prefix = key_prefix
        self.quota_bytes = quota_bytes
        self._lock = threading.Lock()
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.root / f"{self.key_prefix}{key}.json"

    def size_of(self, key: str) -> int:
        path = self.path_for(key)
        return path.stat().st_size if path.exists() else 0

    def total_size(self) -> int:
        return sum(self.size_of(key) for key in ALL_KEYS)

    def read_blob(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        with self._lock:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def write_blobs(self, blobs: dict[str, str]) -> bool:
        """Write several blobs, or none of them if the quota would be exceeded."""
        with self._lock:
            incoming = sum(len(text.encode("utf-8")) for text in blobs.values())
            replaced = sum(self.size_of(key) for key in blobs)
            projected = self.total_size() - replaced + incoming
            if projected > self.quota_bytes:
                logger.warning(
                    "Local store quota exceeded: %s needed, %s allowed",
                    format_bytes(projected), format_bytes(self.quota_bytes),
                )
                return False

            for key, text in blobs.items():
                path = self.path_for(key)
                tmp = path.with_suffix(".json.tmp")
                tmp.write_text(text, encoding="utf-8")
                os.replace(tmp, path)
            return True

    def remove(self, key: str) -> None:
        with self._lock:
            path = self.path_for(key)
            if path.exists():
                path.unlink()


def _wrap(records: list) -> str:
    return dumps({
        "schema_version": SCHEMA_VERSION,
        "saved_at": utcnow(),
        "data": records,
    })


def _unwrap(key: str, text: str) -> Optional[list]:
    blob = loads(text)
    if not isinstance(blob, dict) or blob.get("schema_version") != SCHEMA_VERSION:
        logger.warning("Ignoring %s: unknown schema version", key)
        return None
    data = blob.get("data")
    if not isinstance(data, list):
        logger.warning("Ignoring %s: payload is not a list", key)
        return None
    return data


# ── Collection-level API ───────────────────────────────────────────
def save_collection(store: LocalStore, key: str, records: list) -> bool:
    """Persist a single named collection. Returns False on any failure."""
    if not isinstance(records, list):
        logger.error("Cannot save %s: value is not a list", key)
        return False
    try:
        return store.write_blobs({key: _wrap(records)})
    except (OSError, TypeError, ValueError):
        logger.exception("Error saving %s to local store", key)
        return False


def load_collection(store: LocalStore, key: str, default: Optional[list] = None) -> list:
    """Stored collection, or ``default`` when missing or unreadable."""
    fallback = list(default) if default is not None else []
    try:
        text = store.read_blob(key)
        if text is None:
            return fallback
        data = _unwrap(key, text)
    except (OSError, ValueError) as e:
        logger.warning("Failed to load %s from local store: %s", key, e)
        return fallback
    return fallback if data is None else data


def save_app_state(store: LocalStore, snapshot: dict[str, list]) -> bool:
    """Flush a snapshot of the seven named collections.

    Unknown collection names are ignored. Nothing is written when the
    result would exceed the store quota.
    """
    if not snapshot:
        logger.error("Cannot save empty app state")
        return False

    blobs = {}
    try:
        for key in SNAPSHOT_COLLECTIONS:
            records = snapshot.get(key)
            if isinstance(records, list):
                blobs[key] = _wrap(records)
    except (TypeError, ValueError):
        logger.exception("Snapshot is not serializable")
        return False

    if not blobs:
        logger.error("Snapshot holds none of the persisted collections")
        return False

    try:
        saved = store.write_blobs(blobs)
    except OSError:
        logger.exception("Error writing snapshot to local store")
        return False

    if saved:
        logger.info("Saved app state (%d collections, %s)", len(blobs), format_bytes(store.total_size()))
    else:
        logger.error("Failed to save app state at %s", utcnow().isoformat())
    return saved


def load_app_state(store: LocalStore, defaults: Optional[dict[str, list]] = None) -> dict[str, list]:
    defaults = defaults or {}
    state = {key: load_collection(store, key, defaults.get(key)) for key in SNAPSHOT_COLLECTIONS}
    if not any(store.path_for(key).exists() for key in SNAPSHOT_COLLECTIONS):
        logger.info("No saved data found in local store, using defaults")
    return state


# ── Operator tooling ───────────────────────────────────────────────
def get_database_info(store: LocalStore) -> DatabaseInfo:
    counts = {key: len(load_collection(store, key)) for key in ALL_KEYS}
    total = store.total_size()
    return DatabaseInfo(
        record_counts=counts,
        total_size_bytes=total,
        total_size=format_bytes(total),
        quota_bytes=store.quota_bytes,
        last_update=utcnow(),
    )


def export_database(store: LocalStore) -> str:
    """Every stored collection as one pretty-printed JSON document."""
    return dumps({key: load_collection(store, key) for key in ALL_KEYS}, indent=2)


def import_database(store: LocalStore, json_data: str) -> bool:
    try:
        data = loads(json_data)
    except ValueError:
        logger.exception("Error importing database")
        return False
    if not isinstance(data, dict):
        logger.error("Import payload must be an object keyed by collection name")
        return False

    blobs = {key: _wrap(data[key]) for key in ALL_KEYS if isinstance(data.get(key), list)}
    if not blobs:
        return False
    try:
        return store.write_blobs(blobs)
    except OSError:
        logger.exception("Error writing imported data")
        return False


def reset_database(store: LocalStore) -> bool:
    for key in ALL_KEYS:
        store.remove(key)
    logger.info("All app data cleared from local store")
    return True
