"""Pytest fixtures — temp-dir local store and SQLite remote store, fresh per test."""
import pytest
from fastapi.testclient import TestClient

from station_ops.config import Settings
from station_ops.database import make_engine
from station_ops.main import app
from station_ops.runtime import build_runtime
from station_ops.services.persistence import LocalStore
from station_ops.services.remote_store import SqlRemoteStore
from station_ops.state import AppState


@pytest.fixture(scope="function")
def test_settings(tmp_path):
    """Settings pointing every store at the test's temp dir; timers effectively off."""
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'remote.db'}",
        LOCAL_STORE_PATH=str(tmp_path / "local"),
        AUTOSAVE_INTERVAL_SECONDS=3600,
        REMOTE_PUSH_INTERVAL_SECONDS=3600,
        REMOTE_PROBE_TIMEOUT_SECONDS=2,
    )


@pytest.fixture(scope="function")
def store(tmp_path):
    return LocalStore(tmp_path / "store")


@pytest.fixture(scope="function")
def state(store):
    """Bare working copy with write-through to the temp store."""
    return AppState(store=store)


@pytest.fixture(scope="function")
def remote(test_settings):
    """SQLite-backed remote store with the schema created."""
    remote = SqlRemoteStore(make_engine(test_settings.DATABASE_URL))
    remote.create_schema()
    yield remote
    remote.close()


@pytest.fixture(scope="function")
def runtime(test_settings, remote):
    rt = build_runtime(test_settings, remote=remote)
    yield rt
    rt.shutdown()


@pytest.fixture(scope="function")
def client(runtime):
    """FastAPI TestClient bound to the per-test runtime."""
    app.state.runtime = runtime
    with TestClient(app) as c:
        yield c
    app.state.runtime = None


# ---------------------------------------------------------------------------
# Helper: create an order via the API, returns the JSON response dict
# ---------------------------------------------------------------------------
def create_test_order(client: TestClient, **fields) -> dict:
    """Helper — POST /api/orders and return response JSON."""
    payload = {"supplier": "Oando Terminal", "product": "PMS", "quantity": 33000, "grand_total": 21450000.0}
    payload.update(fields)
    resp = client.post("/api/orders/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()
