"""FastAPI dependencies resolving the running runtime."""
from fastapi import Request

from station_ops.runtime import Runtime
from station_ops.state import AppState


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_state(request: Request) -> AppState:
    return request.app.state.runtime.state
