"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from station_ops.config import settings
from station_ops.runtime import build_runtime

# Import routers
from station_ops.routers import orders, logs, activity, registry, storage

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Station Ops",
    description="Station operations backend — purchase-order lifecycle, activity ledger, local-first persistence",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(logs.router, prefix="/api/logs", tags=["Logs"])
app.include_router(activity.router, prefix="/api/activity", tags=["Activity"])
app.include_router(registry.router, prefix="/api", tags=["Registry"])
app.include_router(storage.router, prefix="/api/storage", tags=["Storage"])


@app.on_event("startup")
def on_startup():
    """Build the runtime unless one was installed beforehand (tests), then start it."""
    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = build_runtime(settings)
    app.state.runtime.start()


@app.on_event("shutdown")
def on_shutdown():
    """Flush the working copy; a failed flush is surfaced as a warning."""
    decision = app.state.runtime.shutdown()
    if not decision.proceed:
        logger.warning("Shutting down with unsaved changes: %s", decision.warning)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
