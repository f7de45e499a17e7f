"""
FastAPI server for the guardian dashboard. Runs as a daemon thread.

Endpoints are read-only views over the loop's snapshot; nothing here can
mutate loop state or history.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], dict[str, Any]]


def create_app(snapshot_provider: SnapshotProvider) -> Any:
    """Build and return the FastAPI application."""
    from fastapi import FastAPI, Query

    app = FastAPI(title="Venue Guardian Dashboard", docs_url="/docs")
    started_at = time.time()

    @app.get("/api/health")
    async def health():
        snap = snapshot_provider()
        return {
            "status": "ok",
            "state": snap.get("state"),
            "cycle": snap.get("cycle", 0),
            "uptime_sec": round(time.time() - started_at, 1),
        }

    @app.get("/api/snapshot")
    async def snapshot():
        return snapshot_provider()

    @app.get("/api/history")
    async def history(limit: int = Query(100, ge=1, le=1000)):
        snap = snapshot_provider()
        records = snap.get("execution_history", [])
        return {
            "summary": snap.get("summary", {}),
            "records": records[-limit:],
        }

    return app


def start_server(
    snapshot_provider: SnapshotProvider,
    host: str = "127.0.0.1",
    port: int = 8787,
) -> threading.Thread:
    """Start FastAPI in a daemon thread. Returns the thread."""
    import uvicorn

    app = create_app(snapshot_provider)

    def _run():
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )

    thread = threading.Thread(target=_run, daemon=True, name="report-server")
    thread.start()
    logger.info("Dashboard server started at http://%s:%d", host, port)
    return thread
