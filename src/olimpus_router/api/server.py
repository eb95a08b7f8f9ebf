"""FastAPI server exposing recorded routing analytics."""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from typing import Annotated, Any

import click
from fastapi import Depends, FastAPI, Query
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from olimpus_router import __version__
from olimpus_router.analytics import (
    AnalyticsAggregator,
    AnalyticsStorage,
    RoutingDecisionEvent,
    render_prometheus,
)
from olimpus_router.config import load_config

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Olimpus Router API",
    version=__version__,
    description="Read-only view over meta-agent routing analytics",
)

_start_time = time.monotonic()


@lru_cache(maxsize=1)
def get_storage() -> AnalyticsStorage:
    """Analytics store named by the project configuration."""
    config = load_config()
    logger.info(f"Serving analytics from {config.analytics.storage_file}")
    return AnalyticsStorage(config.analytics)


Storage = Annotated[AnalyticsStorage, Depends(get_storage)]


@app.get("/api/health")
async def health() -> dict[str, Any]:
    """Health check."""
    uptime = time.monotonic() - _start_time
    return {"status": "ok", "version": __version__, "uptime_seconds": round(uptime, 1)}


@app.get("/api/analytics/summary")
async def summary(storage: Storage) -> dict[str, Any]:
    """Agent usage and matcher effectiveness."""
    return AnalyticsAggregator(storage.get_all_events()).aggregate().to_dict()


@app.get("/api/analytics/events")
async def events(
    storage: Storage,
    agent: str | None = None,
    matcher_type: str | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> dict[str, Any]:
    """Most recent events, optionally filtered by target agent or matcher type."""
    if agent is not None:
        selected = storage.get_events_by_agent(agent)
    else:
        selected = storage.get_all_events()
    if matcher_type is not None:
        selected = [
            e
            for e in selected
            if isinstance(e, RoutingDecisionEvent) and e.matcher_type == matcher_type
        ]

    recent = selected[-limit:]
    return {
        "events": [event.to_dict() for event in recent],
        "count": len(recent),
        "total": len(selected),
        "limit": limit,
    }


@app.get("/api/analytics/export")
async def export(storage: Storage) -> dict[str, Any]:
    """Full analytics snapshot in its persisted form."""
    return storage.export_data()


@app.get("/api/analytics/metrics", response_class=PlainTextResponse)
async def metrics(storage: Storage) -> Response:
    """Agent and matcher usage counters in Prometheus text format."""
    result = AnalyticsAggregator(storage.get_all_events()).aggregate()
    return Response(content=render_prometheus(result), media_type=CONTENT_TYPE_LATEST)


@click.command()
@click.option("--port", default=3849, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
def main(port: int, host: str) -> None:
    """Start the Olimpus Router API server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)
