"""Prometheus-compatible metrics endpoint."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from app.monitoring import registry

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=PlainTextResponse, include_in_schema=False)
def export_metrics() -> PlainTextResponse:
    """Render chat and live-channel counters for scraping."""

    return PlainTextResponse(registry.render(), media_type=PROMETHEUS_CONTENT_TYPE)
