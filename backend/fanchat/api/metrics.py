"""Prometheus-compatible metrics endpoint for chat and moderation counters."""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from fanchat.config import Settings, get_settings
from fanchat.monitoring.registry import registry

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=Response)
def export_metrics(settings: Settings = Depends(get_settings)) -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics are disabled")
    return Response(content=registry.render(), media_type=PROMETHEUS_CONTENT_TYPE)
