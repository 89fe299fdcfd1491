"""Prometheus exposition of the adapter's own telemetry."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from duckprom.api.dependencies import Adapter

router = APIRouter(tags=["metrics"])


@router.get("/metrics", summary="Adapter telemetry", response_class=Response)
async def metrics(adapter: Adapter) -> Response:
    """Latency histograms, sample summaries and failure counters."""
    return Response(
        content=generate_latest(adapter.metrics.registry),
        media_type=CONTENT_TYPE_LATEST,
    )
