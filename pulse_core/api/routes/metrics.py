"""Metrics API routes for observability."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from pulse_core.observability.metrics import get_collector

router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/metrics")
async def get_metrics() -> dict[str, Any]:
    """Provider call, latency and alert delivery metrics collected in-process."""
    return {
        "collected_at": datetime.now(timezone.utc).isoformat(),
        "application": get_collector().get_all(),
    }
