"""
Prometheus scrape endpoint.

Example:
    GET /metrics

    # HELP beds24_api_credits_remaining Beds24 credits left in the current five-minute window
    # TYPE beds24_api_credits_remaining gauge
    beds24_api_credits_remaining 912.0
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Expose the process's registry in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
