"""
Prometheus scrape endpoint
"""
from fastapi import APIRouter
from fastapi.responses import Response

from agriassist.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """HTTP, Gemini call, retry, fallback and log-level metrics in Prometheus text format"""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
        headers={"Cache-Control": "no-store"},
    )
