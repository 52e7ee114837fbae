"""
Health check endpoints
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from agriassist import __version__
from agriassist.core.config import get_settings

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint

    Returns:
        dict: Health status
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": _now(),
        "service": settings.app_name,
        "version": __version__,
        "environment": settings.app_env,
    }


@router.get("/health/readiness")
async def readiness_check():
    """
    Readiness check - is the service ready to accept traffic?

    The AI features need an API key; without it every call would fail.
    """
    settings = get_settings()
    if not settings.gemini_api_key:
        return {
            "status": "not_ready",
            "message": "GEMINI_API_KEY is not configured",
            "timestamp": _now(),
        }
    return {
        "status": "ready",
        "message": "Service is ready to accept traffic",
        "model": settings.gemini_model,
        "timestamp": _now(),
    }


@router.get("/health/liveness")
async def liveness_check():
    """
    Liveness check - is the service alive?
    """
    return {
        "status": "alive",
        "timestamp": _now(),
    }
