"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agriassist import __version__
from agriassist.api.routes import (advisory, crops, government, health,
                                   market, metrics)
from agriassist.core.config import get_settings
from agriassist.core.logging_config import LoggingConfig
from agriassist.core.middleware import (LoggingContextMiddleware,
                                        MetricsMiddleware)

# Configure logging first
LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode...")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; AI features will return fallback messages")

    yield

    logger.info(f"Shutting down {settings.app_name}...")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="AI-backed agriculture dashboard backend (AgriAssist)",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(LoggingContextMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler to log all unhandled errors"""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path,
                "method": request.method,
            }
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "type": type(exc).__name__
            }
        )

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(crops.router)
    app.include_router(market.router)
    app.include_router(advisory.router)
    app.include_router(government.router)

    return app


app = create_app()
