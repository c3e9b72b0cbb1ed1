"""
Null Fake FastAPI application entry point.

Flow: product URL or extension submission → reviews (BrightData / extension)
→ LLM scoring → grade and adjusted rating.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app import __version__
from app.config import get_settings
from app.db.session import check_db_connection, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Null Fake starting")
    try:
        try:
            check_db_connection()
            logger.info("Database connection verified")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise

        settings = get_settings()
        logger.info(
            "LLM providers: primary=%s fallback=%s",
            settings.llm_primary_provider,
            ",".join(settings.llm_fallback_order),
        )
        if not settings.brightdata_api_key:
            logger.warning("BRIGHTDATA_API_KEY not set; review scraping is disabled")

        yield
    finally:
        logger.info("Null Fake shutting down")
        engine.dispose()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Mount API routes
    from app.api.analysis import router as analysis_router
    from app.api.extension import router as extension_router

    app.include_router(analysis_router, prefix="/api/analysis", tags=["analysis"])
    app.include_router(extension_router, prefix="/api/extension", tags=["extension"])

    # Internal job endpoints (cron and worker, token-authenticated)
    from app.api.internal import router as internal_router

    app.include_router(internal_router, tags=["internal"])

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint. Confirms DB connectivity."""
        from sqlalchemy import text

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "ok",
                "version": __version__,
                "database": "connected",
            }
        except Exception:
            from fastapi.responses import JSONResponse

            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "version": __version__,
                    "database": "disconnected",
                },
            )

    return app


app = create_app()
