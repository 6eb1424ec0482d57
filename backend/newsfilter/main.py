"""
Main FastAPI application for newsfilter.
"""
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from newsfilter.api.routes import router
from newsfilter.config import get_settings
from newsfilter.core.logging import configure_logging
from newsfilter.jobs.scheduled_fetch import ScheduledFetchJob
from newsfilter.runtime import Runtime, build_runtime
from newsfilter.services.source_sync import sync_sources

logger = structlog.get_logger()


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """Create the application. A prebuilt runtime skips database setup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager - handles startup and shutdown."""
        if runtime is not None:
            app.state.runtime = runtime
            yield
            await runtime.close()
            return

        settings = get_settings()
        configure_logging(settings.log_level)

        logger.info("Initializing database", url=settings.database_url)
        app_runtime = build_runtime(settings)
        await app_runtime.database.create_tables()
        app.state.runtime = app_runtime

        await sync_sources(app_runtime.database, settings.sources_file)

        purged = await app_runtime.orchestrator.purge_old_articles()
        logger.info("Startup retention sweep", purged=purged)

        scheduler = None
        if settings.scheduled_fetch_enabled:
            scheduler = AsyncIOScheduler()
            ScheduledFetchJob(app_runtime.orchestrator).schedule(scheduler, settings)
            scheduler.start()

        yield

        logger.info("Shutting down")
        if scheduler:
            scheduler.shutdown()
        await app_runtime.close()

    settings = get_settings()
    app = FastAPI(
        title="newsfilter",
        description="Aggregates articles from feeds, boards and pages and scores their relevance.",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error("Unhandled error", path=request.url.path, error=str(exc), exc_info=exc)
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "newsfilter.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        timeout_keep_alive=settings.stream_idle_timeout_seconds,
    )
