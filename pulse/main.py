"""
Pulse Analytics
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from contextlib import asynccontextmanager

from pulse.config import get_settings
from pulse.utils.logger import log
from pulse import __version__

# Import routers
from pulse.api import health, reports, analytics, queue as queue_api

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from pulse.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    from pulse.jobs import register_handlers
    from pulse.services.queue_service import queue
    register_handlers(queue)

    # Start the scheduler for automated reports
    from pulse.scheduler import start_scheduler, stop_scheduler
    if settings.scheduler_enabled:
        try:
            start_scheduler()
        except Exception as e:
            log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    stop_scheduler()
    await queue.shutdown()
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Cross-channel YouTube + GA4 analytics

    - Pulse Score: one weighted number for YouTube and web growth, engagement and reach
    - Correlation between YouTube views and web sessions, with lead/lag detection
    - Weekly and monthly PDF reports, generated in the background and emailed
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(reports.router)
app.include_router(analytics.router)
app.include_router(queue_api.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "list_reports": "GET /reports",
            "generate_report": "POST /reports/generate",
            "retry_report": "POST /reports/{id}/retry",
            "download_report": "GET /reports/{id}/download",
            "get_schedule": "GET /reports/schedule",
            "update_schedule": "PUT /reports/schedule",
            "overview": "GET /analytics/overview",
            "youtube": "GET /analytics/youtube",
            "ga4": "GET /analytics/ga4",
            "correlations": "GET /analytics/correlations",
            "job_status": "GET /queue/jobs/{job_id}"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pulse.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
