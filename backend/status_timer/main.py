"""
FastAPI Main Application Entry Point for the Status Timer.

Watches Jira issues and alerts Slack when a campaign sits in one status
longer than its business-time threshold:
- Tracking data reconciled from Jira, persisted to a JSON snapshot
- Alert pass every 5 minutes, reminders every 24 business hours
- Weekend-aware timing in the reference timezone
- REST endpoints for status checks and threshold changes
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from status_timer.core.config import settings
from status_timer.core.exceptions import ConfigurationError, TimerException
from status_timer.api.routes import tracking_router
from status_timer.services.runtime import build_runtime, get_runtime, set_runtime
from status_timer.services.scheduler import get_scheduler


# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Validate configuration
    - Load the tracking snapshot, then reconcile with Jira
    - Start background scheduler

    Shutdown:
    - Stop scheduler gracefully
    - Close HTTP clients
    """
    # Startup
    logger.info(f"🚀 Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Jira enabled: {settings.jira_enabled}")
    logger.info(f"Slack enabled: {settings.slack_enabled}")
    logger.info(f"Scheduler enabled: {settings.enable_scheduler}")
    logger.info(f"Run scheduler (this instance): {settings.run_scheduler}")

    app.state.scheduler = None

    configured = True
    try:
        settings.validate_required()
    except ConfigurationError as e:
        logger.error(f"❌ {e.message}")
        configured = False

    runtime = build_runtime(settings)
    set_runtime(runtime)

    if runtime.store.load():
        logger.info(f"📂 Loaded {len(runtime.store)} tracked issues from snapshot")

    if runtime.reconciler is not None:
        await runtime.reconcile()

    # Only ONE worker should run the scheduler, otherwise alerts are duplicated.
    should_run_scheduler = configured and settings.enable_scheduler and settings.run_scheduler

    if should_run_scheduler:
        try:
            app.state.scheduler = get_scheduler()
            app.state.scheduler.start()
            logger.info("✅ Background scheduler started")
        except Exception as e:
            logger.error(f"❌ Failed to start scheduler: {e}")
    elif not configured:
        logger.warning("⚠️ Scheduler not started: configuration is incomplete")

    yield

    # Shutdown
    if app.state.scheduler and app.state.scheduler.is_running:
        app.state.scheduler.stop()
        logger.info("✅ Scheduler stopped")

    await runtime.aclose()
    logger.info("👋 Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    # Status Timer

    Tracks how long each Jira campaign stays in its Campaign Status and
    posts to Slack when a status threshold is exceeded.

    ## Timing Rules
    - Only business time counts: Saturdays and Sundays (America/New_York) are excluded
    - First alert once the threshold is exceeded, then a reminder every 24 business hours
    - No Slack messages on weekends; alert bookkeeping still advances

    ## API Response Structure
    ```json
    {
      "key": "CAM-123",
      "state": "4: Campaign creation",
      "business_minutes": 1500,
      "timer_paused": false
    }
    ```
    """,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler for TimerExceptions
@app.exception_handler(TimerException)
async def timer_exception_handler(request, exc: TimerException):
    """Handle all TimerException subclasses."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


# Include API routers
app.include_router(tracking_router)


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns service status, scheduler health, and tracking state.
    """
    scheduler = getattr(app.state, "scheduler", None) or get_scheduler()
    scheduler_status = scheduler.get_health_status()

    runtime = get_runtime()
    last_save = runtime.store.last_save

    return {
        "status": scheduler_status["status"],
        "service": settings.app_name,
        "version": settings.app_version,
        "debug": settings.debug,
        "scheduler": scheduler_status,
        "tracking": {
            "tracked_count": len(runtime.store),
            "jira_enabled": runtime.issue_source is not None,
            "slack_enabled": runtime.notifier.enabled,
            "last_save_ok": last_save.success if last_save else None,
            "last_save_used_fallback": last_save.used_fallback if last_save else None,
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


# Root endpoint
@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs" if settings.debug else "Docs disabled in production",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "status_timer.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
