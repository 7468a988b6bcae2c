"""
ChatPulse - Main Application
============================

Customer-service analytics backend for B2Chat.

Modules:
- B2Chat Sync: rate-limited extraction of contacts and chats into staging
- SLA Monitoring: pickup, response and resolution compliance per chat

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Records, entities and value objects
- Infrastructure: Database, B2Chat client, rate-limited queue
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from chatpulse.config import settings
from chatpulse.core import B2ChatAPIError, ValidationException

# Infrastructure
from chatpulse.infrastructure.database import close_database, create_tables, init_database

# B2Chat Module
from chatpulse.b2chat.infrastructure.external import SyncScheduler, close_b2chat_client
from chatpulse.b2chat.infrastructure.queue import get_rate_limited_queue
from chatpulse.b2chat.interfaces import sync_router

# SLA Module
from chatpulse.sla.infrastructure import get_sla_config_manager, reset_sla_config_manager
from chatpulse.sla.interfaces import sla_router

# Shared
from chatpulse.shared.api import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    b2chat_error_handler,
    global_exception_handler,
    validation_error_handler,
)
from chatpulse.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)

# Global service instances
sync_scheduler: Optional[SyncScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA configuration and watch it for changes
    4. Start the incremental extract scheduler (if an interval is set)

    SHUTDOWN:
    1. Stop the scheduler and config watcher
    2. Close the B2Chat client and the request queue
    3. Close database connections
    """
    global sync_scheduler

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting ChatPulse", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })
    app.state.settings = settings

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    # If the database is not available the server still starts, but
    # database-dependent endpoints will fail
    try:
        await create_tables()
    except OSError as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Loading SLA configuration")
    sla_config_manager = get_sla_config_manager()
    sla_config_manager.start_watching()

    if settings.sync_interval_seconds > 0:
        sync_scheduler = SyncScheduler(interval_seconds=settings.sync_interval_seconds)
        await sync_scheduler.start()
    else:
        logger.info("Scheduled extracts disabled (sync_interval_seconds=0)")

    logger.info("ChatPulse started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down ChatPulse")

    if sync_scheduler:
        await sync_scheduler.stop()
        sync_scheduler = None

    reset_sla_config_manager()

    await close_b2chat_client()
    get_rate_limited_queue().close()

    await close_database()

    logger.info("ChatPulse shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="ChatPulse API",
    description="""
    ## B2Chat Customer-Service Analytics

    ---

    ### B2Chat Sync

    **Endpoints:**
    - `POST /sync/extract` - Extract contacts and/or chats into staging
    - `POST /sync/extract/{sync_id}/cancel` - Cancel a running extract
    - `GET /sync/queue` - Rate limiter status
    - `GET /sync/logs` - Recent extract runs
    - `GET /sync/counts` - Records available in B2Chat

    All B2Chat calls go through one rate-limited queue
    (5 requests/second and 10,000 requests/day by default).

    ---

    ### SLA Monitoring

    **Endpoints:**
    - `GET /sla/metrics` - Aggregate compliance and response-time percentiles
    - `GET /sla/chats/{chat_id}` - Per-chat SLA, wall clock and business hours
    - `GET /sla/config` - Current SLA configuration

    **Default thresholds (minutes):** pickup 2, first response 5,
    average response 5, resolution 30. Priority overrides win over
    channel overrides.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(B2ChatAPIError, b2chat_error_handler)
app.add_exception_handler(ValidationException, validation_error_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(sync_router)
app.include_router(sla_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "sync_scheduler": "running",
                        "request_queue": "idle",
                        "sla_config": "loaded"
                    }
                }
            }
        }
    }
})
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns scheduler state, request queue state and SLA config status.
    """
    queue = get_rate_limited_queue()
    checks = {
        "sync_scheduler": "running" if sync_scheduler and sync_scheduler.is_running else "stopped",
        "request_queue": "processing" if queue.is_processing else "idle",
        "sla_config": "watching" if get_sla_config_manager().is_watching else "loaded",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "ChatPulse",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sync": {"prefix": "/sync"},
            "sla": {"prefix": "/sla"},
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chatpulse.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
