"""
Grievance SLA Engine - Main Application
=========================================

Working-time SLA tracking and priority escalation for grievance issues.

Modules:
- SLA Engine: Working calendar, SLA classification, periodic escalation

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Calendar, working-time arithmetic, classifier
- Infrastructure: Database, YAML config, scheduler, metrics
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from grievance_sla.config import settings
from grievance_sla.core import ApplicationException

# Infrastructure
from grievance_sla.infrastructure.database import (
    init_database, close_database, create_tables, get_session_maker
)

# SLA Module
from grievance_sla.sla.application import (
    EscalationScheduler,
    EscalationService,
    SLAClosureService,
    SLAReportService,
    TTLCache,
    utc_now,
)
from grievance_sla.sla.infrastructure import (
    SLAConfigManager,
    SLAScheduler,
    SQLAlchemyIssueStore,
    GrafanaCycleMetricsExporter,
)
from grievance_sla.sla.interfaces import sla_router

# Logging and metrics
from grievance_sla.shared.infrastructure.logging import setup_logging, get_logger
from grievance_sla.shared.infrastructure.grafana import init_grafana_exporter
from grievance_sla.shared.api.middleware import (
    CorrelationIDMiddleware,
    MetricsMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Load the working calendar and SLA policy (invalid calendar is fatal)
    3. Initialize database
    4. Build services
    5. Start the escalation scheduler

    SHUTDOWN:
    1. Stop the escalation scheduler
    2. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting SLA engine", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    # A bad calendar must stop the process before it serves anything
    logger.info("Loading SLA configuration")
    sla_config = SLAConfigManager()
    sla_config.load(settings.sla_config_path)

    logger.info("Initializing database")
    init_database()

    # Tables are owned by the issue workflow in production (use Alembic there)
    if settings.environment in ("development", "testing"):
        logger.info("Creating database tables")
        await create_tables()

    session_maker = get_session_maker()
    issue_store = SQLAlchemyIssueStore(session_maker)
    summary_cache = TTLCache(settings.sla_summary_cache_ttl_seconds)

    grafana_exporter = init_grafana_exporter(
        host=settings.grafana_host,
        api_key=settings.grafana_api_key,
        instance_id=settings.grafana_instance_id
    )
    metrics_exporter = (
        GrafanaCycleMetricsExporter(grafana_exporter) if grafana_exporter.is_enabled() else None
    )

    escalation_service = EscalationService(
        EscalationScheduler(issue_store, sla_config),
        issue_store,
        cycle_timeout_seconds=settings.escalation_cycle_timeout_seconds,
        summary_cache=summary_cache,
        metrics_exporter=metrics_exporter
    )

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.clock = utc_now
    app.state.sla_config = sla_config
    app.state.escalation_service = escalation_service
    app.state.report_service = SLAReportService(issue_store, sla_config, summary_cache)
    app.state.closure_service = SLAClosureService(issue_store, sla_config)

    sla_scheduler = None
    if settings.escalation_interval_seconds > 0:
        sla_scheduler = SLAScheduler(
            escalation_service,
            interval_seconds=settings.escalation_interval_seconds,
            clock=utc_now
        )
        await sla_scheduler.start()
    else:
        logger.info("Escalation scheduler disabled")
    app.state.sla_scheduler = sla_scheduler

    logger.info("SLA engine started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down SLA engine")

    if sla_scheduler:
        await sla_scheduler.stop()

    await close_database()

    logger.info("SLA engine shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Grievance SLA Engine API",
    description="""
    ## Grievance SLA Working-Time & Escalation Engine

    Measures how long grievances have been open in **working hours**,
    classifies them against per-priority SLA budgets and escalates the ones
    that breach.

    ---

    ### SLA Engine

    **Endpoints:**
    - `GET /sla/calendar` - Active working calendar and budgets
    - `POST /sla/working-hours` - Working hours between two instants
    - `POST /sla/classify` - Classify one issue snapshot
    - `POST /sla/escalation/run` - Force an escalation cycle
    - `GET /sla/summary` - SLA statistics across all issues
    - `POST /sla/issues/{id}/freeze` - Freeze the outcome of a closed issue

    **Default budgets (working hours):**

    | Priority | Budget | At risk after |
    |----------|--------|---------------|
    | Low      | 4      | 3.2           |
    | Medium   | 24     | 19.2          |
    | High     | 72     | 57.6          |
    | Critical | none (72h soft cap) | 57.6 |

    Working day 09:00-17:00, Monday to Saturday, Asia/Kolkata, minus holidays.
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
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
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
                        "sla_config": "loaded",
                        "sla_scheduler": "running",
                        "escalation_cycle": "idle"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - SLA configuration status
    - Scheduler state
    - Whether an escalation cycle is running right now
    """
    state = request.app.state
    sla_config = getattr(state, "sla_config", None)
    sla_scheduler = getattr(state, "sla_scheduler", None)
    escalation_service = getattr(state, "escalation_service", None)

    checks = {
        "sla_config": "loaded" if sla_config is not None and sla_config.is_loaded else "not_loaded",
        "sla_scheduler": "running" if sla_scheduler and sla_scheduler.is_running else "stopped",
        "escalation_cycle": (
            "running" if escalation_service and escalation_service.cycle_in_progress else "idle"
        ),
    }

    return {
        "status": "healthy" if checks["sla_config"] == "loaded" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sla": {
                "prefix": "/sla",
                "endpoints": [
                    "GET /sla/calendar",
                    "POST /sla/working-hours",
                    "POST /sla/classify",
                    "POST /sla/escalation/run",
                    "GET /sla/summary",
                    "POST /sla/issues/{id}/freeze"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "grievance_sla.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
