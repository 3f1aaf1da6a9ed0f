"""
Editorial Workflow Service - Main Application
=============================================

Manuscript lifecycle service for an academic journal.

Modules:
- Workflow: status transitions, status history, SLA deadlines, reminders
  and role escalation requests

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, transition tables, SLA calculator
- Infrastructure: Database, policy file, notification webhook, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.config import settings
from src.core import ApplicationException
from src.infrastructure.database import (
    init_database, close_database, create_tables, get_session_context
)
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from src.shared.infrastructure.logging import setup_logging, get_logger, log_latency
from src.workflow.application import ReminderService
from src.workflow.domain import SUBMISSION_TRANSITIONS
from src.workflow.infrastructure import (
    PolicyConfigManager,
    ReminderScheduler,
    SQLAlchemySubmissionRepository,
    WebhookNotifier,
)
from src.workflow.interfaces import workflow_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database (and create tables outside production)
    3. Load the SLA policy and watch it for changes
    4. Start the reminder scheduler

    SHUTDOWN:
    1. Stop the reminder scheduler
    2. Stop the policy watcher
    3. Close the notifier and database connections
    """
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Editorial Workflow Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    if settings.environment != "production":
        logger.info("Creating database tables")
        await create_tables()

    policy_manager = PolicyConfigManager()
    policy_manager.load(settings.sla_policy_path)
    policy_manager.start_watching()

    notifier = WebhookNotifier()

    async def reminder_job():
        """Background deadline reminder run."""
        with log_latency(logger, "reminder_run"):
            async with get_session_context() as session:
                service = ReminderService(
                    SQLAlchemySubmissionRepository(session), policy_manager, notifier
                )
                await service.dispatch_due_reminders()

    scheduler = None
    if settings.reminder_interval_seconds > 0:
        scheduler = ReminderScheduler(interval_seconds=settings.reminder_interval_seconds)
        await scheduler.start(reminder_job)
    else:
        logger.info("Reminder scheduler disabled")

    app.state.settings = settings
    app.state.policy_manager = policy_manager
    app.state.notifier = notifier
    app.state.scheduler = scheduler

    logger.info("Editorial Workflow Service started successfully")

    yield

    logger.info("Shutting down Editorial Workflow Service")

    if scheduler:
        await scheduler.stop()
    policy_manager.stop_watching()
    await notifier.close()
    await close_database()

    logger.info("Editorial Workflow Service shutdown complete")


app = FastAPI(
    title="Editorial Workflow API",
    description="""
    ## Manuscript lifecycle for an academic journal

    - Status transitions validated against the editorial flow
      (NEW → UNDER_REVIEW → REVISION / ACCEPTED → IN_PRODUCTION → PUBLISHED)
    - Append-only status history
    - SLA deadlines per status with on-time / warning / overdue standing
    - Deadline reminders 7, 3 and 1 days before the deadline
    - Role escalation requests (approve / reject / cancel)
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(workflow_router)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(request.app.state, "scheduler", None)
    policy_manager = getattr(request.app.state, "policy_manager", None)

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": {
            "sla_policy": "loaded" if policy_manager else "defaults",
            "reminder_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            "notification_webhook": "configured" if settings.notification_webhook_url else "not_configured",
        }
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Editorial Workflow Service",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "submission_flow": SUBMISSION_TRANSITIONS.as_dict(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
