import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.branchlink.api import api_router
from app.branchlink.core.config import settings
from app.branchlink.core.errors import setup_exception_handlers
from app.branchlink.core.logging import configure_logging, log_event
from app.branchlink.db.seed import run_seed
from app.branchlink.db.session import session_scope
from app.branchlink.jobs.scheduler import get_job_status, shutdown_scheduler, start_scheduler
from app.branchlink.middleware.observability import ObservabilityMiddleware
from app.branchlink.middleware.trace import TraceIdMiddleware
from app.branchlink.services.notifications import NotificationHub

logger = logging.getLogger("branchlink.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.SEED_DEMO_DATA:
        with session_scope() as db:
            run_seed(db)
    start_scheduler(app.state.notifier)
    log_event(logger, "app_started", app=settings.APP_NAME, expiry_sweep=settings.EXPIRY_SWEEP_ENABLED)
    try:
        yield
    finally:
        shutdown_scheduler()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.notifier = NotificationHub()
    app.state.scheduler_status = get_job_status
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
