"""Background expiry sweep.

A single interval job walks overdue PENDING requests and expires them through
the same guarded transition used when a request is read.
"""

import logging

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from app.branchlink.core.clock import Clock, utcnow
from app.branchlink.core.config import settings
from app.branchlink.core.logging import log_event
from app.branchlink.db.session import session_scope
from app.branchlink.services.expiry import ExpiryScheduler

logger = logging.getLogger(__name__)

EXPIRY_JOB_ID = "expire_pending_requests"

job_defaults = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 30,
}

_scheduler: BackgroundScheduler | None = None


def expire_pending_requests(notifier=None, clock: Clock = utcnow) -> int:
    """Runs one sweep in its own session and returns how many requests expired."""
    try:
        with session_scope() as db:
            result = ExpiryScheduler(db, clock=clock, notifier=notifier, trigger="scheduler").sweep()
    except Exception:
        logger.exception("Expiry sweep failed")
        return 0
    return len(result.expired)


def build_scheduler() -> BackgroundScheduler:
    return BackgroundScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": ThreadPoolExecutor(1)},
        job_defaults=job_defaults,
        timezone="UTC",
    )


def start_scheduler(notifier=None) -> BackgroundScheduler | None:
    global _scheduler
    if not settings.EXPIRY_SWEEP_ENABLED:
        return None
    if _scheduler is not None and _scheduler.running:
        return _scheduler
    _scheduler = build_scheduler()
    _scheduler.add_job(
        expire_pending_requests,
        "interval",
        seconds=settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
        kwargs={"notifier": notifier},
        id=EXPIRY_JOB_ID,
        name="Expire overdue pending transfer requests",
        replace_existing=True,
    )
    _scheduler.start()
    log_event(logger, "scheduler_started", interval_seconds=settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=True)
        log_event(logger, "scheduler_stopped")
    _scheduler = None


def get_job_status() -> list[dict]:
    if _scheduler is None:
        return []
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        }
        for job in _scheduler.get_jobs()
    ]
