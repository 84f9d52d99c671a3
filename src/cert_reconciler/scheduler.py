"""
Scheduler — periodic reconciliation of every configured certificate.

Infrastructure layer — uses APScheduler (3.x) for lightweight in-process
scheduling driven by a standard 5-field cron expression. The next run is
the retry for any request that hit a hard error.

Each run executes inside a LoggingExecutionContext for timing and
success/failure logging.

Graceful shutdown: handles SIGINT/SIGTERM to stop the scheduler cleanly.
"""

from __future__ import annotations

import signal
import sys
from collections.abc import Callable

import structlog
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from railway import LoggingExecutionContext
from railway.result import Result

from cert_reconciler.batch import BatchReport

log = structlog.get_logger()

JOB_ID = "cert_reconciler_sync"


def create_scheduler(
    batch_fn: Callable[[], Result[BatchReport]],
    cron: str = "*/5 * * * *",
    run_on_startup: bool = True,
) -> BlockingScheduler:
    """
    Create a configured APScheduler that reconciles on a cron schedule.

    Args:
        batch_fn: Zero-argument callable returning Result[BatchReport] (the wired batch).
        cron: Standard 5-field cron expression (minute hour dom month dow).
        run_on_startup: If True, execute once immediately before entering the loop.

    Returns:
        A configured BlockingScheduler (call .start() to begin).
    """
    scheduler = BlockingScheduler()
    ctx = LoggingExecutionContext(operation="CertificateReconcile")

    def _job() -> None:
        """Execute one batch within the logging context and log the outcome."""
        result = ctx.execute(batch_fn)
        if result.is_failure():
            log.error("scheduler.job_failed", failure=str(result.error()))
            return
        report = result.value()
        for key, failure in report.failures.items():
            log.error(
                "scheduler.certificate_failed",
                certificate=key,
                code=failure.code.value,
                error=failure.message,
            )
        log.info("scheduler.job_completed", **report.summary())

    minute, hour, dom, month, dow = cron.split()
    scheduler.add_job(
        _job,
        trigger=CronTrigger(
            minute=minute,
            hour=hour,
            day=dom,
            month=month,
            day_of_week=dow,
        ),
        id=JOB_ID,
        name="Certificate reconciliation",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    if run_on_startup:
        log.info("scheduler.startup_run", message="Reconciling immediately on startup")
        _job()

    _register_shutdown_signals(scheduler)

    return scheduler


def _register_shutdown_signals(scheduler: BlockingScheduler) -> None:
    """Register SIGINT and SIGTERM handlers for graceful shutdown."""

    def _shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        log.info("scheduler.shutdown_requested", signal=sig_name)
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
