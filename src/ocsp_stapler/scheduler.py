"""
Scheduler — periodic staple refresh for daemon mode.

Infrastructure layer — uses APScheduler (3.x) for lightweight in-process
scheduling driven by a standard 5-field cron expression.

Each run is wrapped in a LoggingExecutionContext for timing and outcome
logging. A failed run (fatal error or failed lineages) is logged and the
scheduler keeps going; the next run starts from scratch.

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

from ocsp_stapler.report import RunReport

log = structlog.get_logger()

JOB_ID = "ocsp_staple_refresh"


def create_scheduler(
    refresh_fn: Callable[[], Result[RunReport]],
    on_report: Callable[[RunReport], None] | None = None,
    cron: str = "0 */6 * * *",
    run_on_startup: bool = True,
) -> BlockingScheduler:
    """
    Create a configured APScheduler that runs the refresh on a cron schedule.

    Args:
        refresh_fn: Zero-argument callable returning Result[RunReport] (the wired pipeline).
        on_report: Called with the report of every run that got as far as processing lineages.
        cron: Standard 5-field cron expression (minute hour dom month dow).
        run_on_startup: If True, execute once immediately before entering the loop.

    Returns:
        A configured BlockingScheduler (call .start() to begin).
    """
    scheduler = BlockingScheduler()
    ctx = LoggingExecutionContext(operation="StapleRefresh")

    def _job() -> None:
        """Execute one refresh within the logging context and log the outcome."""
        result = ctx.execute(refresh_fn)
        if result.is_failure():
            log.error("scheduler.job_failed", failure=result.error().detail())
            return
        report = result.value()
        if on_report is not None:
            on_report(report)
        if report.has_errors:
            log.warning("scheduler.job_completed_with_errors", exit_code=report.exit_code)
        else:
            log.info("scheduler.job_completed", lineages=len(report.results))

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
        name="OCSP staple refresh",
        replace_existing=True,
    )

    if run_on_startup:
        log.info("scheduler.startup_run", message="Refreshing staples immediately on startup")
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
