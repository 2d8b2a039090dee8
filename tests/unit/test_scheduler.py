"""
Unit tests for the scheduler module.

Tests verify scheduler creation, job wiring, startup execution, report
publication and signal handler registration without starting the
blocking loop.
"""

from __future__ import annotations

import signal
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from railway import ErrorCode
from railway.result import Result

from ocsp_stapler.domain.models import ProcessingResult
from ocsp_stapler.report import RunReport
from ocsp_stapler.scheduler import JOB_ID, create_scheduler


@pytest.fixture(autouse=True)
def _no_signal_handlers():
    """Keep create_scheduler from replacing the test runner's own handlers."""
    with patch("ocsp_stapler.scheduler.signal.signal") as mock_signal:
        yield mock_signal


def _report(result: ProcessingResult) -> RunReport:
    report = RunReport()
    report.record("example.com", result)
    return report


class TestCreateScheduler:
    """Verify scheduler factory configuration."""

    def test_creates_scheduler_with_job(self) -> None:
        """
        GIVEN a refresh function
        WHEN create_scheduler is called
        THEN the returned scheduler has exactly one job configured.
        """
        refresh_fn = MagicMock(return_value=Result.success(RunReport()))
        scheduler = create_scheduler(refresh_fn, cron="0 */12 * * *", run_on_startup=False)

        jobs = scheduler.get_jobs()
        assert len(jobs) == 1
        assert jobs[0].id == JOB_ID == "ocsp_staple_refresh"

    def test_uses_cron_trigger(self) -> None:
        refresh_fn = MagicMock(return_value=Result.success(RunReport()))
        scheduler = create_scheduler(refresh_fn, cron="17 3,15 * * *", run_on_startup=False)

        job = scheduler.get_jobs()[0]
        assert isinstance(job.trigger, CronTrigger)

    def test_run_on_startup_executes_refresh_and_publishes(self) -> None:
        """
        GIVEN run_on_startup=True
        WHEN create_scheduler is called
        THEN the refresh runs once immediately and its report is handed to on_report.
        """
        report = _report(ProcessingResult.updated())
        refresh_fn = MagicMock(return_value=Result.success(report))
        on_report = MagicMock()

        create_scheduler(refresh_fn, on_report=on_report, run_on_startup=True)

        refresh_fn.assert_called_once()
        on_report.assert_called_once_with(report)

    def test_run_on_startup_false_does_not_execute(self) -> None:
        refresh_fn = MagicMock(return_value=Result.success(RunReport()))
        create_scheduler(refresh_fn, run_on_startup=False)

        refresh_fn.assert_not_called()

    def test_startup_handles_fatal_failure(self) -> None:
        """
        GIVEN a refresh that returns Failure
        WHEN run_on_startup executes
        THEN the scheduler is still created and no report is published.
        """
        refresh_fn = MagicMock(
            return_value=Result.failure(ErrorCode.CONFIGURATION_ERROR, "certbot directory missing")
        )
        on_report = MagicMock()

        scheduler = create_scheduler(refresh_fn, on_report=on_report, run_on_startup=True)

        refresh_fn.assert_called_once()
        on_report.assert_not_called()
        assert scheduler is not None

    def test_startup_survives_crashing_refresh(self) -> None:
        refresh_fn = MagicMock(side_effect=RuntimeError("boom"))

        scheduler = create_scheduler(refresh_fn, run_on_startup=True)

        assert len(scheduler.get_jobs()) == 1

    def test_failed_lineages_still_publish_report(self) -> None:
        report = _report(ProcessingResult.failed("revoked"))
        on_report = MagicMock()

        create_scheduler(MagicMock(return_value=Result.success(report)), on_report=on_report)

        on_report.assert_called_once_with(report)

    def test_registers_signal_handlers(self, _no_signal_handlers: MagicMock) -> None:
        """
        GIVEN a refresh function
        WHEN create_scheduler is called
        THEN SIGINT and SIGTERM handlers are registered.
        """
        create_scheduler(MagicMock(return_value=Result.success(RunReport())), run_on_startup=False)

        calls = {call.args[0] for call in _no_signal_handlers.call_args_list}
        assert signal.SIGINT in calls
        assert signal.SIGTERM in calls
