"""
Application entry point — wires dependencies and runs the staple refresh.

Composition root: creates concrete adapters, injects them into the
pipeline, and either runs it once (cron job, systemd timer, certbot deploy
hook) or hands it to the scheduler (daemon mode).

This is the ONLY place where concrete classes are instantiated.
Everything else depends on Protocol interfaces.

Responsibilities:
  1. Load and validate configuration (environment, .env, CLI flags)
  2. Configure structlog (stderr, so stdout carries only the report)
  3. Create concrete adapters for the selected run mode
  4. Run once and exit with the report's status, or start the scheduler
"""

from __future__ import annotations

import logging
import signal
import sys
from collections.abc import Callable, Sequence
from functools import partial

import structlog
from railway.result import Result

from ocsp_stapler import __version__
from ocsp_stapler.adapters.freshness import StapleFreshnessEvaluator
from ocsp_stapler.adapters.lineage_source import FilesystemLineageSource
from ocsp_stapler.adapters.ocsp_client import HttpOcspResponderClient
from ocsp_stapler.adapters.reloader import SubprocessWebserverReloader
from ocsp_stapler.adapters.staple_store import FileStapleStore
from ocsp_stapler.config import AppSettings
from ocsp_stapler.domain.models import Outcome, Verbosity
from ocsp_stapler.pipeline import run_staple_refresh
from ocsp_stapler.report import EXIT_FAILURE, RunReport
from ocsp_stapler.scheduler import create_scheduler


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for human-readable console output on stderr.

    stdout is reserved for the result table so it can be piped or mailed
    by cron on its own.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


type RefreshFn = Callable[[], Result[RunReport]]


def build_refresh(settings: AppSettings) -> RefreshFn:
    """
    Instantiate all concrete adapters and bind them to the pipeline.

    Creates 5 adapters: lineage source, staple store, freshness evaluator,
    OCSP responder client, and (unless disabled) the webserver reloader.
    """
    mode = settings.run_mode()
    store = FileStapleStore(output_dir=settings.output_dir)
    reloader = (
        SubprocessWebserverReloader(
            command=settings.reload_command,
            timeout=settings.reload_timeout_seconds,
        )
        if settings.reload_webserver
        else None
    )
    return partial(
        run_staple_refresh,
        mode=mode,
        lineage_source=FilesystemLineageSource(mode),
        freshness=StapleFreshnessEvaluator(store),
        responder=HttpOcspResponderClient(timeout=settings.http_timeout_seconds),
        store=store,
        reloader=reloader,
        verbosity=settings.verbosity,
    )


def publish_report(report: RunReport, verbosity: Verbosity) -> None:
    """Print the result table on stdout unless running quietly."""
    log = structlog.get_logger()
    log.info(
        "run.summary",
        updated=report.names_with(Outcome.UPDATED),
        failed=report.names_with(Outcome.FAILED),
        total=len(report.results),
        reloaded=report.reloaded,
        reload_error=report.reload_error,
    )
    table = report.render()
    if table and verbosity >= Verbosity.NORMAL:
        print(table)  # noqa: T201


def run_once(refresh: RefreshFn, verbosity: Verbosity) -> int:
    """Run the refresh a single time and return the process exit status."""
    log = structlog.get_logger()
    result = refresh()
    if result.is_failure():
        error = result.error()
        log.error("run.fatal_error", code=error.code.value, error=error.detail())
        return EXIT_FAILURE
    report = result.value()
    publish_report(report, verbosity)
    return report.exit_code


def _exit_on_sigterm() -> None:
    """Turn SIGTERM into SystemExit so the work directory is cleaned up."""

    def _terminate(signum: int, frame: object) -> None:
        raise SystemExit(128 + signum)

    signal.signal(signal.SIGTERM, _terminate)


def main(argv: Sequence[str] | None = None) -> None:
    """Wire dependencies, run, and exit with the run's status."""
    try:
        settings = AppSettings(
            _cli_parse_args=list(sys.argv[1:] if argv is None else argv)
        )
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(EXIT_FAILURE)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    mode = settings.run_mode()
    log.info(
        "app.starting",
        version=__version__,
        mode=type(mode).__name__,
        output_dir=str(settings.output_dir),
        force_update=settings.force_update,
        daemon=settings.daemon,
    )

    refresh = build_refresh(settings)

    if not settings.daemon:
        _exit_on_sigterm()
        sys.exit(run_once(refresh, settings.verbosity))

    scheduler = create_scheduler(
        refresh_fn=refresh,
        on_report=partial(publish_report, verbosity=settings.verbosity),
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
    )

    log.info("app.scheduler_starting", cron=settings.scheduler.cron)

    try:
        scheduler.start()
    except KeyboardInterrupt:
        log.info("app.shutdown", reason="signal received")
    except SystemExit:
        log.info("app.shutdown", reason="signal received")
        raise
    except Exception as e:
        log.error("app.fatal_error", error=str(e))
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
