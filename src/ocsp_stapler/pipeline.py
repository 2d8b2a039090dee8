"""
Pipeline — the staple lifecycle for one run.

Domain layer — all I/O is injected via ports (Protocol interfaces).

Run level:

  store.prepare()                      (output dir usable?  fatal otherwise)
    → lineage_source.lineages()        (fatal on any error)
      → with store.workspace():        (private work dir, always removed)
          process_lineage() for each   (errors recorded, never raised)
      → trigger_reload()               (at most once, only if something changed)
    → RunReport

Lineage level:

  fresh?            → not updated
  responder.fetch() → store.install()  → updated
  any failure                          → failed to update

Fatal errors come back as Result.failure and produce no report; per-lineage
failures are folded into the RunReport and never stop the loop.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog
from railway.failure import FailureDescription
from railway.result import Result

from ocsp_stapler.domain.models import Lineage, ProcessingResult, RunMode, Verbosity
from ocsp_stapler.domain.ports import (
    FreshnessEvaluator,
    LineageSource,
    ResponderClient,
    StapleStore,
    WebserverReloader,
)
from ocsp_stapler.report import RunReport

log = structlog.get_logger()

FRESH_REASON = "valid staple file on disk"


def _failure_reason(error: FailureDescription, verbosity: Verbosity) -> str:
    """Short status token normally; full diagnostic text when verbose."""
    if verbosity >= Verbosity.VERBOSE:
        return error.detail()
    return error.message


def process_lineage(
    lineage: Lineage,
    workdir: Path,
    mode: RunMode,
    freshness: FreshnessEvaluator,
    responder: ResponderClient,
    store: StapleStore,
    verbosity: Verbosity = Verbosity.NORMAL,
) -> ProcessingResult:
    """
    Take one lineage to a terminal state: updated, not updated or failed.

    The freshness check only runs when the mode asks for it (standalone
    without forced update). A failure leaves the published staple as it was.
    """
    if mode.checks_freshness and freshness.is_fresh(lineage):
        return ProcessingResult.not_updated(FRESH_REASON)

    return (
        responder.fetch(lineage, workdir)
        .flat_map(store.install)
        .either(
            on_success=lambda _: ProcessingResult.updated(),
            on_failure=lambda err: ProcessingResult.failed(_failure_reason(err, verbosity)),
        )
    )


def process_lineages(
    lineages: Sequence[Lineage],
    mode: RunMode,
    freshness: FreshnessEvaluator,
    responder: ResponderClient,
    store: StapleStore,
    verbosity: Verbosity = Verbosity.NORMAL,
) -> RunReport:
    """Process lineages sequentially inside one private work directory."""
    report = RunReport()
    with store.workspace() as workdir:
        for lineage in lineages:
            with structlog.contextvars.bound_contextvars(lineage=lineage.name):
                result = process_lineage(
                    lineage, workdir, mode, freshness, responder, store, verbosity
                )
                log.info(
                    "lineage.processed",
                    outcome=result.outcome.value,
                    reason=result.reason,
                )
            report.record(lineage.name, result)
    return report


def trigger_reload(
    report: RunReport,
    reloader: WebserverReloader | None,
    verbosity: Verbosity = Verbosity.NORMAL,
) -> RunReport:
    """
    Reload the webserver once if at least one staple was updated.

    A failed reload is recorded on the report (and so fails the run) but
    installed staples stay in place.
    """
    if reloader is None or not report.any_updated:
        return report
    reloader.reload().either(
        on_success=lambda command: _mark_reloaded(report, command),
        on_failure=lambda err: _mark_reload_failed(report, _failure_reason(err, verbosity)),
    )
    return report


def _mark_reloaded(report: RunReport, command: str) -> None:
    report.reloaded = True
    log.info("webserver.reloaded", command=command)


def _mark_reload_failed(report: RunReport, reason: str) -> None:
    report.reload_error = reason
    log.error("webserver.reload_failed", reason=reason)


def run_staple_refresh(
    mode: RunMode,
    lineage_source: LineageSource,
    freshness: FreshnessEvaluator,
    responder: ResponderClient,
    store: StapleStore,
    reloader: WebserverReloader | None = None,
    verbosity: Verbosity = Verbosity.NORMAL,
) -> Result[RunReport]:
    """
    Execute one full staple refresh run.

    Returns Result[RunReport] when lineage processing took place (even if
    individual lineages failed), or Result.failure with the fatal error
    that prevented it.
    """
    return (
        store.prepare()
        .flat_map(lambda _: lineage_source.lineages())
        .map(
            lambda lineages: process_lineages(
                lineages, mode, freshness, responder, store, verbosity
            )
        )
        .map(lambda report: trigger_reload(report, reloader, verbosity))
    )
