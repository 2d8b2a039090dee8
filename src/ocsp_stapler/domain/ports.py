"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the staple lifecycle needs without specifying HOW:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters, and the fakes
used in tests, satisfy the contract simply by implementing the methods.

Per-lineage flow:
  1. LineageSource       → which lineages to process
  2. FreshnessEvaluator  → is the cached staple still good enough?
  3. ResponderClient     → fetch and verify a new response
  4. StapleStore         → publish it atomically
  5. WebserverReloader   → reload once if anything changed
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from pathlib import Path
from typing import Protocol, runtime_checkable

from railway.result import Result

from ocsp_stapler.domain.models import FetchedStaple, Lineage


@runtime_checkable
class LineageSource(Protocol):
    """
    Port: enumerate the lineages for this run.

    Any failure here (unreadable root, missing named lineage, unsupported
    name) is fatal for the whole run.
    """

    def lineages(self) -> Result[list[Lineage]]: ...


@runtime_checkable
class FreshnessEvaluator(Protocol):
    """
    Port: decide whether the published staple for a lineage can be kept.

    Fails open: anything unexpected means "not fresh", so the answer is a
    plain bool rather than a Result.
    """

    def is_fresh(self, lineage: Lineage) -> bool: ...


@runtime_checkable
class ResponderClient(Protocol):
    """
    Port: obtain a verified "good" OCSP response for a lineage.

    The raw response is written under `workdir`; nothing outside it is
    touched. Expired leaf certificates fail before any network request.
    """

    def fetch(self, lineage: Lineage, workdir: Path) -> Result[FetchedStaple]: ...


@runtime_checkable
class StapleStore(Protocol):
    """
    Port: the output directory holding published staples.

    `workspace()` yields the private per-run work directory and removes it
    on exit. `install()` is the only operation that changes a published
    staple and must be atomic for concurrent readers.
    """

    def prepare(self) -> Result[Path]: ...

    def workspace(self) -> AbstractContextManager[Path]: ...

    def staple_path(self, lineage: Lineage) -> Path: ...

    def install(self, staple: FetchedStaple) -> Result[Path]: ...


@runtime_checkable
class WebserverReloader(Protocol):
    """Port: ask the webserver to pick up new staple files."""

    def reload(self) -> Result[str]: ...
