"""
Domain models — immutable values describing lineages, run modes and outcomes.

These carry no I/O. Adapters build them from the filesystem and the
configuration; the pipeline moves them between stages.

All models are frozen dataclasses (immutable).
"""

from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path

from railway import ErrorCode
from railway.result import Result

CERT_FILENAME = "cert.pem"
CHAIN_FILENAME = "chain.pem"
STAPLE_SUFFIX = ".der"


def validate_lineage_name(name: str) -> Result[str]:
    """
    Accept a lineage name only if it is usable as a single path component.

    Control characters (tab, newline, ...) are rejected: certbot does not
    guarantee it never produces them, and they would corrupt both the
    staple filename and the report.
    """
    if not name or name in (".", ".."):
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"unsupported lineage name: {name!r}")
    if "/" in name or any(unicodedata.category(char) == "Cc" for char in name):
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"unsupported lineage name: {name!r}")
    return Result.success(name)


@dataclass(frozen=True, slots=True)
class Lineage:
    """
    One certbot certificate lineage: a leaf certificate and its issuer chain.

    `responder_url` overrides the OCSP URI from the certificate's
    Authority Information Access extension when set.
    """

    name: str
    path: Path
    responder_url: str | None = None

    @property
    def cert_path(self) -> Path:
        return self.path / CERT_FILENAME

    @property
    def chain_path(self) -> Path:
        return self.path / CHAIN_FILENAME

    @property
    def staple_filename(self) -> str:
        return f"{self.name}{STAPLE_SUFFIX}"


@dataclass(frozen=True, slots=True)
class StapleValidity:
    """The validity window of an OCSP response (thisUpdate / nextUpdate)."""

    this_update: datetime
    next_update: datetime | None

    def refresh_after(self) -> datetime | None:
        """Half-life point of the window, or None when there is no nextUpdate."""
        if self.next_update is None:
            return None
        lifetime = self.next_update - self.this_update
        return self.this_update + lifetime / 2

    def is_fresh(self, now: datetime) -> bool:
        """
        Fresh only while less than half of the validity window has elapsed.

        A response without nextUpdate is never considered fresh.
        """
        deadline = self.refresh_after()
        return deadline is not None and now < deadline


@dataclass(frozen=True, slots=True)
class FetchedStaple:
    """A verified "good" OCSP response waiting in the private work area."""

    lineage: Lineage
    path: Path = field(repr=False)
    validity: StapleValidity


class Outcome(Enum):
    """Terminal state of one lineage in one run. Values are the report labels."""

    UPDATED = "updated"
    NOT_UPDATED = "not updated"
    FAILED = "failed to update"


@dataclass(frozen=True, slots=True)
class ProcessingResult:
    """Per-lineage outcome plus a human-readable reason."""

    outcome: Outcome
    reason: str = ""

    @staticmethod
    def updated(reason: str = "") -> ProcessingResult:
        return ProcessingResult(Outcome.UPDATED, reason)

    @staticmethod
    def not_updated(reason: str) -> ProcessingResult:
        return ProcessingResult(Outcome.NOT_UPDATED, reason)

    @staticmethod
    def failed(reason: str) -> ProcessingResult:
        return ProcessingResult(Outcome.FAILED, reason)

    @property
    def is_failure(self) -> bool:
        return self.outcome is Outcome.FAILED


class Verbosity(IntEnum):
    """Output verbosity; ordered so that `>=` comparisons read naturally."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2


@dataclass(frozen=True, slots=True)
class StandaloneMode:
    """
    Scheduled or manual run over lineages found under `root_dir`.

    `lineage_names` restricts the run to the named lineages (all
    subdirectories when empty). `responder_overrides` maps a lineage name
    to the OCSP responder URL to use instead of the certificate's own.
    """

    root_dir: Path
    lineage_names: tuple[str, ...] = ()
    responder_overrides: Mapping[str, str] = field(default_factory=dict)
    force_update: bool = False

    def __post_init__(self) -> None:
        unknown = sorted(set(self.responder_overrides) - set(self.lineage_names))
        if unknown:
            raise ValueError(
                "Responder overrides given for lineages that were not requested: "
                + ", ".join(unknown)
            )

    @property
    def checks_freshness(self) -> bool:
        return not self.force_update


@dataclass(frozen=True, slots=True)
class HookMode:
    """
    Deploy-hook run for the single lineage certbot just renewed.

    A freshly renewed certificate never has a matching staple, so the
    freshness check is always skipped.
    """

    lineage_path: Path

    @property
    def lineage_name(self) -> str:
        return self.lineage_path.name

    @property
    def checks_freshness(self) -> bool:
        return False


type RunMode = StandaloneMode | HookMode
