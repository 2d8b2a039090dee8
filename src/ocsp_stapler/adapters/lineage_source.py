"""
Lineage source adapter — finds certbot lineages on the local filesystem.

Implements the LineageSource port for both run modes:

  StandaloneMode: <root>/<name>/ for each requested name, or every
                  subdirectory of <root> (files such as certbot's README
                  are skipped), in name order
  HookMode:       the single directory certbot passed in RENEWED_LINEAGE

Every failure here is fatal for the run: an inaccessible directory is a
CONFIGURATION_ERROR, a name with control characters a VALIDATION_ERROR.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

from ocsp_stapler.domain.models import (
    HookMode,
    Lineage,
    RunMode,
    StandaloneMode,
    validate_lineage_name,
)

log = structlog.get_logger()


def _is_accessible_dir(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.R_OK | os.X_OK)


class FilesystemLineageSource:
    """Enumerate the lineages selected by a RunMode."""

    def __init__(self, mode: RunMode) -> None:
        self._mode = mode

    def lineages(self) -> Result[list[Lineage]]:
        match self._mode:
            case HookMode() as hook:
                result = self._hook_lineage(hook)
            case StandaloneMode() as standalone:
                result = self._standalone_lineages(standalone)
            case _:
                raise TypeError(f"unsupported run mode: {self._mode!r}")
        return result.peek(
            lambda found: log.info(
                "lineages.enumerated",
                count=len(found),
                names=[lineage.name for lineage in found],
            )
        )

    @staticmethod
    def _hook_lineage(mode: HookMode) -> Result[list[Lineage]]:
        return (
            validate_lineage_name(mode.lineage_name)
            .ensure(
                lambda _: _is_accessible_dir(mode.lineage_path),
                ErrorCode.CONFIGURATION_ERROR,
                f"renewed lineage {mode.lineage_path} is not accessible",
            )
            .map(lambda name: [Lineage(name=name, path=mode.lineage_path)])
        )

    def _standalone_lineages(self, mode: StandaloneMode) -> Result[list[Lineage]]:
        if not _is_accessible_dir(mode.root_dir):
            return Result.failure(
                ErrorCode.CONFIGURATION_ERROR,
                f"certbot directory {mode.root_dir} is not accessible",
            )
        if mode.lineage_names:
            return Result.all_of(self._named_lineage(mode, name) for name in mode.lineage_names)
        return Result.from_computation(
            lambda: sorted(entry.name for entry in mode.root_dir.iterdir() if entry.is_dir()),
            ErrorCode.CONFIGURATION_ERROR,
            f"cannot list certbot directory {mode.root_dir}",
        ).flat_map(
            lambda names: Result.all_of(
                validate_lineage_name(name).map(
                    lambda valid: Lineage(name=valid, path=mode.root_dir / valid)
                )
                for name in names
            )
        )

    @staticmethod
    def _named_lineage(mode: StandaloneMode, name: str) -> Result[Lineage]:
        return (
            validate_lineage_name(name)
            .map(lambda valid: mode.root_dir / valid)
            .ensure(
                _is_accessible_dir,
                ErrorCode.CONFIGURATION_ERROR,
                f"lineage {name!r} is not accessible under {mode.root_dir}",
            )
            .map(
                lambda path: Lineage(
                    name=name,
                    path=path,
                    responder_url=mode.responder_overrides.get(name),
                )
            )
        )
