"""
Staple store adapter — the output directory of published staple files.

Adapter layer — implements the StapleStore port on the local filesystem.

Uses an ATOMIC REPLACE pattern:
  1. Responses are written into a private work directory created INSIDE the
     output directory (same filesystem, mode 0700, hidden name)
  2. Only verified responses are moved to <output-dir>/<lineage>.der with
     os.replace(), which is atomic on POSIX
  3. The work directory is removed when the run ends, whatever the exit path

A reader of <output-dir>/<lineage>.der therefore sees the previous staple
or the new one, never a partially written file.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

from ocsp_stapler.domain.models import FetchedStaple, Lineage

log = structlog.get_logger()

WORKDIR_PREFIX = ".ocsp-stapler-"


class FileStapleStore:
    """
    Publish staples into a directory the webserver reads from.

    Implements the StapleStore port.
    All filesystem errors are caught at this adapter boundary via Result.from_computation().
    """

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = output_dir

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def prepare(self) -> Result[Path]:
        """
        Create the output directory if needed and check it is writable.

        Failure here is fatal for the run (CONFIGURATION_ERROR).
        """
        return Result.from_computation(
            self._ensure_output_dir,
            ErrorCode.CONFIGURATION_ERROR,
            f"output directory {self._output_dir} is not usable",
        ).ensure(
            lambda path: os.access(path, os.W_OK | os.X_OK),
            ErrorCode.CONFIGURATION_ERROR,
            f"output directory {self._output_dir} is not writable",
        )

    def _ensure_output_dir(self) -> Path:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        return self._output_dir

    @contextmanager
    def workspace(self) -> Iterator[Path]:
        """Private per-run work directory, removed on every exit path."""
        with tempfile.TemporaryDirectory(prefix=WORKDIR_PREFIX, dir=self._output_dir) as workdir:
            log.debug("workspace.created", path=workdir)
            yield Path(workdir)
        log.debug("workspace.removed", path=workdir)

    def staple_path(self, lineage: Lineage) -> Path:
        return self._output_dir / lineage.staple_filename

    def install(self, staple: FetchedStaple) -> Result[Path]:
        """Atomically move a verified response to its stable path."""
        target = self.staple_path(staple.lineage)
        return Result.from_computation(
            lambda: _atomic_replace(staple.path, target),
            ErrorCode.TECHNICAL_ERROR,
            "cannot install staple file",
        ).peek(
            lambda path: log.info(
                "staple.installed",
                lineage=staple.lineage.name,
                path=str(path),
                next_update=_isoformat(staple.validity.next_update),
            )
        )


def _atomic_replace(source: Path, target: Path) -> Path:
    source.chmod(0o644)
    os.replace(source, target)
    return target


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
