"""
Webserver reload adapter — runs the configured reload command.

Implements the WebserverReloader port with subprocess. The default command,
`nginx -s reload`, makes nginx re-read its ssl_stapling_file entries.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence

import structlog
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()

DEFAULT_RELOAD_COMMAND = ("nginx", "-s", "reload")


class SubprocessWebserverReloader:
    """Reload the webserver by running a command; non-zero exit is a failure."""

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_RELOAD_COMMAND,
        timeout: int = 60,
    ) -> None:
        if not command:
            raise ValueError("reload command must not be empty")
        self._command = list(command)
        self._timeout = timeout

    def reload(self) -> Result[str]:
        """
        Run the reload command once.

        Returns Result[str] with the command line on success, or
        Result.failure(EXTERNAL_SERVICE_ERROR, ...) carrying stderr when the
        command is missing, times out or exits non-zero.
        """
        return Result.from_computation(
            self._run,
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "webserver reload failed",
        )

    def _run(self) -> str:
        log.info("webserver.reloading", command=self._command)
        try:
            subprocess.run(
                self._command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.CalledProcessError as e:
            raise RuntimeError(
                f"{' '.join(self._command)} exited with {e.returncode}: {e.stderr.strip()}"
            ) from e
        return " ".join(self._command)
