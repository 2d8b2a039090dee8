"""
Execution contexts — separate WHAT (pure logic) from HOW (side effects).

A pipeline describes what should happen and returns Result[T]. An
ExecutionContext decides how it runs: with timing and structured logging,
or as a plain passthrough in tests.

    ctx = LoggingExecutionContext(operation="StapleRefresh")
    result = ctx.execute(lambda: run_staple_refresh(...))
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol, TypeVar, runtime_checkable

import structlog

from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result

T = TypeVar("T")
log = structlog.get_logger("railway.execution")


@runtime_checkable
class ExecutionContext(Protocol):
    """Anything with execute(computation) -> Result[T] is an execution context."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]: ...


class NoOpExecutionContext:
    """Passthrough execution context — runs the computation as is."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        return computation()


class LoggingExecutionContext:
    """
    Execution context that logs start, duration, and outcome.

    Wraps another context (decorator pattern). An exception escaping the
    computation is converted into a TECHNICAL_ERROR failure so callers
    such as scheduler jobs always receive a Result.
    """

    def __init__(
        self,
        inner: ExecutionContext | None = None,
        operation: str = "unknown",
    ) -> None:
        self._inner = inner or NoOpExecutionContext()
        self._operation = operation

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        log.info("execution.started", operation=self._operation)
        start = time.monotonic()

        try:
            result = self._inner.execute(computation)
        except Exception as e:
            log.error(
                "execution.crashed",
                operation=self._operation,
                elapsed_seconds=round(time.monotonic() - start, 3),
                error=str(e),
            )
            return Failure(
                FailureDescription(ErrorCode.TECHNICAL_ERROR, f"Execution failed: {e}", e)
            )

        log.info(
            "execution.completed",
            operation=self._operation,
            elapsed_seconds=round(time.monotonic() - start, 3),
            state="SUCCESS" if result.is_success() else "FAILURE",
        )
        return result
