"""
Railway-Oriented Programming (ROP) helpers.

Explicit, composable error handling — stages return Result instead of raising.

    from railway import Result, ErrorCode

    def ensure_name(name: str) -> Result[str]:
        if not name:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "empty lineage name")
        return Result.success(name)

    result = Result.success("example.com").flat_map(ensure_name).map(str.upper)
"""

from railway.assertions import ResultAssertions
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]

__version__ = "1.1.0"
