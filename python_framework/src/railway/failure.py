"""
Failure description — structured error information for the failure track.

An ErrorCode classifies the failure, the message is the short human-facing
reason, and the optional exception keeps the full diagnostic for verbose
reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Grouped by who is at fault:
    - Input problems: VALIDATION, NOT_FOUND, BUSINESS_RULE
    - Environment problems: CONFIGURATION, TECHNICAL, EXTERNAL_SERVICE
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Malformed or unsupported input (names, certificates, responses)."""

    NOT_FOUND = "NOT_FOUND"
    """A required file, directory or value does not exist."""

    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"
    """Input is well formed but violates a domain rule (expired, revoked)."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration detected before any work is done."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Local infrastructure failure (filesystem, subprocess)."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """A remote service failed or answered with an error."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, and optional exception.

    >>> desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "unsupported lineage name")
    >>> desc.code
    <ErrorCode.VALIDATION_ERROR: 'VALIDATION_ERROR'>
    >>> desc.message
    'unsupported lineage name'
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)

    def detail(self) -> str:
        """
        Message plus the underlying exception text, on one line.

        Falls back to the bare message when there is no exception or the
        exception carries no text.
        """
        if self.exception is None:
            return self.message
        text = str(self.exception).strip()
        if not text:
            return f"{self.message}: {type(self.exception).__name__}"
        return f"{self.message}: {text}"
