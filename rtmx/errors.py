"""Error hierarchy for RTMX.

Every error carries a human-readable message plus keyword details that
callers (and log lines) can inspect without parsing the message.
"""

from __future__ import annotations

from typing import Any


class RTMXError(Exception):
    """Base class for all RTMX errors."""

    def __init__(self, message: str, **details: Any) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(RTMXError, LookupError):
    """A requirement ID or external item is absent."""


class DuplicateError(RTMXError):
    """A requirement with the same ID already exists."""


class ValidationFailedError(RTMXError, ValueError):
    """A field value does not parse (status, priority, phase, ...)."""


class SchemaError(RTMXError):
    """Required input column missing or the file structure is unreadable."""


class IOFailureError(RTMXError):
    """Underlying read, write or network failure."""


class RemoteError(RTMXError):
    """External service answered with a non-success response."""

    def __init__(self, message: str, status_code: int, **details: Any) -> None:
        self.status_code = status_code
        super().__init__(message, status_code=status_code, **details)


class DeadlineExceededError(RTMXError, TimeoutError):
    """An external operation ran past its deadline."""

    def __init__(self, message: str, timeout: float, **details: Any) -> None:
        self.timeout = timeout
        super().__init__(message, timeout=timeout, **details)


class MisconfiguredAdapterError(RTMXError):
    """Adapter is disabled or a required credential is missing."""
