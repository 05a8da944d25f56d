from __future__ import annotations

from typing import Optional

GENERIC_ERROR_MESSAGE = "Request failed"


class ReportingError(Exception):
    """Base class for failures surfaced to the operator.

    `message` is the display string; it is what ends up in result/state objects.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkFailure(ReportingError):
    """The request could not complete (connection error, timeout, bad status)."""


class ApiError(NetworkFailure):
    """Non-2xx response from the console API.

    `detail` is the human-readable string from the structured error body, if any.
    """

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        super().__init__(detail or f"HTTP {status_code}")
        self.status_code = status_code
        self.detail = detail


class ValidationFailure(ReportingError):
    """Missing or invalid filter input (e.g. absent range bound, unknown offset)."""


class PartialAggregationFailure(ReportingError):
    """At least one of the parallel summary queries failed."""

    def __init__(self, message: str, failed: list[str]) -> None:
        super().__init__(message)
        self.failed = failed


def error_message(exc: BaseException, fallback: str = GENERIC_ERROR_MESSAGE) -> str:
    """Return the display string for `exc`.

    Server detail strings are surfaced verbatim; anything else falls back to
    `fallback`. Validation failures are raised locally and carry their own text.
    """

    if isinstance(exc, ApiError):
        return exc.detail if exc.detail else fallback
    if isinstance(exc, PartialAggregationFailure):
        return exc.message or fallback
    if isinstance(exc, ValidationFailure):
        return exc.message or fallback
    return fallback
