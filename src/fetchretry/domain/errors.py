"""Exceptions raised by fetchretry"""

from typing import Any


class FetchRetryError(Exception):
    """Base class for all fetchretry errors."""

    pass


class ConfigurationError(FetchRetryError):
    """Invalid options or no usable request function.

    Always raised before the first attempt.
    """

    pass


class ClassificationError(FetchRetryError, TypeError):
    """The default retry predicate cannot tell whether an outcome is retriable."""

    pass


class RetryExhaustedError(FetchRetryError):
    """Retry budget ran out while the predicate still asked for a retry.

    Only raised for outcomes that are plain values; exceptions returned by the
    request function are re-raised unchanged instead.

    Attributes:
        outcome: Last value returned by the request function
        attempts: Number of times the request function was called
    """

    def __init__(self, outcome: Any, attempts: int):
        self.outcome = outcome
        self.attempts = attempts
        super().__init__(f"Retry budget exhausted after {attempts} attempts; last outcome: {outcome!r}")
