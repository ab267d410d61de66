"""Configuration models with Pydantic validation."""

from fetchretry.domain.config.retry import (
    RetryObserver,
    RetryOptions,
    RetryPredicate,
    coerce_options,
    format_validation_error,
)

__all__ = [
    "RetryOptions",
    "RetryPredicate",
    "RetryObserver",
    "coerce_options",
    "format_validation_error",
]
