"""Retry wrapper for request functions with exponential backoff"""

from fetchretry.application.retry_driver import fetch_with_retry, fetch_with_retry_sync, run, with_retry
from fetchretry.domain.config import RetryOptions
from fetchretry.domain.errors import (
    ClassificationError,
    ConfigurationError,
    FetchRetryError,
    RetryExhaustedError,
)
from fetchretry.domain.retry_policy import RETRYABLE_STATUS_CODES, default_retry_on
from fetchretry.infrastructure.http_client import requests_fetch, resolve_default_fetch, set_default_fetch

__all__ = [
    "fetch_with_retry",
    "fetch_with_retry_sync",
    "run",
    "with_retry",
    "RetryOptions",
    "default_retry_on",
    "RETRYABLE_STATUS_CODES",
    "requests_fetch",
    "resolve_default_fetch",
    "set_default_fetch",
    "FetchRetryError",
    "ConfigurationError",
    "ClassificationError",
    "RetryExhaustedError",
]
