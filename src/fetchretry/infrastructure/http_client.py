"""Default request function discovery.

When the caller supplies no request function, one is resolved in this order:

1. a process-wide default registered with :func:`set_default_fetch`;
2. an import path in the ``FETCHRETRY_FETCH_FN`` environment variable
   (``package.module:attribute``);
3. :func:`requests_fetch`, if the optional ``requests`` package is installed.
"""

from __future__ import annotations

import importlib
import logging
import os
from typing import Any, Callable, Optional

from fetchretry.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

FETCH_FN_ENV = "FETCHRETRY_FETCH_FN"
DEFAULT_TIMEOUT = 30.0

_registered_fetch: Optional[Callable[..., Any]] = None


def requests_fetch(url: str, method: str = "GET", **kwargs: Any) -> Any:
    """Send one HTTP request with ``requests``.

    The response is returned whatever its status code; deciding whether it is
    worth retrying is the predicate's job. Network errors propagate.
    """
    import requests

    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    logger.debug(f"HTTP {method} {url}")
    return requests.request(method, url, **kwargs)


def set_default_fetch(fetch_fn: Optional[Callable[..., Any]]) -> None:
    """Register a process-wide default request function (None clears it)"""
    global _registered_fetch
    if fetch_fn is not None and not callable(fetch_fn):
        raise ConfigurationError(f"Default fetch function must be callable, got {type(fetch_fn).__name__}")
    _registered_fetch = fetch_fn


def _import_fetch(path: str) -> Callable[..., Any]:
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            f"{FETCH_FN_ENV} must look like 'package.module:function', got {path!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import {module_name!r} from {FETCH_FN_ENV}: {e}") from e

    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise ConfigurationError(f"{path!r} from {FETCH_FN_ENV} does not exist") from e

    if not callable(target):
        raise ConfigurationError(f"{path!r} from {FETCH_FN_ENV} is not callable")
    return target


def _requests_available() -> bool:
    try:
        import requests  # noqa: F401
    except ImportError:
        return False
    return True


def resolve_default_fetch() -> Callable[..., Any]:
    """Find the request function to use when none was supplied

    Returns:
        Request function

    Raises:
        ConfigurationError: If nothing usable is found
    """
    if _registered_fetch is not None:
        logger.debug("Using registered default fetch function")
        return _registered_fetch

    path = os.getenv(FETCH_FN_ENV)
    if path:
        logger.debug(f"Using fetch function {path} from {FETCH_FN_ENV}")
        return _import_fetch(path)

    if _requests_available():
        logger.debug("Using requests as fetch implementation")
        return requests_fetch

    raise ConfigurationError(
        "Unable to find fetch implementation. "
        "Either pass `fetch_fn` and `retry_on` in the options "
        f"or register one (set_default_fetch / {FETCH_FN_ENV}) "
        "or install `requests` as a dependency."
    )
