"""Retry driver: calls a request function until its outcome is final.

Each call runs one attempt sequence with its own budget; nothing is shared
between calls.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from typing import Any, Callable, Dict, Optional, Union

from fetchretry.domain.config import RetryOptions, coerce_options
from fetchretry.domain.errors import ConfigurationError
from fetchretry.infrastructure.http_client import resolve_default_fetch
from fetchretry.infrastructure.retry import create_retrying

logger = logging.getLogger(__name__)

OptionsLike = Union[RetryOptions, Dict[str, Any], None]


def _prepare(options: OptionsLike) -> tuple[RetryOptions, Callable[..., Any]]:
    """Validate options and pick the request function, before any attempt"""
    opts = coerce_options(options)
    if opts.fetch_fn is not None and opts.retry_on is None:
        raise ConfigurationError(
            "If you are manually providing a fetch function, "
            "you must also provide a retry_on function. "
            "If you wish to use the default fetch implementation, "
            "do not provide a fetch_fn; whichever is available will be used."
        )
    fetch = opts.fetch_fn if opts.fetch_fn is not None else resolve_default_fetch()
    return opts, fetch


async def fetch_with_retry(options: OptionsLike = None, *args: Any, **kwargs: Any) -> Any:
    """Call a request function, retrying with exponential backoff.

    A resolved default request function that is not a coroutine function runs
    in a worker thread. A blocking ``fetch_fn`` passed in the options is
    called on the event loop.

    Args:
        options: RetryOptions, a dict of its fields, or None for defaults
        *args: Positional arguments for the request function
        **kwargs: Keyword arguments for the request function

    Returns:
        The first outcome the retry predicate declines to retry

    Raises:
        ConfigurationError: Before any attempt, if options are invalid or no
            request function can be found
        ClassificationError: If the default predicate cannot classify an outcome
        RetryExhaustedError: If the budget runs out on a returned value
        Exception: The request function's own exception, when final
    """
    opts, fetch = _prepare(options)
    # Resolved defaults (requests, registered or env functions) may block
    run_in_thread = opts.fetch_fn is None and not inspect.iscoroutinefunction(fetch)

    async def _attempt() -> Any:
        logger.debug(f"Calling {getattr(fetch, '__name__', fetch)!r}")
        if run_in_thread:
            result = await asyncio.to_thread(fetch, *args, **kwargs)
        else:
            result = fetch(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    return await create_retrying(opts, asynchronous=True)(_attempt)


def fetch_with_retry_sync(options: OptionsLike = None, *args: Any, **kwargs: Any) -> Any:
    """Blocking counterpart of :func:`fetch_with_retry` for synchronous request functions"""
    opts, fetch = _prepare(options)
    if inspect.iscoroutinefunction(fetch):
        raise ConfigurationError(
            "fetch_with_retry_sync cannot drive a coroutine function; use fetch_with_retry"
        )
    return create_retrying(opts, asynchronous=False)(fetch, *args, **kwargs)


def with_retry(options: OptionsLike = None, **overrides: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Create a decorator that retries the decorated request function.

    Coroutine functions get an async wrapper, plain functions a blocking one.
    A ``retry_on`` predicate is required, as for any custom request function.

    Example:
        @with_retry(retry_on=lambda response, remaining: response.status_code >= 500)
        def get_user(user_id): ...
    """
    base = coerce_options(options)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        opts = coerce_options({**_fields(base), **overrides, "fetch_fn": func})
        # Fail at decoration time rather than at the first call
        _prepare(opts)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapped(*args: Any, **kwargs: Any) -> Any:
                return await fetch_with_retry(opts, *args, **kwargs)

            return async_wrapped

        @functools.wraps(func)
        def wrapped(*args: Any, **kwargs: Any) -> Any:
            return fetch_with_retry_sync(opts, *args, **kwargs)

        return wrapped

    return decorator


def _fields(options: RetryOptions) -> Dict[str, Any]:
    # model_dump would deep-copy callables; read attributes instead
    return {name: getattr(options, name) for name in RetryOptions.model_fields}


async def run(options: OptionsLike, request_fn: Optional[Callable[..., Any]], *args: Any, **kwargs: Any) -> Any:
    """Same as :func:`fetch_with_retry` with the request function passed explicitly"""
    opts = coerce_options(options)
    if request_fn is not None:
        opts = coerce_options({**_fields(opts), "fetch_fn": request_fn})
    return await fetch_with_retry(opts, *args, **kwargs)
