"""Retry engine built on tenacity.

The attempt loop itself is tenacity's; this module supplies the strategies
that make it follow fetchretry semantics: a predicate fed with the remaining
budget, exponential backoff starting at ``min_timeout * factor``, an observer
called before each sleep and an exhaustion callback.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_base,
    stop_after_attempt,
    wait_exponential,
)

from fetchretry.domain.config.retry import RetryOptions
from fetchretry.domain.errors import RetryExhaustedError
from fetchretry.domain.retry_policy import default_retry_on

logger = logging.getLogger(__name__)


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


async def _async_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def remaining_retries(retry_state: RetryCallState, total: int) -> int:
    """Retries left after the attempt that produced ``retry_state.outcome``"""
    return max(total - (retry_state.attempt_number - 1), 0)


def outcome_of(retry_state: RetryCallState) -> Any:
    """Unwrap the attempt outcome: the returned value or the raised exception"""
    outcome = retry_state.outcome
    if outcome is None:
        return None
    if outcome.failed:
        return outcome.exception()
    return outcome.result()


class retry_if_predicate(retry_base):
    """Retry strategy delegating to a ``(outcome, remaining) -> bool`` predicate.

    Interrupts and cancellation (BaseException that is not an Exception) are
    never handed to the predicate and always propagate.
    """

    def __init__(self, predicate: Callable[[Any, int], bool], total: int) -> None:
        self.predicate = predicate
        self.total = total

    def __call__(self, retry_state: RetryCallState) -> bool:
        outcome = outcome_of(retry_state)
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            return False
        return bool(self.predicate(outcome, remaining_retries(retry_state, self.total)))


class wait_jittered_exponential(wait_exponential):
    """Exponential wait scaled by a uniform random value in [0, 1)."""

    def __call__(self, retry_state: RetryCallState) -> float:
        return super().__call__(retry_state) * random.random()


def build_wait(options: RetryOptions) -> wait_exponential:
    """Create the backoff strategy for ``options``

    The delay before retry k (k attempts made so far) is
    ``min(max_timeout, min_timeout * factor ** k)``. tenacity computes
    ``multiplier * exp_base ** (attempt_number - 1)``, so the multiplier
    carries one extra factor.
    """
    wait_cls = wait_jittered_exponential if options.randomize else wait_exponential
    return wait_cls(
        multiplier=options.min_timeout * options.factor,
        exp_base=options.factor,
        max=options.max_timeout,
    )


def _make_before_sleep(options: RetryOptions) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        outcome = outcome_of(retry_state)
        remaining = remaining_retries(retry_state, options.retries)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Request attempt {retry_state.attempt_number}/{options.retries + 1} "
            f"gave {outcome!r}. Retrying in {delay:.2f}s ({remaining} retries left)"
        )
        if options.on_retry is not None:
            options.on_retry(outcome, remaining)

    return _before_sleep


def _raise_exhausted(retry_state: RetryCallState) -> Any:
    outcome = retry_state.outcome
    attempts = retry_state.attempt_number
    logger.error(f"Retry budget exhausted after {attempts} attempts")
    if outcome.failed:
        # re-raises the request function's own exception
        return outcome.result()
    raise RetryExhaustedError(outcome.result(), attempts=attempts)


def create_retrying(
    options: RetryOptions,
    *,
    asynchronous: bool = False,
) -> Union[Retrying, AsyncRetrying]:
    """Create a tenacity controller for one attempt sequence.

    Args:
        options: Retry options
        asynchronous: Build an AsyncRetrying instead of a Retrying

    Returns:
        Configured tenacity controller
    """
    kwargs = dict(
        stop=stop_after_attempt(options.retries + 1),
        wait=build_wait(options),
        retry=retry_if_predicate(options.retry_on or default_retry_on, options.retries),
        before_sleep=_make_before_sleep(options),
        retry_error_callback=_raise_exhausted,
    )
    if asynchronous:
        return AsyncRetrying(sleep=_async_sleep, **kwargs)
    return Retrying(sleep=_sleep, **kwargs)
