"""Default retry predicate.

Decides retriability of an outcome by looking at its shape: response-like
objects expose an ``ok`` flag, other objects are searched for something that
looks like an HTTP status code.
"""

from collections.abc import Mapping
from numbers import Number, Real
from typing import Any, Iterable, Optional

from fetchretry.domain.errors import ClassificationError

RETRYABLE_STATUS_CODES = frozenset({408, 413, 429, 500, 502, 503, 504})

_PRIMITIVE_TYPES = (str, bytes, bytearray, Number)


def _own_values(outcome: Any) -> Iterable[Any]:
    if isinstance(outcome, Mapping):
        return outcome.values()
    if isinstance(outcome, (list, tuple)):
        return outcome
    return vars(outcome).values() if hasattr(outcome, "__dict__") else ()


def find_status_code(outcome: Any) -> Optional[Real]:
    """Return the first value of ``outcome`` that looks like an HTTP status code"""
    for value in _own_values(outcome):
        # bool is Real too; True must not count as a status
        if isinstance(value, bool) or not isinstance(value, Real):
            continue
        if 99 < value < 600:
            return value
    return None


def _ok_flag(outcome: Any) -> tuple[bool, Any]:
    if isinstance(outcome, Mapping):
        return ("ok" in outcome, outcome.get("ok"))
    if hasattr(outcome, "ok"):
        return (True, getattr(outcome, "ok"))
    return (False, None)


def default_retry_on(outcome: Any, remaining: int) -> bool:
    """Retry predicate used when no request function is supplied

    Args:
        outcome: Value returned or exception raised by the request function
        remaining: Retries left in the budget

    Returns:
        True if the request should be attempted again

    Raises:
        ClassificationError: If the outcome shape is not recognized
    """
    if remaining == 0:
        return False

    if outcome is None:
        return True

    if isinstance(outcome, Exception):
        return True

    if isinstance(outcome, _PRIMITIVE_TYPES):
        raise ClassificationError(
            f"Unexpected result type: expected object, got {type(outcome).__name__}"
        )

    has_ok, ok = _ok_flag(outcome)
    if has_ok:
        return not ok

    status_code = find_status_code(outcome)
    if status_code is not None:
        return status_code in RETRYABLE_STATUS_CODES

    raise ClassificationError(
        "Unable to determine if request can be retried. "
        "If you are manually providing a fetch function, "
        "you must also provide a retry_on function."
    )
