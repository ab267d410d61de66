"""Retry options model."""

from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fetchretry.domain.errors import ConfigurationError

RetryPredicate = Callable[[Any, int], bool]
RetryObserver = Callable[[Any, int], None]


class RetryOptions(BaseModel):
    """Options for one retried request.

    Attributes:
        fetch_fn: Request function to retry (resolved from the environment if None)
        retries: Maximum number of retries after the first attempt
        factor: Exponential backoff multiplier
        min_timeout: Base delay in seconds, not milliseconds
        max_timeout: Upper bound of a single delay in seconds
        randomize: Scale each delay by a random value in [0, 1)
        retry_on: Predicate ``(outcome, remaining_retries) -> bool``
        on_retry: Observer ``(outcome, remaining_retries)`` called before each retry
    """

    fetch_fn: Optional[Callable[..., Any]] = None
    retries: int = Field(3, ge=0)
    factor: float = Field(2.0, ge=0.0)
    min_timeout: float = Field(1.0, ge=0.0, description="Base delay in seconds (not milliseconds)")
    max_timeout: float = Field(10.0, ge=0.0, description="Upper bound of a single delay in seconds (not milliseconds)")
    randomize: bool = False
    retry_on: Optional[Callable[[Any, int], bool]] = None
    on_retry: Optional[Callable[[Any, int], None]] = None

    model_config = ConfigDict(
        frozen=True,  # Options never change once an attempt sequence starts
        extra="forbid",
    )


def format_validation_error(error: ValidationError, prefix: str = "Invalid retry options") -> str:
    """Render pydantic validation errors as a readable bullet list"""
    errors = []
    for item in error.errors():
        field = ".".join(str(x) for x in item["loc"]) or "<root>"
        errors.append(f"  - {field}: {item['msg']}")
    return f"{prefix}:\n" + "\n".join(errors)


def coerce_options(options: Union[RetryOptions, Dict[str, Any], None]) -> RetryOptions:
    """Build RetryOptions from a model, a plain dict or None

    Raises:
        ConfigurationError: If the values do not validate
    """
    if options is None:
        return RetryOptions()
    if isinstance(options, RetryOptions):
        return options
    if not isinstance(options, dict):
        raise ConfigurationError(
            f"Options must be a RetryOptions instance or a dict, got {type(options).__name__}"
        )
    try:
        return RetryOptions(**options)
    except ValidationError as e:
        raise ConfigurationError(format_validation_error(e)) from e
