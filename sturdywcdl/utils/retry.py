"""Bounded, delay-free retrying of network operations."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..logger import get_logger
from .http import FetchError

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 10


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Tagged result of ``retry``: a value, or the error of the final attempt."""

    value: T | None = None
    error: FetchError | None = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.error is None


def retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RetryResult[T]:
    """
    Call ``operation`` until it succeeds or the attempt budget runs out.

    There is no delay between attempts. Only ``FetchError`` counts as a
    failed attempt; any other exception propagates immediately.

    Args:
        operation: Zero-argument callable that raises FetchError on failure
        max_attempts: Maximum number of calls

    Returns:
        RetryResult with the first successful value, or with the error raised
        by the last attempt

    Raises:
        ValueError: If max_attempts is smaller than 1
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    last_error: FetchError | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return RetryResult(value=operation(), attempts=attempt)
        except FetchError as e:
            last_error = e
            logger.debug(f"Attempt {attempt}/{max_attempts} failed: {e.message}")

    return RetryResult(error=last_error, attempts=max_attempts)
