"""Retry executor with exponential backoff for conflicting writes."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from photobattle.common.logging import get_logger

logger = get_logger(__name__)

R = TypeVar("R")

SleepFunc = Callable[[float], None]


@dataclass
class AttemptHistory:
    """History of a single retry attempt."""

    attempt_number: int
    exception: Exception
    delay_seconds: float | None


class MaxRetriesError(Exception):
    """Raised when all retry attempts are exhausted.

    Attributes:
        max_attempts: Maximum number of attempts that were tried
        last_exception: The exception that caused the final failure
        attempt_history: List of AttemptHistory objects for all attempts
    """

    def __init__(
        self,
        max_attempts: int,
        last_exception: Exception,
        attempt_history: list[AttemptHistory],
    ) -> None:
        self.max_attempts = max_attempts
        self.last_exception = last_exception
        self.attempt_history = attempt_history
        super().__init__(
            f"Max retries ({max_attempts}) exceeded. "
            f"Last error: {type(last_exception).__name__}: {last_exception}"
        )


def _calculate_delay(attempt: int, base_delay_seconds: float) -> float:
    """Delay before retrying after ``attempt`` (0-indexed) failed."""
    return base_delay_seconds * (2**attempt)


class RetryableTaskExecutor:
    """Run a callable, retrying selected exceptions with exponential backoff.

    Example:
        executor = RetryableTaskExecutor(
            max_attempts=3,
            base_delay_seconds=0.05,
            retryable_exceptions=(ConcurrentModificationError,),
        )
        result = executor.execute(merge_service.merge, battle_id, "a", "b", caller_id)

    Attributes:
        max_attempts: Maximum number of execution attempts (including first)
        base_delay_seconds: Base delay in seconds before first retry
        retryable_exceptions: Tuple of exception types to retry
        sleep_func: Optional custom sleep function for testability
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_seconds: float = 1,
        retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
        sleep_func: SleepFunc | None = None,
    ) -> None:
        """Initialize the retry executor.

        Raises:
            ValueError: If max_attempts < 1 or base_delay_seconds < 0
            TypeError: If retryable_exceptions is not a non-empty tuple of Exception types
        """
        if not isinstance(max_attempts, int) or max_attempts < 1:
            raise ValueError(f"max_attempts must be an integer >= 1, got {max_attempts!r}")
        if base_delay_seconds < 0:
            raise ValueError(f"base_delay_seconds must be >= 0, got {base_delay_seconds}")
        if not isinstance(retryable_exceptions, tuple) or not retryable_exceptions:
            raise TypeError("retryable_exceptions must be a non-empty tuple")
        for exc_type in retryable_exceptions:
            if not (isinstance(exc_type, type) and issubclass(exc_type, Exception)):
                raise TypeError(f"retryable_exceptions must contain Exception types, got {exc_type}")

        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self.retryable_exceptions = retryable_exceptions
        self.sleep_func = sleep_func or time.sleep

    def execute(self, func: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """Execute ``func`` with retry logic.

        Returns:
            Result of func(*args, **kwargs) on success

        Raises:
            MaxRetriesError: If all retry attempts are exhausted
            Exception: If an exception not in retryable_exceptions is raised
        """
        func_name = getattr(func, "__name__", "function")
        attempt_history: list[AttemptHistory] = []

        for attempt in range(self.max_attempts):
            try:
                return func(*args, **kwargs)
            except self.retryable_exceptions as e:
                if attempt == self.max_attempts - 1:
                    attempt_history.append(AttemptHistory(attempt + 1, e, None))
                    logger.warning(
                        f"{func_name} failed after {self.max_attempts} attempts",
                        metadata={"function": func_name, "error": str(e)},
                    )
                    raise MaxRetriesError(self.max_attempts, e, attempt_history) from e

                delay = _calculate_delay(attempt, self.base_delay_seconds)
                attempt_history.append(AttemptHistory(attempt + 1, e, delay))
                logger.warning(
                    f"Retry attempt {attempt + 1}/{self.max_attempts - 1} for {func_name}",
                    metadata={"attempt": attempt + 1, "delay": delay, "error": str(e)},
                )
                self.sleep_func(delay)

        raise RuntimeError("Unexpected retry loop exit without exception")
