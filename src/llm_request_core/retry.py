"""Retry controller with exponential backoff and jitter."""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from .config import RetryConfig
from .errors import classify_error, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.1


class RetryController:
    """Re-invokes an async operation on retryable failures.

    Non-retryable errors propagate after the first attempt. When attempts run
    out the last error is re-raised unchanged.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_multiplier: float = 2.0,
        jitter: bool = True,
        on_retry: Optional[Callable[[int, float], None]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._backoff_multiplier = backoff_multiplier
        self._jitter = jitter
        self._on_retry = on_retry
        self._sleep = sleep

        # Stats
        self._total_calls = 0
        self._total_retries = 0
        self._total_exhausted = 0
        self._total_fatal = 0

    @classmethod
    def from_config(cls, config: RetryConfig, **kwargs: Any) -> "RetryController":
        """Create a controller from settings."""
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            backoff_multiplier=config.backoff_multiplier,
            jitter=config.jitter,
            **kwargs,
        )

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def calculate_delay(self, attempt: int) -> float:
        """Delay in seconds after the given failed attempt (1-indexed)."""
        delay = self._base_delay * (self._backoff_multiplier ** (attempt - 1))
        if self._jitter:
            delay += random.uniform(0, JITTER_RATIO * delay)
        return min(delay, self._max_delay)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.calculate_delay(retry_state.attempt_number)

    async def retry(self, operation: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        """Run an operation, retrying classified transient failures.

        Args:
            operation: Zero-argument coroutine function to invoke
            label: Name used in log messages

        Returns:
            The operation's result
        """
        self._total_calls += 1
        total_attempts = self._max_retries + 1

        def before_sleep(retry_state: RetryCallState) -> None:
            attempt = retry_state.attempt_number
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            error = retry_state.outcome.exception() if retry_state.outcome else None
            self._total_retries += 1
            logger.warning(
                "%s failed (attempt %d/%d). Retrying in %.3fs: %s",
                label,
                attempt,
                total_attempts,
                delay,
                error,
            )
            if self._on_retry:
                self._on_retry(attempt, delay)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(total_attempts),
            wait=self._wait,
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            return await retrying(operation)
        except Exception as error:
            if is_retryable(error):
                self._total_exhausted += 1
                logger.error("%s failed after %d attempts: %s", label, total_attempts, error)
            else:
                self._total_fatal += 1
                logger.debug("%s failed with non-retryable %s error", label, classify_error(error).value)
            raise

    def stats(self) -> dict[str, Any]:
        """Get retry statistics."""
        return {
            "total_calls": self._total_calls,
            "total_retries": self._total_retries,
            "total_exhausted": self._total_exhausted,
            "total_fatal": self._total_fatal,
            "max_retries": self._max_retries,
        }
