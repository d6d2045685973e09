"""Retry strategies using Strategy Pattern."""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..config import RetryConfig
from ...exceptions import (
    AuthDenied,
    AuthRequired,
    DriveException,
    UploadCancelled
)
from ...logging import get_logger

T = TypeVar('T')

logger = get_logger('drivepush.retry')


class RetryStrategy(ABC):
    """Abstract retry strategy."""

    @abstractmethod
    def should_retry(self, error: BaseException, retry_count: int) -> bool:
        """Determines if a failed call should be retried."""
        pass

    @abstractmethod
    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry ``attempt`` (1-based)."""
        pass


class ExponentialBackoffStrategy(RetryStrategy):
    """
    Exponential backoff retry strategy.

    Retries transient Drive failures (network errors, non-2xx on a
    retryable step). Cancellation and authorization failures are
    terminal: retrying them can never succeed.
    """

    TERMINAL = (UploadCancelled, AuthDenied, AuthRequired)

    def __init__(self, config: Optional[RetryConfig] = None):
        self._config = config or RetryConfig()

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    def should_retry(self, error: BaseException, retry_count: int) -> bool:
        if isinstance(error, self.TERMINAL):
            return False
        if not isinstance(error, DriveException):
            return False
        return retry_count < self._config.max_retries

    def delay(self, attempt: int) -> float:
        return self._config.calculate_delay(attempt)


class RetryGovernor:
    """
    Wraps a single remote call in bounded exponential backoff.

    On exhaustion the last observed error is re-raised unchanged so
    callers see the true failure cause.

    Example:
        >>> governor = RetryGovernor()
        >>> uri = await governor.run(lambda: negotiator.initiate(...))
    """

    def __init__(
        self,
        strategy: Optional[RetryStrategy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_retry: Optional[Callable[[int, BaseException], None]] = None
    ):
        """
        Initialize governor.

        Args:
            strategy: Retry strategy (exponential backoff by default)
            sleep: Awaitable sleep function (injectable for tests)
            on_retry: Optional callback(attempt, error) fired before each retry
        """
        self._strategy = strategy or ExponentialBackoffStrategy()
        self._sleep = sleep
        self._on_retry = on_retry

    def with_listener(
        self,
        on_retry: Optional[Callable[[int, BaseException], None]]
    ) -> 'RetryGovernor':
        """Return a governor sharing this strategy but with another listener."""
        return RetryGovernor(self._strategy, self._sleep, on_retry)

    async def run(
        self,
        fn: Callable[[], Awaitable[T]],
        cancel_token=None,
        description: str = 'remote call'
    ) -> T:
        """
        Run ``fn`` with retries.

        Args:
            fn: Zero-argument coroutine function performing one attempt
            cancel_token: Optional CancelToken; backoff sleeps are raced
                against it and a cancelled token stops further attempts
            description: Label used in log messages

        Returns:
            The first successful result

        Raises:
            The last error once retries are exhausted, or immediately for
            terminal errors
        """
        retry_count = 0
        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                return await fn()
            except Exception as e:
                if not self._strategy.should_retry(e, retry_count):
                    raise
                retry_count += 1
                delay = self._strategy.delay(retry_count)
                logger.warning(
                    f"Retry {retry_count} for {description} after {delay:.1f}s: {e}"
                )
                if self._on_retry:
                    self._on_retry(retry_count, e)
                if cancel_token is not None:
                    await cancel_token.race(self._sleep(delay))
                else:
                    await self._sleep(delay)
