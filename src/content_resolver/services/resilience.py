"""Retry, timeout and rate-limit guard for provider calls.

ResilientFetcher is a pure resilience wrapper: it knows about HTTP status
classes and timeouts, nothing about budgets or business rules. ProviderGuard
composes it with the RateLimiter; that composition is what the search
pipeline calls.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from content_resolver.config import settings
from content_resolver.errors import (
    PermanentProviderError,
    ProviderError,
    RateLimitExceeded,
    TransientProviderError,
)
from content_resolver.services.rate_limiter import RateLimiter

T = TypeVar("T")


def status_of(error: BaseException) -> int | None:
    """HTTP status carried by an error, if any.

    Understands ProviderError, httpx.HTTPStatusError (``error.response``) and
    anything exposing a ``status_code`` attribute.
    """
    if isinstance(error, ProviderError):
        return error.status_code
    code = getattr(getattr(error, "response", None), "status_code", None)
    if isinstance(code, int):
        return code
    code = getattr(error, "status_code", None)
    return code if isinstance(code, int) else None


def is_client_error(error: BaseException) -> bool:
    """True for errors carrying a 4xx status."""
    code = status_of(error)
    return code is not None and 400 <= code < 500


def is_transient(error: BaseException) -> bool:
    """Retry predicate: timeouts, 5xx and network failures only."""
    if not isinstance(error, Exception):
        return False
    if isinstance(error, (RateLimitExceeded, PermanentProviderError)):
        return False
    return not is_client_error(error)


class ResilientFetcher:
    """Timeout + bounded exponential-backoff retry around one async call.

    - 4xx: raised at once as PermanentProviderError
    - timeout / 5xx / network error: retried after 2, 4, 8... seconds
    - retries exhausted: TransientProviderError chained to the last failure

    Example:
        ```python
        fetcher = ResilientFetcher(max_retries=3, timeout=10.0)
        records = await fetcher.call(lambda: provider.fetch("stanford"))
        ```
    """

    def __init__(
        self,
        max_retries: int | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the fetcher.

        Args:
            max_retries: Retries after the first attempt. Defaults to settings.
            timeout: Per-attempt timeout in seconds. Defaults to settings.
            sleep: Coroutine used between attempts (injectable for tests).
        """
        self._max_retries = settings.provider_max_retries if max_retries is None else max_retries
        self._timeout = settings.provider_timeout if timeout is None else timeout
        self._sleep = sleep

    @property
    def max_retries(self) -> int:
        """Get the retry bound."""
        return self._max_retries

    @property
    def timeout(self) -> float:
        """Get the per-attempt timeout in seconds."""
        return self._timeout

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Provider call failed (attempt {retry_state.attempt_number}/{self._max_retries + 1}), "
            f"retrying in {delay:.0f}s: {error!r}"
        )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` with timeout and retries.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt

        Returns:
            The operation's result

        Raises:
            PermanentProviderError: On a 4xx failure (no retry)
            TransientProviderError: When every attempt failed
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=2, exp_base=2),
            retry=retry_if_exception(is_transient),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await asyncio.wait_for(operation(), timeout=self._timeout)
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise TransientProviderError(f"Provider call timed out after {self._timeout}s") from e
        except Exception as e:
            code = status_of(e)
            if is_client_error(e):
                raise PermanentProviderError(f"Provider rejected the request (HTTP {code})", code) from e
            raise TransientProviderError(f"Provider call failed: {e!r}", code) from e

        raise TransientProviderError("Provider call gave up without a result")


class ProviderGuard:
    """RateLimiter in front of ResilientFetcher.

    A denied budget raises RateLimitExceeded before any network I/O and is
    never retried.
    """

    def __init__(self, rate_limiter: RateLimiter, fetcher: ResilientFetcher) -> None:
        self._limiter = rate_limiter
        self._fetcher = fetcher

    @classmethod
    def create(
        cls,
        max_requests_per_hour: int | None = None,
        max_retries: int | None = None,
        timeout: float | None = None,
    ) -> "ProviderGuard":
        """Factory method building the limiter and fetcher from settings."""
        return cls(
            rate_limiter=RateLimiter(max_requests_per_hour=max_requests_per_hour),
            fetcher=ResilientFetcher(max_retries=max_retries, timeout=timeout),
        )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Consult the budget, then run ``operation`` through the fetcher.

        Raises:
            RateLimitExceeded: If the hourly budget is spent
            PermanentProviderError: On a 4xx failure
            TransientProviderError: When every attempt failed
        """
        if not self._limiter.allow():
            status = self._limiter.status()
            raise RateLimitExceeded(
                f"Provider budget of {status.total} calls/hour spent, resets at {status.resets_at.isoformat()}"
            )
        return await self._fetcher.call(operation)

    @property
    def rate_limiter(self) -> RateLimiter:
        """Get the underlying limiter (status endpoint, tests)."""
        return self._limiter

    @property
    def fetcher(self) -> ResilientFetcher:
        """Get the underlying fetcher."""
        return self._fetcher
