"""
Tests for retries, timeouts and the provider guard.
"""

import asyncio

import httpx
import pytest

from content_resolver.errors import PermanentProviderError, RateLimitExceeded, TransientProviderError
from content_resolver.services import ProviderGuard, RateLimiter, ResilientFetcher
from content_resolver.services.resilience import is_transient, status_of


def http_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "http://provider.test/search")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class Flaky:
    """Operation failing with the given errors, then returning ``result``."""

    def __init__(self, *errors: Exception, result="ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


async def test_success_needs_no_retry(sleeps):
    fetcher = ResilientFetcher(max_retries=3, timeout=1.0, sleep=sleeps)
    operation = Flaky()

    assert await fetcher.call(operation) == "ok"
    assert operation.calls == 1
    assert sleeps.delays == []


async def test_zero_timeout_is_kept(sleeps):
    fetcher = ResilientFetcher(max_retries=0, timeout=0, sleep=sleeps)

    assert fetcher.timeout == 0
    with pytest.raises(TransientProviderError):
        await fetcher.call(lambda: asyncio.sleep(1))


async def test_server_errors_are_retried_with_exponential_backoff(sleeps):
    fetcher = ResilientFetcher(max_retries=3, timeout=1.0, sleep=sleeps)
    operation = Flaky(http_error(503), httpx.ConnectError("refused"))

    assert await fetcher.call(operation) == "ok"
    assert operation.calls == 3
    assert sleeps.delays == [2, 4]


async def test_client_error_is_not_retried(sleeps):
    fetcher = ResilientFetcher(max_retries=3, timeout=1.0, sleep=sleeps)
    operation = Flaky(http_error(404))

    with pytest.raises(PermanentProviderError) as excinfo:
        await fetcher.call(operation)

    assert excinfo.value.status_code == 404
    assert operation.calls == 1
    assert sleeps.delays == []


async def test_exhausted_retries_surface_last_error(sleeps):
    fetcher = ResilientFetcher(max_retries=3, timeout=1.0, sleep=sleeps)
    last = http_error(502)
    operation = Flaky(http_error(500), http_error(503), http_error(504), last)

    with pytest.raises(TransientProviderError) as excinfo:
        await fetcher.call(operation)

    assert operation.calls == 4
    assert sleeps.delays == [2, 4, 8]
    assert excinfo.value.__cause__ is last
    assert excinfo.value.status_code == 502


async def test_timeout_counts_as_transient(sleeps):
    fetcher = ResilientFetcher(max_retries=1, timeout=0.01, sleep=sleeps)
    calls = 0

    async def slow():
        nonlocal calls
        calls += 1
        await asyncio.sleep(1)

    with pytest.raises(TransientProviderError):
        await fetcher.call(slow)

    assert calls == 2
    assert sleeps.delays == [2]


async def test_zero_retries_means_single_attempt(sleeps):
    fetcher = ResilientFetcher(max_retries=0, timeout=1.0, sleep=sleeps)
    operation = Flaky(http_error(500))

    with pytest.raises(TransientProviderError):
        await fetcher.call(operation)

    assert operation.calls == 1


def test_error_classification():
    assert status_of(http_error(429)) == 429
    assert status_of(ValueError("boom")) is None
    assert is_transient(http_error(500))
    assert is_transient(httpx.ReadTimeout("slow"))
    assert not is_transient(http_error(400))
    assert not is_transient(RateLimitExceeded("spent"))
    assert not is_transient(asyncio.CancelledError())


async def test_guard_denies_without_calling_provider(clock, sleeps):
    guard = ProviderGuard(
        rate_limiter=RateLimiter(max_requests_per_hour=1, clock=clock),
        fetcher=ResilientFetcher(max_retries=3, timeout=1.0, sleep=sleeps),
    )
    operation = Flaky()

    assert await guard.call(operation) == "ok"
    with pytest.raises(RateLimitExceeded):
        await guard.call(operation)

    assert operation.calls == 1
    assert sleeps.delays == []


async def test_guard_spends_one_budget_unit_per_call_not_per_retry(clock, sleeps):
    limiter = RateLimiter(max_requests_per_hour=5, clock=clock)
    guard = ProviderGuard(rate_limiter=limiter, fetcher=ResilientFetcher(max_retries=2, timeout=1.0, sleep=sleeps))

    await guard.call(Flaky(http_error(503), http_error(503)))

    assert limiter.status().remaining == 4
