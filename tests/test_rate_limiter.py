"""
Tests for the hourly provider budget.
"""

import threading
from datetime import timedelta

from content_resolver.services import RateLimiter


def test_allows_up_to_budget_then_denies(clock):
    limiter = RateLimiter(max_requests_per_hour=3, clock=clock)

    assert [limiter.allow() for _ in range(5)] == [True, True, True, False, False]


def test_window_resets_after_an_hour(clock):
    limiter = RateLimiter(max_requests_per_hour=1, clock=clock)
    assert limiter.allow()
    assert not limiter.allow()

    clock.advance(minutes=59, seconds=59)
    assert not limiter.allow()

    clock.advance(seconds=1)
    assert limiter.allow()


def test_status_reports_remaining_and_reset(clock):
    start = clock.now
    limiter = RateLimiter(max_requests_per_hour=10, clock=clock)
    limiter.allow()
    limiter.allow()

    status = limiter.status()

    assert status.remaining == 8
    assert status.total == 10
    assert status.resets_at == start + timedelta(hours=1)


def test_status_does_not_consume(clock):
    limiter = RateLimiter(max_requests_per_hour=1, clock=clock)

    for _ in range(3):
        limiter.status()

    assert limiter.allow()


def test_status_after_window_rollover(clock):
    limiter = RateLimiter(max_requests_per_hour=2, clock=clock)
    limiter.allow()
    limiter.allow()

    clock.advance(hours=2)
    status = limiter.status()

    assert status.remaining == 2
    assert status.resets_at == clock.now + timedelta(hours=1)


def test_concurrent_callers_never_exceed_budget():
    limiter = RateLimiter(max_requests_per_hour=50)
    granted = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            if limiter.allow():
                with lock:
                    granted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(granted) == 50
    assert limiter.status().remaining == 0


def test_zero_budget_denies_everything(clock):
    limiter = RateLimiter(max_requests_per_hour=0, clock=clock)

    assert not limiter.allow()
    assert limiter.status().total == 0
