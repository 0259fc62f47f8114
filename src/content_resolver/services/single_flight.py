"""Coalescing of concurrent identical async calls."""

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

T = TypeVar("T")


def _consume(future: asyncio.Future) -> None:
    # Marks the exception retrieved when no follower was waiting.
    if not future.cancelled():
        future.exception()


class SingleFlight(Generic[T]):
    """Key -> in-flight future map.

    The first caller for a key runs the operation; callers arriving while it
    runs await the same future and receive the same result or exception.
    Once the operation finishes the key is forgotten, so later calls run
    again.

    Example:
        ```python
        flights: SingleFlight[list[str]] = SingleFlight()
        ids = await flights.do(("stanford", "ORGANIZATION"), lambda: fetch_ids("stanford"))
        ```
    """

    def __init__(self) -> None:
        self._calls: dict[Hashable, asyncio.Future] = {}

    async def do(self, key: Hashable, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` unless a call for ``key`` is already in flight.

        If the leader is cancelled its followers are not: they wake up, find
        the key gone, and one of them runs ``operation`` itself.
        """
        while key in self._calls:
            existing = self._calls[key]
            try:
                # shield: a cancelled follower must not cancel the leader's result
                return await asyncio.shield(existing)
            except asyncio.CancelledError:
                if not existing.cancelled():
                    raise

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume)
        self._calls[key] = future
        try:
            result = await operation()
        except Exception as e:
            future.set_exception(e)
            raise
        except BaseException:
            future.cancel()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._calls.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        return key in self._calls

    def __len__(self) -> int:
        return len(self._calls)
