"""Single-flight execution: one in-flight call per key."""

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Deduplicate identical in-flight calls.

    Concurrent callers with the same key await the task started by the first
    caller and receive its result or exception.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task] = {}
        self._shared = 0

    @property
    def in_flight(self) -> int:
        """Number of keys currently executing."""
        return len(self._tasks)

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    @property
    def shared_calls(self) -> int:
        """Number of calls that joined an existing execution."""
        return self._shared

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        existing = self._tasks.get(key)
        if existing is not None:
            self._shared += 1
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        task.add_done_callback(lambda _: self._tasks.pop(key, None))
        return await asyncio.shield(task)
