"""
In-flight request registry.

Maps a key to the single asyncio.Task doing the work for that key, so
concurrent requesters share one result instead of starting duplicate
network calls. The entry is removed by the task itself before its result
becomes observable, on success and on failure alike.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class InFlightRegistry(Generic[K, V]):
    """Key -> shared task. Single event loop only."""

    def __init__(self, name: str = "inflight") -> None:
        self._name = name
        self._tasks: dict[K, asyncio.Task[V]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, key: K) -> Optional[asyncio.Task[V]]:
        return self._tasks.get(key)

    async def run(self, key: K, factory: Callable[[], Awaitable[V]]) -> V:
        """
        Await the in-flight work for ``key``, starting it with ``factory`` if none exists.

        Callers await through asyncio.shield: a cancelled caller stops waiting
        but the shared task keeps running for the other requesters.
        """
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._run_and_release(key, factory), name=f"{self._name}:{key}"
            )
            self._tasks[key] = task
        return await asyncio.shield(task)

    async def _run_and_release(self, key: K, factory: Callable[[], Awaitable[V]]) -> V:
        try:
            return await factory()
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    async def cancel_all(self) -> None:
        """Cancel every in-flight task and wait for them to unwind."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
