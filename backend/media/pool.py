"""
FIFO admission gate with a hard cap on concurrently admitted tasks.

Invariants:
- in_flight never exceeds max_concurrent
- waiters are admitted in arrival order
- a released slot goes straight to the oldest live waiter (no idle gap)
"""
from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional


class AdmissionPool:
    def __init__(
        self,
        max_concurrent: int,
        on_change: Optional[Callable[["AdmissionPool"], None]] = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._max = max_concurrent
        self._in_flight = 0
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._on_change = on_change
        self.peak = 0
        self.admitted = 0

    @property
    def max_concurrent(self) -> int:
        return self._max

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def queued(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _admit(self) -> None:
        self._in_flight += 1
        self.admitted += 1
        self.peak = max(self.peak, self._in_flight)

    async def acquire(self) -> None:
        if self._in_flight < self._max and not self._waiters:
            self._admit()
            self._changed()
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        self._changed()
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before cancellation; pass it on.
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
                self._changed()
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                self.admitted += 1
                waiter.set_result(None)
                self._changed()
                return
        if self._in_flight <= 0:
            raise RuntimeError("release() without a matching acquire()")
        self._in_flight -= 1
        self._changed()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()
