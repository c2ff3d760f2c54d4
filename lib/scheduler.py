"""Deferred task scheduling keyed by an owner id.

Two implementations share one interface:

- ``AsyncioScheduler`` runs callbacks on the running event loop after a real delay.
- ``VirtualScheduler`` keeps its own clock so callers can fast-forward time
  deterministically with ``advance``.

Callbacks are zero-argument coroutine functions. A callback that raises is
logged and dropped; it never affects other scheduled callbacks.
"""
import asyncio
import heapq
import itertools
import logging
from typing import Awaitable, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]

class Scheduler:
    def schedule(self, key: str, delay_ms: int, callback: Callback) -> None:
        raise NotImplementedError

    def cancel(self, key: str) -> int:
        raise NotImplementedError

    def cancel_all(self) -> int:
        raise NotImplementedError

    def pending(self, key: str = None) -> int:
        raise NotImplementedError

    @staticmethod
    async def _invoke(key: str, callback: Callback) -> None:
        try:
            await callback()
        except Exception as e:
            logger.error(f"Scheduled task for {key} failed: {str(e)}")

class AsyncioScheduler(Scheduler):
    def __init__(self):
        self._tasks: Dict[str, List[asyncio.Task]] = {}

    def schedule(self, key: str, delay_ms: int, callback: Callback) -> None:
        task = asyncio.ensure_future(self._run(key, delay_ms, callback))
        self._tasks.setdefault(key, []).append(task)
        task.add_done_callback(lambda t: self._forget(key, t))

    async def _run(self, key: str, delay_ms: int, callback: Callback) -> None:
        await asyncio.sleep(delay_ms / 1000)
        await self._invoke(key, callback)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        tasks = self._tasks.get(key)
        if not tasks:
            return
        if task in tasks:
            tasks.remove(task)
        if not tasks:
            del self._tasks[key]

    def cancel(self, key: str) -> int:
        tasks = self._tasks.pop(key, [])
        for task in tasks:
            task.cancel()
        return len(tasks)

    def cancel_all(self) -> int:
        return sum(self.cancel(key) for key in list(self._tasks))

    def pending(self, key: str = None) -> int:
        if key is not None:
            return len(self._tasks.get(key, []))
        return sum(len(tasks) for tasks in self._tasks.values())

class VirtualScheduler(Scheduler):
    def __init__(self):
        self.now_ms = 0
        self._queue: List[Tuple[int, int, str, Callback]] = []
        self._seq = itertools.count()

    def schedule(self, key: str, delay_ms: int, callback: Callback) -> None:
        heapq.heappush(self._queue, (self.now_ms + delay_ms, next(self._seq), key, callback))

    def cancel(self, key: str) -> int:
        before = len(self._queue)
        self._queue = [entry for entry in self._queue if entry[2] != key]
        heapq.heapify(self._queue)
        return before - len(self._queue)

    def cancel_all(self) -> int:
        count = len(self._queue)
        self._queue = []
        return count

    def pending(self, key: str = None) -> int:
        if key is not None:
            return sum(1 for entry in self._queue if entry[2] == key)
        return len(self._queue)

    async def advance(self, ms: int) -> None:
        """Move the clock forward, running every callback that falls due"""
        target = self.now_ms + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, key, callback = heapq.heappop(self._queue)
            self.now_ms = due
            await self._invoke(key, callback)
        self.now_ms = target
