from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Generic, Optional, TypeVar


log = logging.getLogger("quaketelop.queue")

T = TypeVar("T")


class PresentationQueue(Generic[T]):
    """
    FIFO of events waiting to be presented, drained one at a time.

    ``enqueue`` never blocks: it appends and, if no drain is running, starts
    one on the current event loop. The head element stays in the queue until
    its presentation has finished, so ``len()`` counts the active event too.
    A failing presentation is logged and dropped; the drain moves on.
    """

    def __init__(self, present: Callable[[T], Awaitable[None]]) -> None:
        self._present = present
        self._items: Deque[T] = deque()
        self.draining = False
        self._task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self.presented = 0
        self.failed = 0

    def __len__(self) -> int:
        return len(self._items)

    def is_idle(self) -> bool:
        return not self.draining

    def enqueue(self, item: T) -> None:
        self._items.append(item)
        log.info("Queued event (queue length=%d, draining=%s)", len(self._items), self.draining)
        if self.draining:
            return
        self.draining = True
        self._idle.clear()
        self._task = asyncio.get_running_loop().create_task(self._drain(), name="presentation_drain")

    async def _drain(self) -> None:
        try:
            while self._items:
                item = self._items[0]
                try:
                    await self._present(item)
                    self.presented += 1
                except asyncio.CancelledError:
                    raise
                except Exception:
                    self.failed += 1
                    log.exception("Presentation abandoned; continuing with next queued event")
                finally:
                    self._items.popleft()
        finally:
            self.draining = False
            self._task = None
            self._idle.set()

    async def join(self) -> None:
        """Wait until every queued event has been presented."""
        await self._idle.wait()

    async def close(self) -> None:
        task = self._task
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
