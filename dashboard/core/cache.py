from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_KEY = "default"


@dataclass
class CacheCell(Generic[T]):
    value: Optional[T] = None
    fetched_at: Optional[float] = None
    variant_key: Optional[str] = None

    def is_fresh(self, now: float, ttl_s: float) -> bool:
        if self.value is None or self.fetched_at is None:
            return False
        return now - self.fetched_at < ttl_s


class ReadThroughCache(Generic[T]):
    """Keyed TTL cache where a miss runs the loader and stores its result.

    Each service owns one instance. A failed load propagates and leaves the
    previous cell untouched (``peek`` can still read it). With ``dedupe`` on,
    concurrent misses for one key await a single load.
    """

    def __init__(
        self,
        name: str,
        ttl_s: float,
        clock: Callable[[], float] = time.monotonic,
        dedupe: bool = True,
    ) -> None:
        self.name = name
        self.ttl_s = ttl_s
        self._clock = clock
        self._dedupe = dedupe
        self._cells: dict[str, CacheCell[T]] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._generation = 0

    def peek(self, key: str = DEFAULT_KEY) -> Optional[CacheCell[T]]:
        return self._cells.get(key)

    def store(self, key: str, value: T) -> None:
        self._cells[key] = CacheCell(value=value, fetched_at=self._clock(), variant_key=key)

    def invalidate(self, key: Optional[str] = None) -> None:
        # Loads already in flight belong to the old generation and won't be stored.
        self._generation += 1
        if key is None:
            self._cells.clear()
            self._inflight.clear()
        else:
            self._cells.pop(key, None)
            self._inflight.pop(key, None)
        logger.debug("[%s] cache invalidated (key=%s)", self.name, key or "*")

    async def get(self, key: str, loader: Callable[[], Awaitable[T]]) -> T:
        cell = self._cells.get(key)
        now = self._clock()
        if cell is not None and cell.is_fresh(now, self.ttl_s):
            logger.debug("[%s] cache hit key=%s age=%.1fs", self.name, key, now - cell.fetched_at)
            return cell.value

        if self._dedupe:
            pending = self._inflight.get(key)
            if pending is not None:
                logger.debug("[%s] joining in-flight load key=%s", self.name, key)
                return await asyncio.shield(pending)

        logger.info("[%s] cache miss key=%s, fetching upstream", self.name, key)
        task = asyncio.ensure_future(self._load(key, loader, self._generation))
        if self._dedupe:
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return await asyncio.shield(task)

    async def _load(self, key: str, loader: Callable[[], Awaitable[T]], generation: int) -> T:
        value = await loader()
        if generation == self._generation:
            self.store(key, value)
        else:
            logger.debug("[%s] discarding load for key=%s started before invalidation", self.name, key)
        return value

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved; every waiter already got it through shield().
            task.exception()
