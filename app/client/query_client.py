"""Key-based cache for API reads.

``fetch_query`` returns cached data while it is fresh (``stale_time``),
otherwise runs the fetcher. Concurrent fetches of the same key share one
in-flight task. Entries not read for ``gc_time`` are dropped by ``gc``, which
every ``fetch_query`` runs first.
Failed fetches are retried, except for 4xx API errors.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional

from .api_client import ApiError
from .config import client_settings
from .query_keys import QueryKey

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


def default_retry_delay(attempt: int) -> float:
    """Exponential backoff: 1s, 2s, 4s ... capped at 30s."""
    return min(2 ** attempt, 30)


def should_retry(failure_count: int, error: Exception, max_retries: int) -> bool:
    if isinstance(error, ApiError) and error.is_client_error:
        return False
    return failure_count <= max_retries


@dataclass
class QueryEntry:
    data: Any
    updated_at: float
    last_used_at: float
    invalidated: bool = False


class QueryClient:
    def __init__(
        self,
        stale_time: Optional[float] = None,
        gc_time: Optional[float] = None,
        retry: Optional[int] = None,
        retry_delay: Callable[[int], float] = default_retry_delay,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_time = client_settings.query_stale_time_seconds if stale_time is None else stale_time
        self.gc_time = client_settings.query_gc_time_seconds if gc_time is None else gc_time
        self.retry = client_settings.query_retry if retry is None else retry
        self.retry_delay = retry_delay
        self._clock = clock
        self._entries: Dict[QueryKey, QueryEntry] = {}
        self._inflight: Dict[QueryKey, "asyncio.Task[Any]"] = {}

    # ----- reads -----

    def is_stale(self, key: QueryKey, stale_time: Optional[float] = None) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.invalidated:
            return True
        window = self.stale_time if stale_time is None else stale_time
        return self._clock() - entry.updated_at >= window

    async def fetch_query(self, key: QueryKey, fetcher: Fetcher, stale_time: Optional[float] = None) -> Any:
        # Every fetch sweeps entries unused for gc_time
        self.gc()
        if not self.is_stale(key, stale_time):
            entry = self._entries[key]
            entry.last_used_at = self._clock()
            return entry.data

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, fetcher))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.debug("Joining in-flight fetch for %s", key)
        return await asyncio.shield(task)

    async def prefetch_query(self, key: QueryKey, fetcher: Fetcher) -> None:
        """Warm the cache. Failures are logged, not raised."""
        try:
            await self.fetch_query(key, fetcher)
        except Exception:
            logger.warning("Prefetch failed for %s", key, exc_info=True)

    def get_query_data(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def set_query_data(self, key: QueryKey, data: Any) -> None:
        now = self._clock()
        self._entries[key] = QueryEntry(data=data, updated_at=now, last_used_at=now)

    # ----- invalidation -----

    def _matching(self, prefix: QueryKey) -> Iterator[QueryKey]:
        return (key for key in list(self._entries) if key[: len(prefix)] == prefix)

    def invalidate_queries(self, prefix: QueryKey = ()) -> int:
        """Mark every entry under ``prefix`` stale; the next fetch refetches it."""
        keys = list(self._matching(prefix))
        for key in keys:
            self._entries[key].invalidated = True
        logger.debug("Invalidated %d queries under %s", len(keys), prefix)
        return len(keys)

    def remove_queries(self, prefix: QueryKey = ()) -> int:
        keys = list(self._matching(prefix))
        for key in keys:
            del self._entries[key]
        return len(keys)

    def gc(self) -> int:
        """Drop entries unused for longer than ``gc_time``."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.last_used_at >= self.gc_time]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    # ----- internals -----

    def _forget(self, key: QueryKey, task: "asyncio.Task[Any]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _run(self, key: QueryKey, fetcher: Fetcher) -> Any:
        failure_count = 0
        while True:
            try:
                data = await fetcher()
            except Exception as e:
                failure_count += 1
                if not should_retry(failure_count, e, self.retry):
                    raise
                delay = self.retry_delay(failure_count - 1)
                logger.info("Fetch for %s failed (%s), retry %d in %.1fs", key, e, failure_count, delay)
                await asyncio.sleep(delay)
                continue
            self.set_query_data(key, data)
            return data
