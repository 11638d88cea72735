"""
Keyed query cache for the workspace client

Entries are keyed by tuples such as ("tasks", workspace_id). Each entry
holds the last fetched data, when it was written, whether it is stale and
the ETag the server sent with it.

Concurrent fetches of the same key share one in-flight task. An in-flight
fetch can be cancelled before an optimistic write so that an older
response never overwrites the optimistic state.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

QueryKey = Tuple[Any, ...]


@dataclass
class CacheEntry:
    data: Any = None
    updated_at: Optional[float] = None
    stale: bool = True
    etag: Optional[str] = None


def _as_key(key) -> QueryKey:
    return key if isinstance(key, tuple) else (key,)


class QueryCache:
    """
    In-memory query cache shared by the client hooks and repositories.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._inflight: Dict[QueryKey, asyncio.Task] = {}
        self._subscribers: List[Callable[[QueryKey, CacheEntry], None]] = []
        self._clock = clock

    # Reads and writes

    def get_entry(self, key) -> Optional[CacheEntry]:
        return self._entries.get(_as_key(key))

    def get_query_data(self, key, default=None):
        entry = self._entries.get(_as_key(key))
        return entry.data if entry is not None else default

    def set_query_data(self, key, data_or_updater) -> Any:
        """
        Write an entry and mark it fresh.

        Args:
            key: Cache key
            data_or_updater: The new data, or a function from the previous data to the new data

        Returns:
            The data now stored under the key
        """
        key = _as_key(key)
        entry = self._entries.setdefault(key, CacheEntry())
        data = data_or_updater(entry.data) if callable(data_or_updater) else data_or_updater
        entry.data = data
        entry.updated_at = self._clock()
        entry.stale = False
        self._notify(key, entry)
        return data

    def set_etag(self, key, etag: Optional[str]):
        entry = self._entries.setdefault(_as_key(key), CacheEntry())
        entry.etag = etag

    def is_stale(self, key, stale_time: Optional[float] = None) -> bool:
        """
        An entry is stale when missing, invalidated, or older than stale_time
        seconds. Without a stale_time, data stays fresh until invalidated.
        """
        entry = self._entries.get(_as_key(key))
        if entry is None or entry.stale or entry.updated_at is None:
            return True
        if stale_time is None:
            return False
        return self._clock() - entry.updated_at > stale_time

    def invalidate(self, key_prefix) -> int:
        """
        Mark every key starting with key_prefix as stale.

        Returns:
            Number of entries invalidated
        """
        prefix = _as_key(key_prefix)
        count = 0
        for key, entry in self._entries.items():
            if key[:len(prefix)] == prefix:
                entry.stale = True
                count += 1
                self._notify(key, entry)
        if count:
            logger.debug(f"Invalidated {count} cache entr{'y' if count == 1 else 'ies'} under {prefix}")
        return count

    def remove(self, key_prefix) -> int:
        prefix = _as_key(key_prefix)
        doomed = [key for key in self._entries if key[:len(prefix)] == prefix]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self):
        self._entries.clear()

    # Fetching

    async def fetch_query(self, key, fetcher: Callable[[], Awaitable[Any]],
                          stale_time: Optional[float] = None) -> Any:
        """
        Return fresh cached data, or fetch it.

        Callers asking for the same key while a fetch is running wait on
        that fetch instead of starting another one. If the fetch is
        cancelled through cancel_queries, waiters get whatever the cache
        holds at that point.
        """
        key = _as_key(key)
        entry = self._entries.get(key)
        if entry is not None and not self.is_stale(key, stale_time):
            return entry.data

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_fetch(key, fetcher))
            self._inflight[key] = task
        else:
            logger.debug(f"Joining in-flight fetch for {key}")

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return self.get_query_data(key)
            raise

    async def _run_fetch(self, key: QueryKey, fetcher):
        current = asyncio.current_task()
        try:
            data = await fetcher()
            self.set_query_data(key, data)
            return data
        finally:
            if self._inflight.get(key) is current:
                del self._inflight[key]

    def is_fetching(self, key) -> bool:
        return _as_key(key) in self._inflight

    async def cancel_queries(self, key_prefix, exact: bool = False) -> int:
        """
        Cancel in-flight fetches under key_prefix and wait for them to stop.

        With exact=True only the fetch of key_prefix itself is cancelled,
        not those of longer keys sharing it (such as searches under a list key).

        Returns:
            Number of fetches cancelled
        """
        prefix = _as_key(key_prefix)
        doomed = [(key, task) for key, task in list(self._inflight.items())
                  if (key == prefix if exact else key[:len(prefix)] == prefix)]
        for _, task in doomed:
            task.cancel()
        if doomed:
            await asyncio.gather(*(task for _, task in doomed), return_exceptions=True)
            # A fetch cancelled before it started never reaches its own cleanup
            for key, task in doomed:
                if self._inflight.get(key) is task:
                    del self._inflight[key]
            logger.debug(f"Cancelled {len(doomed)} in-flight fetch(es) under {prefix}")
        return len(doomed)

    # Subscriptions

    def subscribe(self, callback: Callable[[QueryKey, CacheEntry], None]) -> Callable[[], None]:
        """
        Call callback(key, entry) on every write or invalidation.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, key: QueryKey, entry: CacheEntry):
        for callback in list(self._subscribers):
            try:
                callback(key, entry)
            except Exception as e:
                logger.warning(f"Cache subscriber failed for {key}: {e}")
