"""Read-through cache for per-user read views.

Entries are keyed by ``(namespace, user_id)`` and expire after a fixed TTL.
Only read paths (user detail, the owner's loan view) go through it; workflow
transitions always read from the store.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

import cachetools

from components.core import config

settings = config.get_settings()
logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Hashable]


class ReadCache:
    """Per-user TTL cache over ``cachetools.TTLCache``.

    Every ``invalidate`` bumps the user's generation. A load that started
    before an invalidation is returned to its caller but never stored, so a
    write that lands mid-load cannot be masked by the older snapshot.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 10000,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.enabled = enabled
        self._entries: cachetools.TTLCache = cachetools.TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock,
        )
        # One counter per user that has ever been invalidated
        self._generations: Dict[Hashable, int] = {}

    def get(self, key: CacheKey) -> Optional[Any]:
        return self._entries.get(key)

    def set(self, key: CacheKey, value: Any) -> None:
        if not self.enabled:
            return
        self._entries[key] = value

    def generation(self, user_id: Hashable) -> int:
        return self._generations.get(user_id, 0)

    async def get_or_load(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key`` or load, store and return it."""
        if self.enabled:
            value = self.get(key)
            if value is not None:
                return value
        started = self.generation(key[1])
        value = await loader()
        if self.generation(key[1]) == started:
            self.set(key, value)
        else:
            logger.debug("Discarded load of %s invalidated while in flight", key)
        return value

    def invalidate(self, user_id: Hashable) -> None:
        """Drop every entry that belongs to ``user_id``."""
        self._generations[user_id] = self.generation(user_id) + 1
        stale = [key for key in list(self._entries.keys()) if key[1] == user_id]
        for key in stale:
            self._entries.pop(key, None)
        if stale:
            logger.debug("Invalidated %d cache entries for user %s", len(stale), user_id)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)


read_cache = ReadCache(
    settings.CACHE_TTL_SECONDS,
    max_entries=settings.CACHE_MAX_ENTRIES,
    enabled=settings.CACHE_ENABLED,
)
