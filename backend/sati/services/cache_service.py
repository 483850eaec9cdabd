# backend/sati/services/cache_service.py
"""
In-process TTL cache for per-user account views.

One instance is shared by the services that read or write a user's payments;
writers invalidate the user's key so the next read recomputes.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from ..core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def account_summary_key(user_id: str) -> str:
    return f"account_summary:{user_id}"


class TTLCache:
    """
    Thread-safe read-through cache with a fixed time-to-live.

    ``clock`` returns seconds and can be replaced in tests.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = (
            float(settings.account_summary_ttl_seconds) if ttl_seconds is None else ttl_seconds
        )
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str, compute: Callable[[], T]) -> T:
        """
        Return the cached value for key, computing and storing it when absent or stale.

        A value computed while the key was invalidated is returned to its caller
        but not stored, so the next read recomputes from the updated ledger.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < self.ttl_seconds:
                self.hits += 1
                return entry[1]
            generation = (self._epoch, self._generations.get(key, 0))
            self.misses += 1

        value = compute()
        with self._lock:
            if (self._epoch, self._generations.get(key, 0)) == generation:
                self._entries[key] = (self._clock(), value)
            else:
                logger.debug(f"Discarded value for {key}: invalidated during compute")
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()
            self._epoch += 1

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() - entry[0] < self.ttl_seconds

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            size = len(self._entries)
        return {"hits": self.hits, "misses": self.misses, "size": size, "ttl": self.ttl_seconds}


# Process-wide instance used by the HTTP layer
account_cache = TTLCache()
