"""
TTL Cache
Time-bounded read-through cache owned by the component that uses it.
"""
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """
    Read-through cache with a fixed time-to-live and explicit invalidation.

    A ttl of 0 disables caching; every read goes to the loader.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value for key, loading it if missing or expired."""
        if self.ttl_seconds <= 0:
            self.misses += 1
            return loader()

        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry[0] > now:
            self.hits += 1
            return entry[1]

        self.misses += 1
        value = loader()
        self._entries[key] = (now + self.ttl_seconds, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when no key is given."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
