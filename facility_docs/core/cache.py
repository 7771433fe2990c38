import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple


class TTLCache:
    """In-process cache with per-entry expiry.

    The clock is injectable so callers (and tests) decide what "now" means.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    async def get_or_fetch(self, key: str, fetch_fn: Callable[[], Awaitable[Any]], ttl: float) -> Any:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry[0] > now:
            return entry[1]
        value = await fetch_fn()
        self._entries[key] = (self._clock() + ttl, value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry[0] > self._clock()
