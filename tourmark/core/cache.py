"""In-process TTL cache for registry responses."""

from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

DEFAULT_TTL_SECONDS = 3600


def make_key(endpoint: str, params: Mapping[str, Any]) -> str:
    """Stable key from the endpoint and the full parameter set."""
    return endpoint + "?" + json.dumps({k: str(v) for k, v in params.items()}, sort_keys=True, ensure_ascii=False)


class ResponseCache:
    """Entries expire after ``ttl_seconds``; an expired entry is dropped, never served.

    All access holds ``_lock``; each ``put`` sweeps expired entries.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def _expired(self, stored_at: float, now: float) -> bool:
        return self.ttl_seconds > 0 and (now - stored_at) >= self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, payload = entry
            if self._expired(stored_at, self._clock()):
                self._entries.pop(key, None)
                return None
            return payload

    def put(self, key: str, payload: Any) -> None:
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._entries[key] = (now, payload)

    def _purge(self, now: float) -> None:
        expired = [key for key, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
