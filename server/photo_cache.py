"""Process-wide cache of resolved photo URIs."""
import threading
import time
from typing import Callable, Dict, Optional, Tuple

PhotoKey = Tuple[str, int, Optional[int]]


class PhotoUriCache:
    """Maps ``(photo name, width, height)`` to a photo URI for ``ttl_seconds``.

    Entries are checked for freshness on read and rewritten with a new
    timestamp on every put. Safe to share between request threads.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[PhotoKey, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: PhotoKey) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            uri, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return uri

    def put(self, key: PhotoKey, uri: str) -> None:
        with self._lock:
            self._entries[key] = (uri, self._clock() + self.ttl_seconds)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
