import time
from threading import Lock
from typing import Any, Callable

DEFAULT_TTL_SECONDS = 5 * 60


class TTLCache:
    """Small in-process cache whose entries expire after a per-entry TTL."""

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._clock() > expires_at:
                del self._entries[key]
                return None

            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + lifetime)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            stale_keys = [key for key, (_, expires_at) in self._entries.items() if now > expires_at]
            for key in stale_keys:
                del self._entries[key]
        return len(stale_keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


cache = TTLCache()
