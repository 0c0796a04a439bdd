import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterator, Protocol

from brandvigilante.core import config


@dataclass
class RateLimitEntry:
    count: int
    window_start: float


class RateLimitStore(Protocol):
    def get(self, identifier: str) -> RateLimitEntry | None: ...

    def set(self, identifier: str, entry: RateLimitEntry) -> None: ...

    def delete(self, identifier: str) -> None: ...

    def items(self) -> Iterator[tuple[str, RateLimitEntry]]: ...


class MemoryRateLimitStore:
    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}

    def get(self, identifier: str) -> RateLimitEntry | None:
        return self._entries.get(identifier)

    def set(self, identifier: str, entry: RateLimitEntry) -> None:
        self._entries[identifier] = entry

    def delete(self, identifier: str) -> None:
        self._entries.pop(identifier, None)

    def items(self) -> Iterator[tuple[str, RateLimitEntry]]:
        return iter(list(self._entries.items()))

    def clear(self) -> None:
        self._entries.clear()


class RateLimiter:
    """Fixed-window attempt counter keyed by an arbitrary identifier (IP, user id)."""

    def __init__(
        self,
        *,
        max_attempts: int = config.LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
        window_seconds: float = config.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.store = store if store is not None else MemoryRateLimitStore()
        self._clock = clock
        self._lock = Lock()

    def check(self, identifier: str) -> bool:
        now = self._clock()
        with self._lock:
            entry = self.store.get(identifier)

            if entry is None or now - entry.window_start > self.window_seconds:
                self.store.set(identifier, RateLimitEntry(count=1, window_start=now))
                return True

            if entry.count >= self.max_attempts:
                return False

            entry.count += 1
            self.store.set(identifier, entry)
            return True

    def reset(self, identifier: str | None = None) -> None:
        with self._lock:
            if identifier is not None:
                self.store.delete(identifier)
                return
            for key, _ in self.store.items():
                self.store.delete(key)

    def cleanup(self) -> int:
        now = self._clock()
        removed = 0
        with self._lock:
            for identifier, entry in self.store.items():
                if now - entry.window_start > self.window_seconds:
                    self.store.delete(identifier)
                    removed += 1
        return removed


login_rate_limiter = RateLimiter()
