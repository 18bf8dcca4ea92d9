"""Failed wallet-login throttling.

Counts rejected signatures per client address inside a sliding window and
locks the address out once the threshold is reached. A successful login
clears the address.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

from certmint.core.exceptions import RateLimitedError

log = logging.getLogger(__name__)


@dataclass
class _Attempts:
    failures: int
    window_start: float
    locked_until: float = 0.0


class LoginRateLimiter:
    """In-memory per-address limiter for wallet logins."""

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 900,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, _Attempts] = {}
        self._max_attempts = max_attempts
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = asyncio.Lock()

    async def ensure_allowed(self, client: str) -> None:
        """Raise RateLimitedError if client is locked out."""
        async with self._lock:
            entry = self._entries.get(client)
            if entry is None:
                return
            now = self._clock()
            if entry.locked_until > now:
                raise RateLimitedError(
                    "Too many failed login attempts",
                    retry_after=max(1, int(entry.locked_until - now)),
                )
            if now - entry.window_start > self._window_seconds:
                del self._entries[client]

    async def record_failure(self, client: str) -> None:
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(client)
            if entry is None or now - entry.window_start > self._window_seconds:
                entry = _Attempts(failures=0, window_start=now)
                self._entries[client] = entry
            entry.failures += 1

            if entry.failures >= self._max_attempts:
                entry.locked_until = now + self._window_seconds
                log.warning(
                    f"Login locked for {client}: {entry.failures} failed signatures, "
                    f"{self._window_seconds}s"
                )

    async def record_success(self, client: str) -> None:
        async with self._lock:
            self._entries.pop(client, None)

    async def cleanup(self) -> int:
        """Drop entries whose window and lockout have both lapsed."""
        async with self._lock:
            now = self._clock()
            expired = [
                client for client, entry in self._entries.items()
                if now - entry.window_start > self._window_seconds and entry.locked_until <= now
            ]
            for client in expired:
                del self._entries[client]
            return len(expired)

    @property
    def tracked_clients(self) -> int:
        return len(self._entries)
