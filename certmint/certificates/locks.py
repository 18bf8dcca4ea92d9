"""Per-certificate asyncio locks.

Serializes coordinator runs for the same certificate inside one process so
that a double-submit does not reach the external services twice. Across
processes the conditional updates in CertificateStore remain the guard.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class CertificateLocks:
    """Lazily created lock per certificate id, dropped when unused."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, certificate_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(certificate_id, asyncio.Lock())
        self._waiters[certificate_id] = self._waiters.get(certificate_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[certificate_id] -= 1
            if self._waiters[certificate_id] == 0:
                del self._waiters[certificate_id]
                del self._locks[certificate_id]

    def __len__(self) -> int:
        return len(self._locks)
