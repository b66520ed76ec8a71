"""
Per-investment mutual exclusion.

Every operation that reads an investment's ledger and then writes to it
(transition, reconcile, withdraw, approve) runs inside
``investment_locks.hold(investment_id)``.  Two requests for the same
investment are serialised; requests for different investments never wait on
each other.

The locks are process-local (one ``asyncio.Lock`` per key, dropped once no
task holds or awaits it).  Across processes, the ledger's
``(investment_id, period_index, type)`` unique constraint is the backstop.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable

logger = logging.getLogger(__name__)


class KeyedLock:
    """A lazily created ``asyncio.Lock`` per key, with reference counting."""

    def __init__(self, name: str = "keyed"):
        self.name = name
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            if lock.locked():
                logger.debug("Lock '%s' contended for key %s", self.name, key)
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


investment_locks = KeyedLock("investments")
