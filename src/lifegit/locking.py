"""Per-branch serialization of mutations."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator


class BranchLocks:
    """Hand out one :class:`asyncio.Lock` per branch id.

    Mutations of the same branch queue behind each other while different
    branches proceed concurrently. Reads never take a lock.
    """

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, branch_id: str) -> asyncio.Lock:
        return self._locks[branch_id]

    @asynccontextmanager
    async def hold(self, branch_id: str) -> AsyncIterator[None]:
        async with self.lock_for(branch_id):
            yield

    def is_locked(self, branch_id: str) -> bool:
        lock = self._locks.get(branch_id)
        return bool(lock and lock.locked())

    def discard(self, branch_id: str) -> None:
        lock = self._locks.get(branch_id)
        if lock is not None and not lock.locked():
            del self._locks[branch_id]


__all__ = ["BranchLocks"]
