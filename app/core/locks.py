"""Per-project asyncio locks that are dropped once nobody holds or waits on them."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ProjectLocks:
    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, project_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        self._users[project_id] = self._users.get(project_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[project_id] -= 1
            if not self._users[project_id]:
                del self._users[project_id]
                del self._locks[project_id]
