"""Debounced, per-project serialized saves."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Awaitable, Callable, Optional

from app.core.exceptions import AuthenticationRequired, PersistenceError
from app.core.locks import ProjectLocks

logger = logging.getLogger(__name__)

SaveFn = Callable[[str, dict, str], Awaitable[object]]


class PersistenceScheduler:
    """
    schedule_save() coalesces bursts of edits: only the latest document handed in
    for a project is written, once no new one has arrived for ``delay`` seconds.
    save_now() skips the wait (navigation away, shutdown).

    At most one save per project runs at a time, so each run (and the GC pass at
    its end) sees the latest written document. A running save is never cancelled;
    a newer document is simply written after it.
    """

    def __init__(self, save: SaveFn, delay: float = 1.0):
        self._save = save
        self.delay = delay
        self._pending: dict[str, tuple[dict, str]] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._locks = ProjectLocks()

    @property
    def pending_projects(self) -> set[str]:
        return set(self._pending)

    def _stage(self, project_id: str, document: dict, user_id: Optional[str]) -> None:
        if not user_id:
            raise AuthenticationRequired("a signed-in user is required to save")
        # Own a copy: the caller keeps editing its document after handing it over.
        self._pending[project_id] = (copy.deepcopy(document), user_id)

    def _cancel_timer(self, project_id: str) -> None:
        timer = self._timers.pop(project_id, None)
        if timer is not None:
            timer.cancel()

    def schedule_save(self, project_id: str, document: dict, user_id: Optional[str]) -> None:
        self._stage(project_id, document, user_id)
        self._cancel_timer(project_id)
        self._timers[project_id] = asyncio.get_running_loop().create_task(
            self._run_later(project_id), name=f"save:{project_id}"
        )

    async def save_now(self, project_id: str, document: dict, user_id: Optional[str]):
        self._stage(project_id, document, user_id)
        self._cancel_timer(project_id)
        return await self._flush(project_id)

    def cancel(self, project_id: str) -> None:
        self._cancel_timer(project_id)
        self._pending.pop(project_id, None)

    async def flush_all(self) -> None:
        for project_id in list(self._pending):
            self._cancel_timer(project_id)
            try:
                await self._flush(project_id)
            except PersistenceError as e:
                logger.warning("Pending save for project %s dropped: %s", project_id, e)

    async def _run_later(self, project_id: str) -> None:
        await asyncio.sleep(self.delay)
        # Past the quiescence window: from here on this save is no longer cancellable.
        if self._timers.get(project_id) is asyncio.current_task():
            del self._timers[project_id]
        try:
            await self._flush(project_id)
        except PersistenceError as e:
            logger.warning("Scheduled save for project %s refused: %s", project_id, e)
        except Exception:
            logger.exception("Scheduled save for project %s failed", project_id)

    async def _flush(self, project_id: str):
        async with self._locks.hold(project_id):
            entry = self._pending.pop(project_id, None)
            if entry is None:
                # A save that ran while we waited already wrote the latest document.
                return None
            document, user_id = entry
            return await self._save(project_id, document, user_id)
