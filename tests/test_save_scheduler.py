import asyncio
import logging

import pytest

from app.core.exceptions import AuthenticationRequired
from app.services.save_scheduler import PersistenceScheduler


class RecordingSave:
    def __init__(self, duration=0.0, error=None):
        self.duration = duration
        self.error = error
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, project_id, document, user_id):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.duration)
            if self.error is not None:
                raise self.error
            self.calls.append((project_id, document["rev"], user_id))
            return document["rev"]
        finally:
            self.active -= 1


async def test_burst_is_coalesced_into_latest_document():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=0.05)

    for rev in range(5):
        scheduler.schedule_save("p1", {"rev": rev}, "user-1")
    await asyncio.sleep(0.2)

    assert save.calls == [("p1", 4, "user-1")]
    assert scheduler.pending_projects == set()


async def test_new_edit_restarts_the_quiet_window():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=0.1)

    scheduler.schedule_save("p1", {"rev": 1}, "user-1")
    await asyncio.sleep(0.06)
    scheduler.schedule_save("p1", {"rev": 2}, "user-1")
    await asyncio.sleep(0.06)
    assert save.calls == []

    await asyncio.sleep(0.1)
    assert save.calls == [("p1", 2, "user-1")]


async def test_projects_are_debounced_independently():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=0.03)

    scheduler.schedule_save("p1", {"rev": 1}, "user-1")
    scheduler.schedule_save("p2", {"rev": 7}, "user-1")
    await asyncio.sleep(0.1)

    assert sorted(save.calls) == [("p1", 1, "user-1"), ("p2", 7, "user-1")]


async def test_scheduled_document_is_a_snapshot():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=0.02)
    document = {"rev": 1}

    scheduler.schedule_save("p1", document, "user-1")
    document["rev"] = 99
    await asyncio.sleep(0.08)

    assert save.calls == [("p1", 1, "user-1")]


async def test_save_now_bypasses_the_window():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=10)

    scheduler.schedule_save("p1", {"rev": 1}, "user-1")
    result = await scheduler.save_now("p1", {"rev": 2}, "user-1")

    assert result == 2
    assert save.calls == [("p1", 2, "user-1")]
    assert scheduler.pending_projects == set()


async def test_saves_for_one_project_never_overlap():
    save = RecordingSave(duration=0.05)
    scheduler = PersistenceScheduler(save, delay=10)

    results = await asyncio.gather(
        scheduler.save_now("p1", {"rev": 1}, "user-1"),
        scheduler.save_now("p1", {"rev": 2}, "user-1"),
        scheduler.save_now("p1", {"rev": 3}, "user-1"),
    )

    assert save.max_active == 1
    # rev 2 was superseded while rev 1 was still being written.
    assert [rev for _, rev, _ in save.calls] == [1, 3]
    assert results == [1, 3, None]
    assert len(scheduler._locks) == 0


async def test_different_projects_save_concurrently():
    save = RecordingSave(duration=0.05)
    scheduler = PersistenceScheduler(save, delay=10)

    await asyncio.gather(
        scheduler.save_now("p1", {"rev": 1}, "user-1"),
        scheduler.save_now("p2", {"rev": 1}, "user-1"),
    )

    assert save.max_active == 2
    assert len(scheduler._locks) == 0


async def test_missing_user_is_refused_up_front():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=0.01)

    with pytest.raises(AuthenticationRequired):
        scheduler.schedule_save("p1", {"rev": 1}, None)
    with pytest.raises(AuthenticationRequired):
        await scheduler.save_now("p1", {"rev": 1}, "")

    assert scheduler.pending_projects == set()
    assert save.calls == []


async def test_cancel_drops_the_pending_save():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=0.02)

    scheduler.schedule_save("p1", {"rev": 1}, "user-1")
    scheduler.cancel("p1")
    await asyncio.sleep(0.06)

    assert save.calls == []


async def test_flush_all_writes_everything_pending():
    save = RecordingSave()
    scheduler = PersistenceScheduler(save, delay=10)

    scheduler.schedule_save("p1", {"rev": 1}, "user-1")
    scheduler.schedule_save("p2", {"rev": 2}, "user-2")
    await scheduler.flush_all()

    assert sorted(save.calls) == [("p1", 1, "user-1"), ("p2", 2, "user-2")]
    assert scheduler.pending_projects == set()


async def test_failed_background_save_is_logged(caplog):
    save = RecordingSave(error=RuntimeError("database gone"))
    scheduler = PersistenceScheduler(save, delay=0.01)

    with caplog.at_level(logging.ERROR, logger="app.services.save_scheduler"):
        scheduler.schedule_save("p1", {"rev": 1}, "user-1")
        await asyncio.sleep(0.05)

    assert "Scheduled save for project p1 failed" in caplog.text
    assert scheduler.pending_projects == set()
