"""Background blob sweeps: GC for idle projects, namespace purge for deleted ones."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict
from typing import Optional

from app.config import get_settings
from app.db.base import create_engine_for, create_session_factory
from app.services.project_store import ProjectStore
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _with_store(fn):
    # Each task run gets its own engine: asyncpg pools are bound to one event loop.
    settings = get_settings()
    engine = create_engine_for(settings.async_database_url)
    try:
        store = ProjectStore.from_settings(settings, session_factory=create_session_factory(engine))
        return await fn(store)
    finally:
        await engine.dispose()


async def sweep_if_idle(store: ProjectStore, project_id: str, min_idle_seconds: float) -> Optional[dict]:
    """
    GC against the stored state, but only for projects nobody saved recently.
    A save in flight elsewhere may have uploaded blobs its rows do not reference yet.
    """
    document = await store.sync.load(project_id)
    if document is not None:
        last_ms = document.get("lastModified") or 0
        idle = time.time() - last_ms / 1000
        if idle < min_idle_seconds:
            logger.info("Sweep of project %s skipped: saved %.0fs ago", project_id, idle)
            return None
    report = await store.sweep(project_id)
    return asdict(report) if report else None


async def purge_namespace(store: ProjectStore, project_id: str) -> Optional[dict]:
    """Delete every blob under a project's namespace once its rows are gone."""
    if await store.sync.project_owner(project_id) is not None:
        logger.warning("Refusing to purge blobs of live project %s", project_id)
        return None
    report = await store.collector.collect(project_id, {})
    return asdict(report)


@celery_app.task(bind=True, autoretry_for=(Exception,), retry_backoff=True, max_retries=3)
def sweep_project_blobs(self, project_id: str):
    settings = get_settings()
    return asyncio.run(
        _with_store(lambda store: sweep_if_idle(store, project_id, settings.sweep_min_idle_seconds))
    )


@celery_app.task(bind=True, autoretry_for=(Exception,), retry_backoff=True, max_retries=3)
def purge_project_blobs(self, project_id: str):
    return asyncio.run(_with_store(lambda store: purge_namespace(store, project_id)))
