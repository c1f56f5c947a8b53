"""Delete blobs under a project namespace that the persisted document no longer references."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.core.exceptions import BlobStoreError
from app.services.reachability import collect_reachable
from app.services.storage_service import MAX_DELETE_BATCH

logger = logging.getLogger(__name__)


@dataclass
class GCReport:
    project_id: str
    stored: int = 0
    reachable: int = 0
    orphaned: int = 0
    deleted: int = 0
    failed_batches: int = 0
    aborted: bool = False


class GarbageCollector:
    def __init__(self, store, batch_size: int = MAX_DELETE_BATCH, page_size: int = 1000):
        if not 1 <= batch_size <= MAX_DELETE_BATCH:
            raise ValueError(f"batch_size must be in 1..{MAX_DELETE_BATCH}")
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.codec = store.codec
        self.batch_size = batch_size
        self.page_size = page_size

    async def list_stored(self, project_id: str) -> set[str]:
        prefix = self.codec.namespace_prefix(project_id)
        stored: set[str] = set()
        token = None
        while True:
            page = await self.store.list_page(prefix, self.page_size, token)
            stored.update(p for p in page.paths if self.codec.in_namespace(p, project_id))
            if len(page.paths) < self.page_size or not page.next_token:
                return stored
            token = page.next_token

    async def collect(self, project_id: str, document: Any) -> GCReport:
        """
        One GC pass. ``document`` must be the state that was just persisted.

        A listing failure aborts the pass with nothing deleted; a failed delete
        batch is logged and the remaining batches still run.
        """
        report = GCReport(project_id=project_id)
        reachable = collect_reachable(self.codec, project_id, document)
        report.reachable = len(reachable)
        try:
            stored = await self.list_stored(project_id)
        except BlobStoreError as e:
            logger.warning("GC for project %s aborted, listing failed: %s", project_id, e)
            report.aborted = True
            return report
        report.stored = len(stored)

        orphans = sorted(stored - reachable)
        report.orphaned = len(orphans)
        if not orphans:
            return report

        for start in range(0, len(orphans), self.batch_size):
            batch = orphans[start:start + self.batch_size]
            try:
                await self.store.delete_many(batch)
            except BlobStoreError as e:
                report.failed_batches += 1
                logger.warning(
                    "GC for project %s: delete batch of %d failed: %s", project_id, len(batch), e
                )
                continue
            report.deleted += len(batch)

        logger.info(
            "GC for project %s: %d stored, %d reachable, %d deleted, %d failed batches",
            project_id, report.stored, report.reachable, report.deleted, report.failed_batches,
        )
        return report
