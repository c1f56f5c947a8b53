"""Project persistence pipeline: make media durable, write rows, then collect unreachable blobs."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import Settings, get_settings
from app.core.exceptions import (
    AuthenticationRequired,
    BlobStoreError,
    InvalidProjectBundle,
    ProjectAccessDenied,
)
from app.core.locks import ProjectLocks
from app.db.base import get_session_factory
from app.schemas.project import BUNDLE_VERSION, DEFAULT_WORLD_SETTINGS, ProjectBundle, dump_document
from app.services.blob_persistence import BlobPersistence
from app.services.garbage_collector import GarbageCollector, GCReport
from app.services.relational_sync import ASSET_COLLECTIONS, RelationalSync, SyncReport
from app.services.storage_service import S3BlobStore

logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    project_id: str
    document: Any
    sync: SyncReport
    gc: Optional[GCReport] = None


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthenticationRequired("a signed-in user is required to save")
    return user_id


def heal_document(document: dict) -> dict:
    """Fill defaults older saves lack; give scene-less projects one scene holding every shot."""
    healed = dict(document)
    healed["settings"] = {**DEFAULT_WORLD_SETTINGS, **(healed.get("settings") or {})}
    healed["scriptElements"] = list(healed.get("scriptElements") or [])
    shots = list(healed.get("shots") or [])
    scenes = list(healed.get("scenes") or [])
    if not scenes:
        default_id = str(uuid.uuid4())
        scenes = [{"id": default_id, "sequence": 1, "heading": "INT. IMPORTED SCENE - DAY", "actionNotes": ""}]
        shots = [{**s, "sceneId": s.get("sceneId") or default_id} for s in shots]
    healed["scenes"] = scenes
    healed["shots"] = shots
    return healed


class ProjectStore:
    """
    Caller-facing persistence API. Saves are optimistic: blob and row failures are
    logged and reported in the result, never raised. Only a missing or foreign user
    aborts a save, before anything is written.

    Every write for a project (document saves, collection saves, deletes, sweeps)
    runs under that project's lock, so a GC pass never sees an uploaded blob
    before the row that references it.
    """

    def __init__(
        self,
        sync: RelationalSync,
        persistence: BlobPersistence,
        collector: GarbageCollector,
        gc_enabled: bool = True,
    ):
        self.sync = sync
        self.persistence = persistence
        self.collector = collector
        self.gc_enabled = gc_enabled
        self.locks = ProjectLocks()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        session_factory: Optional[async_sessionmaker] = None,
        store=None,
    ) -> "ProjectStore":
        settings = settings or get_settings()
        store = store or S3BlobStore.from_settings(settings)
        return cls(
            sync=RelationalSync(session_factory or get_session_factory()),
            persistence=BlobPersistence(store, media_root=settings.media_root),
            collector=GarbageCollector(
                store,
                batch_size=settings.gc_batch_size,
                page_size=settings.gc_list_page_size,
            ),
            gc_enabled=settings.gc_enabled,
        )

    async def ensure_access(self, project_id: str, user_id: Optional[str]) -> bool:
        """True when the project exists and is owned by ``user_id``; False when it does not exist."""
        _require_user(user_id)
        owner = await self.sync.project_owner(project_id)
        if owner is None:
            return False
        if owner != user_id:
            raise ProjectAccessDenied(project_id)
        return True

    # ---- projects ----

    async def get_project_data(self, project_id: str) -> Optional[dict]:
        document = await self.sync.load(project_id)
        if document is None:
            return None
        return heal_document(document)

    async def save_project_data(self, project_id: str, document: dict, user_id: Optional[str]) -> SaveResult:
        async with self.locks.hold(project_id):
            await self.ensure_access(project_id, user_id)
            durable = await self.persistence.persist_all(project_id, document)
            report = await self.sync.sync(project_id, durable, user_id)
            result = SaveResult(project_id=project_id, document=durable, sync=report)
            if report.ok:
                result.gc = await self.collect_garbage(project_id, durable)
            else:
                # Stored rows may still point at blobs the new document dropped.
                logger.warning(
                    "Skipping GC for project %s: tables failed to sync: %s",
                    project_id, ", ".join(report.failed_tables),
                )
            return result

    async def create_project(self, name: str, user_id: Optional[str]) -> str:
        _require_user(user_id)
        project_id = str(uuid.uuid4())
        document = {
            "id": project_id,
            "name": name,
            "settings": {
                **DEFAULT_WORLD_SETTINGS,
                "customEras": [],
                "customStyles": [],
                "customTimes": [],
                "customLighting": [],
                "customLocations": [],
            },
            "scriptElements": [],
            "scenes": [{"id": str(uuid.uuid4()), "sequence": 1, "heading": "INT. UNTITLED SCENE - DAY", "actionNotes": ""}],
            "shots": [],
        }
        await self.save_project_data(project_id, document, user_id)
        return project_id

    async def list_projects(self, user_id: Optional[str]) -> list[dict]:
        return await self.sync.list_projects(_require_user(user_id))

    async def delete_project(self, project_id: str, user_id: Optional[str]) -> bool:
        async with self.locks.hold(project_id):
            if not await self.ensure_access(project_id, user_id):
                return False
            await self.sync.delete_project(project_id)
            # Nothing is reachable any more: the whole namespace is garbage.
            await self.collector.collect(project_id, {})
            return True

    # ---- export / import ----

    async def export_project(self, project_id: str) -> Optional[dict]:
        """
        Self-contained bundle: project, characters and outfits with every
        stored image inlined as a data URI. None when the project does not exist.
        """
        document = await self.get_project_data(project_id)
        if document is None:
            return None
        characters = await self.get_characters(project_id)
        outfits = await self.get_outfits(project_id)
        portable = await self.persistence.inline_all(
            project_id, {"project": document, "characters": characters, "outfits": outfits}
        )
        return {
            "version": BUNDLE_VERSION,
            "metadata": {
                "id": project_id,
                "name": document.get("name"),
                "createdAt": document.get("createdAt"),
                "lastModified": document.get("lastModified"),
                "shotCount": len(document["shots"]),
                "characterCount": len(characters),
            },
            **portable,
        }

    async def import_project(self, bundle: Any, user_id: Optional[str]) -> str:
        """
        Validate an exported bundle and save it through the normal pipeline, which
        uploads the inlined images again. Keeps the bundle's project id unless it
        belongs to another user, in which case the project gets a fresh id.
        """
        _require_user(user_id)
        try:
            data = ProjectBundle.model_validate(bundle)
        except ValidationError as e:
            raise InvalidProjectBundle(f"invalid project file: {e.error_count()} problems") from e
        if data.version > BUNDLE_VERSION:
            raise InvalidProjectBundle(f"unsupported project file version {data.version}")

        document = heal_document(dump_document(data.project))
        project_id = document.get("id") or str(uuid.uuid4())
        try:
            await self.ensure_access(project_id, user_id)
        except ProjectAccessDenied:
            project_id = str(uuid.uuid4())
        document["id"] = project_id

        await self.save_project_data(project_id, document, user_id)
        await self.save_characters(project_id, [dump_document(c) for c in data.characters], user_id)
        await self.save_outfits(project_id, [dump_document(o) for o in data.outfits], user_id)
        logger.info("Imported project %s (bundle version %d)", project_id, data.version)
        return project_id

    # ---- garbage collection ----

    async def reachable_state(self, project_id: str, document: Any) -> dict:
        """Everything whose blobs must survive: the project document plus its stored asset collections."""
        state = {"project": document}
        for key in ASSET_COLLECTIONS:
            state[key] = await self.sync.load_collection(project_id, key)
        return state

    async def collect_garbage(self, project_id: str, document: Any) -> Optional[GCReport]:
        """GC against ``document``; the caller holds the project's lock."""
        if not self.gc_enabled:
            return None
        try:
            state = await self.reachable_state(project_id, document)
            return await self.collector.collect(project_id, state)
        except (SQLAlchemyError, BlobStoreError) as e:
            logger.warning("GC for project %s skipped: %s", project_id, e)
            return None

    async def sweep(self, project_id: str) -> Optional[GCReport]:
        """GC against whatever is currently stored (background sweeps)."""
        async with self.locks.hold(project_id):
            document = await self.sync.load(project_id)
            if document is None:
                return await self.collector.collect(project_id, {})
            return await self.collect_garbage(project_id, document)

    # ---- narrower collections: persist media, then prune/upsert, no GC ----

    async def _get_collection(self, project_id: str, key: str) -> list[dict]:
        return await self.sync.load_collection(project_id, key)

    async def _write_collection(self, project_id: str, key: str, items: list, user_id: Optional[str]) -> list:
        # Caller holds the project's lock.
        await self.ensure_access(project_id, user_id)
        durable = await self.persistence.persist_all(project_id, list(items))
        await self.sync.sync_collection(project_id, key, durable)
        return durable

    async def _save_collection(self, project_id: str, key: str, items: list, user_id: Optional[str]) -> list:
        async with self.locks.hold(project_id):
            return await self._write_collection(project_id, key, items, user_id)

    async def get_characters(self, project_id: str) -> list[dict]:
        return await self._get_collection(project_id, "characters")

    async def save_characters(self, project_id: str, characters: list, user_id: Optional[str]) -> list:
        return await self._save_collection(project_id, "characters", characters, user_id)

    async def get_outfits(self, project_id: str) -> list[dict]:
        return await self._get_collection(project_id, "outfits")

    async def save_outfits(self, project_id: str, outfits: list, user_id: Optional[str]) -> list:
        return await self._save_collection(project_id, "outfits", outfits, user_id)

    async def get_image_library(self, project_id: str) -> list[dict]:
        items = await self._get_collection(project_id, "imageLibrary")
        # Newest first, like the client's library view.
        return sorted(items, key=lambda i: i.get("createdAt") or 0, reverse=True)

    async def save_image_library(self, project_id: str, items: list, user_id: Optional[str]) -> list:
        return await self._save_collection(project_id, "imageLibrary", items, user_id)

    async def add_to_image_library(self, project_id: str, items: list, user_id: Optional[str]) -> list:
        async with self.locks.hold(project_id):
            current = await self.get_image_library(project_id)
            return await self._write_collection(project_id, "imageLibrary", list(items) + current, user_id)

    async def toggle_image_favorite(self, project_id: str, image_id: str, user_id: Optional[str]) -> Optional[dict]:
        async with self.locks.hold(project_id):
            current = await self.get_image_library(project_id)
            toggled = None
            updated = []
            for item in current:
                if item.get("id") == image_id:
                    item = {**item, "isFavorite": not item.get("isFavorite", False)}
                    toggled = item
                updated.append(item)
            if toggled is None:
                return None
            await self._write_collection(project_id, "imageLibrary", updated, user_id)
            return toggled
