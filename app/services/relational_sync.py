"""Reconcile a project document with its relational rows: prune orphans, upsert survivors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import Table, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.casing import to_app_case, to_wire_case
from app.db.models.asset import Character, LibraryImage, Outfit
from app.db.models.project import Project, Script
from app.db.models.scene import Scene, Shot

logger = logging.getLogger(__name__)

# Never a real entity id: keeps the NOT IN list non-empty so an empty
# collection prunes every row instead of producing a malformed IN ().
SENTINEL_ID = "00000000-0000-0000-0000-000000000000"

UPSERT_CHUNK = 500


@dataclass(frozen=True)
class CollectionSpec:
    """How one document collection maps onto a table: declared columns, the rest goes to metadata."""

    key: str  # application document key
    table: Table
    columns: tuple[str, ...]
    int_columns: tuple[str, ...] = ()
    bool_columns: tuple[str, ...] = ()
    defaults: dict = field(default_factory=dict)


SCENES = CollectionSpec(
    key="scenes",
    table=Scene.__table__,
    columns=("sequence", "heading", "action_notes", "location_id", "script_elements"),
    int_columns=("sequence",),
    defaults={"sequence": 0, "heading": ""},
)
SHOTS = CollectionSpec(
    key="shots",
    table=Shot.__table__,
    columns=("scene_id", "sequence", "shot_type", "description", "dialogue", "camera_movement"),
    int_columns=("sequence",),
    defaults={"sequence": 0},
)
CHARACTERS = CollectionSpec(
    key="characters",
    table=Character.__table__,
    columns=("name", "description", "image_url", "reference_photos"),
    defaults={"name": ""},
)
OUTFITS = CollectionSpec(
    key="outfits",
    table=Outfit.__table__,
    columns=("character_id", "name", "description", "reference_photos"),
    defaults={"name": ""},
)
LIBRARY = CollectionSpec(
    key="imageLibrary",
    table=LibraryImage.__table__,
    columns=("url", "shot_id", "prompt", "is_favorite", "created_at"),
    int_columns=("created_at",),
    bool_columns=("is_favorite",),
    defaults={"url": "", "is_favorite": False},
)

# Scenes before shots so shot.scene_id always points at a written scene.
DOCUMENT_COLLECTIONS = (SCENES, SHOTS)
ASSET_COLLECTIONS = {spec.key: spec for spec in (CHARACTERS, OUTFITS, LIBRARY)}


@dataclass
class SyncReport:
    project_id: str
    deleted: dict[str, int] = field(default_factory=dict)
    upserted: dict[str, int] = field(default_factory=dict)
    failed_tables: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_tables


def _coerce(spec: CollectionSpec, column: str, value: Any) -> Any:
    if value is None:
        return spec.defaults.get(column)
    if column in spec.int_columns:
        try:
            return int(value)
        except (TypeError, ValueError):
            return spec.defaults.get(column)
    if column in spec.bool_columns:
        return bool(value)
    return value


def flatten(spec: CollectionSpec, project_id: str, item: dict) -> dict:
    """Application entity -> row: declared columns plus one opaque metadata mapping."""
    wire = to_wire_case(item)
    row = {"id": str(wire.pop("id")), "project_id": project_id}
    wire.pop("project_id", None)
    for column in spec.columns:
        row[column] = _coerce(spec, column, wire.pop(column, None))
    row["metadata"] = wire
    return row


def unflatten(spec: CollectionSpec, row: dict) -> dict:
    """Row -> application entity. Declared columns win over same-named metadata keys."""
    data = dict(row.get("metadata") or {})
    for column in spec.columns:
        value = row.get(column)
        if value is not None:
            data[column] = value
    data["id"] = row["id"]
    return to_app_case(data)


def _entities(spec: CollectionSpec, items: Any) -> list[dict]:
    """Mappings with an id, de-duplicated by id (last one wins). Anything else is skipped."""
    by_id: dict[str, dict] = {}
    for item in items or []:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            logger.warning("Skipping %s entry without an id: %r", spec.key, type(item).__name__)
            continue
        by_id[str(item["id"])] = item
    return list(by_id.values())


def _epoch_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class RelationalSync:
    """
    Best-effort, non-atomic across tables: each table is its own transaction.
    A failing table is logged, rolled back and reported; the rest are still written.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    def _insert(self, session: AsyncSession, table: Table):
        dialect = session.bind.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table)
        if dialect == "sqlite":
            return sqlite.insert(table)
        raise NotImplementedError(f"upsert not supported for dialect {dialect!r}")

    async def _upsert(
        self,
        session: AsyncSession,
        table: Table,
        rows: list[dict],
        conflict: str = "id",
        immutable: tuple[str, ...] = (),
    ) -> int:
        """Insert-or-update by primary key; never takes over a row owned by another project."""
        for start in range(0, len(rows), UPSERT_CHUNK):
            chunk = rows[start:start + UPSERT_CHUNK]
            stmt = self._insert(session, table).values(chunk)
            updates = {
                name: stmt.excluded[name]
                for name in chunk[0]
                if name != conflict and name not in immutable
            }
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c[conflict]],
                set_=updates,
                where=table.c.project_id == stmt.excluded.project_id,
            )
            await session.execute(stmt)
        return len(rows)

    async def _prune(self, session: AsyncSession, table: Table, project_id: str, keep: list[str]) -> int:
        ids = keep or [SENTINEL_ID]
        result = await session.execute(
            delete(table).where(table.c.project_id == project_id, table.c.id.not_in(ids))
        )
        return result.rowcount or 0

    async def _unit(
        self,
        report: SyncReport,
        name: str,
        work: Callable[[AsyncSession], Awaitable[None]],
    ) -> None:
        async with self.session_factory() as session:
            try:
                await work(session)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                report.failed_tables.append(name)
                logger.error("Sync of %s for project %s failed: %s", name, report.project_id, e, exc_info=True)

    # ---- write paths ----

    async def sync(self, project_id: str, document: dict, user_id: str) -> SyncReport:
        report = SyncReport(project_id=project_id)
        now = datetime.now(timezone.utc)

        async def write_project(session: AsyncSession) -> None:
            row = {
                "id": project_id,
                "user_id": user_id,
                "name": document.get("name") or "Untitled",
                "settings": to_wire_case(document.get("settings") or {}),
                "title_page": to_wire_case(document.get("titlePage")),
                "created_at": now,
                "last_synced": now,
            }
            table = Project.__table__
            stmt = self._insert(session, table).values(row)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.id],
                set_={k: stmt.excluded[k] for k in ("name", "settings", "title_page", "last_synced")},
            )
            await session.execute(stmt)
            report.upserted["projects"] = 1

        async def write_script(session: AsyncSession) -> None:
            row = {
                "id": project_id,
                "project_id": project_id,
                "content": to_wire_case(list(document.get("scriptElements") or [])),
                "last_saved": now,
            }
            await self._upsert(session, Script.__table__, [row], conflict="project_id", immutable=("id",))
            report.upserted["scripts"] = 1

        await self._unit(report, "projects", write_project)
        if "projects" in report.failed_tables:
            # Every other row hangs off the project row.
            return report
        await self._unit(report, "scripts", write_script)
        for spec in DOCUMENT_COLLECTIONS:
            await self._sync_spec(report, spec, document.get(spec.key))
        return report

    async def _sync_spec(self, report: SyncReport, spec: CollectionSpec, items: Any) -> None:
        project_id = report.project_id
        entities = _entities(spec, items)
        rows = [flatten(spec, project_id, e) for e in entities]

        async def work(session: AsyncSession) -> None:
            report.deleted[spec.table.name] = await self._prune(
                session, spec.table, project_id, [r["id"] for r in rows]
            )
            report.upserted[spec.table.name] = await self._upsert(session, spec.table, rows) if rows else 0

        await self._unit(report, spec.table.name, work)

    async def sync_collection(self, project_id: str, key: str, items: Any) -> SyncReport:
        report = SyncReport(project_id=project_id)
        await self._sync_spec(report, ASSET_COLLECTIONS[key], items)
        return report

    async def delete_project(self, project_id: str) -> bool:
        """Remove the project and every dependent row. Children first: SQLite does not cascade by default."""
        tables = [spec.table for spec in ASSET_COLLECTIONS.values()]
        tables += [Shot.__table__, Scene.__table__, Script.__table__]
        async with self.session_factory() as session:
            for table in tables:
                await session.execute(delete(table).where(table.c.project_id == project_id))
            result = await session.execute(delete(Project.__table__).where(Project.__table__.c.id == project_id))
            await session.commit()
        return bool(result.rowcount)

    # ---- read paths ----

    async def project_owner(self, project_id: str) -> Optional[str]:
        async with self.session_factory() as session:
            return await session.scalar(select(Project.user_id).where(Project.id == project_id))

    async def list_projects(self, user_id: str) -> list[dict]:
        shot_counts = (
            select(Shot.project_id, func.count().label("n")).group_by(Shot.project_id).subquery()
        )
        character_counts = (
            select(Character.project_id, func.count().label("n")).group_by(Character.project_id).subquery()
        )
        stmt = (
            select(
                Project,
                func.coalesce(shot_counts.c.n, 0),
                func.coalesce(character_counts.c.n, 0),
            )
            .outerjoin(shot_counts, shot_counts.c.project_id == Project.id)
            .outerjoin(character_counts, character_counts.c.project_id == Project.id)
            .where(Project.user_id == user_id)
            .order_by(Project.last_synced.desc())
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return [
            {
                "id": p.id,
                "name": p.name,
                "createdAt": _epoch_ms(p.created_at),
                "lastModified": _epoch_ms(p.last_synced),
                "shotCount": shots,
                "characterCount": characters,
            }
            for p, shots, characters in rows
        ]

    async def _load_rows(self, session: AsyncSession, spec: CollectionSpec, project_id: str) -> list[dict]:
        table = spec.table
        order = [table.c.sequence, table.c.id] if "sequence" in table.c else [table.c.id]
        result = await session.execute(select(table).where(table.c.project_id == project_id).order_by(*order))
        return [unflatten(spec, dict(row)) for row in result.mappings().all()]

    async def load(self, project_id: str) -> Optional[dict]:
        """Stored rows -> application document, or None when the project row does not exist."""
        async with self.session_factory() as session:
            project = await session.get(Project, project_id)
            if project is None:
                return None
            content = await session.scalar(select(Script.content).where(Script.project_id == project_id))
            scenes = await self._load_rows(session, SCENES, project_id)
            shots = await self._load_rows(session, SHOTS, project_id)
        return {
            "id": project.id,
            "name": project.name,
            "settings": to_app_case(project.settings or {}),
            "titlePage": to_app_case(project.title_page),
            "scriptElements": to_app_case(content or []),
            "scenes": scenes,
            "shots": shots,
            "createdAt": _epoch_ms(project.created_at),
            "lastModified": _epoch_ms(project.last_synced),
        }

    async def load_collection(self, project_id: str, key: str) -> list[dict]:
        spec = ASSET_COLLECTIONS[key]
        async with self.session_factory() as session:
            return await self._load_rows(session, spec, project_id)
