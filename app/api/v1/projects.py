"""Projects: create, list, load, save (immediate or debounced), delete, export and import."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Response, status

from app.core.exceptions import (
    InvalidProjectBundle,
    ProjectAccessDenied,
    invalid_bundle_exception,
    project_not_found_exception,
)
from app.dependencies import CurrentUserId, Scheduler, Store
from app.schemas.project import (
    ProjectCreateBody,
    ProjectDocument,
    ProjectSummary,
    SaveResponse,
    dump_document,
)
from app.services.project_store import ProjectStore

router = APIRouter(prefix="/projects", tags=["projects"])


async def require_project(store: ProjectStore, project_id: str, user_id: str, allow_new: bool = False) -> None:
    """404 for projects that do not exist (unless allow_new) or belong to someone else."""
    try:
        exists = await store.ensure_access(project_id, user_id)
    except ProjectAccessDenied:
        raise project_not_found_exception(project_id)
    if not exists and not allow_new:
        raise project_not_found_exception(project_id)


def _document_for(project_id: str, body: ProjectDocument) -> dict:
    document = dump_document(body)
    document["id"] = project_id
    return document


@router.get("", response_model=list[ProjectSummary])
async def list_projects(user_id: CurrentUserId, store: Store):
    """List the current user's projects, most recently saved first."""
    return await store.list_projects(user_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(body: ProjectCreateBody, user_id: CurrentUserId, store: Store):
    """Create a project with default settings and one empty scene."""
    project_id = await store.create_project(body.name, user_id)
    return {"id": project_id}


@router.post("/import", status_code=status.HTTP_201_CREATED)
async def import_project(user_id: CurrentUserId, store: Store, bundle: dict[str, Any] = Body(...)):
    """Import an exported project file. Inlined images are uploaded again under the project."""
    try:
        project_id = await store.import_project(bundle, user_id)
    except InvalidProjectBundle as e:
        raise invalid_bundle_exception(str(e))
    return {"id": project_id}


@router.get("/{project_id}/export")
async def export_project(project_id: str, user_id: CurrentUserId, store: Store):
    await require_project(store, project_id, user_id)
    bundle = await store.export_project(project_id)
    if bundle is None:
        raise project_not_found_exception(project_id)
    return bundle


@router.get("/{project_id}")
async def get_project(project_id: str, user_id: CurrentUserId, store: Store):
    await require_project(store, project_id, user_id)
    document = await store.get_project_data(project_id)
    if document is None:
        raise project_not_found_exception(project_id)
    return document


@router.put("/{project_id}", response_model=SaveResponse)
async def save_project(
    project_id: str,
    body: ProjectDocument,
    user_id: CurrentUserId,
    store: Store,
    scheduler: Scheduler,
):
    """Save now, bypassing the debounce. Returns the document with durable media URLs."""
    await require_project(store, project_id, user_id, allow_new=True)
    result = await scheduler.save_now(project_id, _document_for(project_id, body), user_id)
    if result is None:
        # Coalesced into a save that was already running for this project.
        return SaveResponse(projectId=project_id)
    return SaveResponse(
        projectId=project_id,
        failedTables=result.sync.failed_tables,
        blobsDeleted=result.gc.deleted if result.gc else 0,
        document=result.document,
    )


@router.patch("/{project_id}", status_code=status.HTTP_202_ACCEPTED)
async def schedule_project_save(
    project_id: str,
    body: ProjectDocument,
    user_id: CurrentUserId,
    store: Store,
    scheduler: Scheduler,
):
    """Autosave: written once edits pause for the quiescence window."""
    await require_project(store, project_id, user_id, allow_new=True)
    scheduler.schedule_save(project_id, _document_for(project_id, body), user_id)
    return {"projectId": project_id, "status": "scheduled"}


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: str, user_id: CurrentUserId, store: Store, scheduler: Scheduler):
    await require_project(store, project_id, user_id)
    scheduler.cancel(project_id)
    if not await store.delete_project(project_id, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
