"""Per-project asset collections: characters, outfits, image library."""

from fastapi import APIRouter, HTTPException, status

from app.api.v1.projects import require_project
from app.dependencies import CurrentUserId, Store
from app.schemas.project import CharacterSchema, LibraryImageSchema, OutfitSchema, dump_document

router = APIRouter(prefix="/projects/{project_id}", tags=["assets"])


@router.get("/characters")
async def list_characters(project_id: str, user_id: CurrentUserId, store: Store):
    await require_project(store, project_id, user_id)
    return await store.get_characters(project_id)


@router.put("/characters")
async def replace_characters(project_id: str, body: list[CharacterSchema], user_id: CurrentUserId, store: Store):
    """Replace the cast; characters missing from the body are deleted."""
    await require_project(store, project_id, user_id)
    return await store.save_characters(project_id, [dump_document(c) for c in body], user_id)


@router.get("/outfits")
async def list_outfits(project_id: str, user_id: CurrentUserId, store: Store):
    await require_project(store, project_id, user_id)
    return await store.get_outfits(project_id)


@router.put("/outfits")
async def replace_outfits(project_id: str, body: list[OutfitSchema], user_id: CurrentUserId, store: Store):
    await require_project(store, project_id, user_id)
    return await store.save_outfits(project_id, [dump_document(o) for o in body], user_id)


@router.get("/library")
async def list_library(project_id: str, user_id: CurrentUserId, store: Store):
    """Image library, newest first."""
    await require_project(store, project_id, user_id)
    return await store.get_image_library(project_id)


@router.put("/library")
async def replace_library(project_id: str, body: list[LibraryImageSchema], user_id: CurrentUserId, store: Store):
    await require_project(store, project_id, user_id)
    return await store.save_image_library(project_id, [dump_document(i) for i in body], user_id)


@router.post("/library", status_code=status.HTTP_201_CREATED)
async def add_library_images(project_id: str, body: list[LibraryImageSchema], user_id: CurrentUserId, store: Store):
    """Prepend generated images to the library."""
    await require_project(store, project_id, user_id)
    return await store.add_to_image_library(project_id, [dump_document(i) for i in body], user_id)


@router.post("/library/{image_id}/favorite")
async def toggle_favorite(project_id: str, image_id: str, user_id: CurrentUserId, store: Store):
    await require_project(store, project_id, user_id)
    item = await store.toggle_image_favorite(project_id, image_id, user_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return item
