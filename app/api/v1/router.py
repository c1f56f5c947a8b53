"""API v1 router: include all route modules, GET /me."""

from fastapi import APIRouter

from app.api.v1 import assets, projects
from app.dependencies import CurrentUserId

api_router = APIRouter()

api_router.include_router(projects.router)
api_router.include_router(assets.router)


@api_router.get("/me")
def me(user_id: CurrentUserId):
    """Return the authenticated user id."""
    return {"userId": user_id}
