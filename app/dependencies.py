"""FastAPI dependency injection: current user, project store, save scheduler."""

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.exceptions import not_authenticated_exception
from app.core.security import decode_token
from app.services.project_store import ProjectStore
from app.services.save_scheduler import PersistenceScheduler

security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)] = None,
) -> str:
    """Require a valid access token; the user id is its subject."""
    if not credentials or not credentials.credentials:
        raise not_authenticated_exception()
    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise not_authenticated_exception("Invalid or expired token")
    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise not_authenticated_exception("Invalid token")
    return user_id


def get_project_store(request: Request) -> ProjectStore:
    return request.app.state.project_store


def get_save_scheduler(request: Request) -> PersistenceScheduler:
    return request.app.state.save_scheduler


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Store = Annotated[ProjectStore, Depends(get_project_store)]
Scheduler = Annotated[PersistenceScheduler, Depends(get_save_scheduler)]
