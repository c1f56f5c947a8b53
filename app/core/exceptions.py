"""Domain errors for the persistence engine and the HTTP exceptions they map to."""

from typing import Optional
from fastapi import HTTPException

AUTH_REQUIRED = "AUTH_REQUIRED"
PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
INVALID_PROJECT_FILE = "INVALID_PROJECT_FILE"


class PersistenceError(Exception):
    """Base class for persistence engine errors."""


class AuthenticationRequired(PersistenceError):
    """No authenticated user: the whole save is refused before any write."""


class ProjectAccessDenied(PersistenceError):
    """The project exists but belongs to another user."""


class BlobStoreError(PersistenceError):
    """A blob-store call (upload, move, list, delete) failed."""


class InvalidProjectBundle(PersistenceError):
    """An imported project file failed validation."""


class TransientMediaError(PersistenceError):
    """A transient media reference could not be read (bad data URI, missing file)."""


def not_authenticated_exception(message: Optional[str] = None) -> HTTPException:
    """Raise 401 with body for the frontend's sign-in redirect."""
    return HTTPException(
        status_code=401,
        detail={
            "code": AUTH_REQUIRED,
            "message": message or "Not authenticated",
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def project_not_found_exception(project_id: str) -> HTTPException:
    """Raise 404 with body when a project has no stored rows."""
    return HTTPException(
        status_code=404,
        detail={
            "code": PROJECT_NOT_FOUND,
            "projectId": project_id,
            "message": "Project not found.",
        },
    )


def invalid_bundle_exception(message: str) -> HTTPException:
    """Raise 422 when an uploaded project file does not validate."""
    return HTTPException(
        status_code=422,
        detail={
            "code": INVALID_PROJECT_FILE,
            "message": message,
        },
    )
