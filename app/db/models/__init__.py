"""SQLAlchemy models - import all for Alembic and relationships."""

from app.db.base import Base
from app.db.models.project import Project, Script
from app.db.models.scene import Scene, Shot
from app.db.models.asset import Character, Outfit, LibraryImage

__all__ = [
    "Base",
    "Project",
    "Script",
    "Scene",
    "Shot",
    "Character",
    "Outfit",
    "LibraryImage",
]
