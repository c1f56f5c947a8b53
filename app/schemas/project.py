"""Project document schemas (camelCase, the application convention)."""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_WORLD_SETTINGS: dict[str, Any] = {
    "era": "Modern Day",
    "location": "Urban City Street",
    "timeOfDay": "Golden Hour",
    "lighting": "Naturalistic",
    "cinematicStyle": "Hollywood Blockbuster",
    "aspectRatio": "16:9",
    "variationCount": 1,
    "imageResolution": "2048x2048",
}


class _Open(BaseModel):
    # Producers add fields freely; unknown ones are kept and stored as metadata.
    model_config = ConfigDict(extra="allow")


class WorldSettings(_Open):
    era: Optional[str] = None
    location: Optional[str] = None
    timeOfDay: Optional[str] = None
    lighting: Optional[str] = None
    cinematicStyle: Optional[str] = None
    aspectRatio: Optional[str] = None
    variationCount: Optional[int] = None
    imageResolution: Optional[str] = None
    customEras: Optional[list[str]] = None
    customStyles: Optional[list[str]] = None
    customTimes: Optional[list[str]] = None
    customLighting: Optional[list[str]] = None
    customLocations: Optional[list[str]] = None


class SceneSchema(_Open):
    id: str = Field(min_length=1, max_length=64)
    sequence: int = 0
    heading: str = ""
    actionNotes: Optional[str] = None
    locationId: Optional[str] = None
    scriptElements: Optional[list[Any]] = None


class ShotSchema(_Open):
    id: str = Field(min_length=1, max_length=64)
    sceneId: Optional[str] = None
    sequence: int = 0
    shotType: Optional[str] = None
    description: Optional[str] = None
    dialogue: Optional[str] = None
    cameraMovement: Optional[str] = None
    # Generation fields; stored in the shot's metadata column
    generatedImage: Optional[str] = None
    sketchImage: Optional[str] = None
    referenceImage: Optional[str] = None
    generationCandidates: Optional[list[str]] = None
    model: Optional[str] = None
    aspectRatio: Optional[str] = None


class ProjectDocument(_Open):
    id: Optional[str] = None
    name: str = "Untitled"
    settings: WorldSettings = Field(default_factory=WorldSettings)
    scriptElements: list[Any] = Field(default_factory=list)
    scenes: list[SceneSchema] = Field(default_factory=list)
    shots: list[ShotSchema] = Field(default_factory=list)
    titlePage: Optional[dict[str, Any]] = None


class CharacterSchema(_Open):
    id: str = Field(min_length=1, max_length=64)
    name: str = ""
    description: Optional[str] = None
    imageUrl: Optional[str] = None
    referencePhotos: Optional[list[str]] = None


class OutfitSchema(_Open):
    id: str = Field(min_length=1, max_length=64)
    characterId: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    referencePhotos: Optional[list[str]] = None


class LibraryImageSchema(_Open):
    id: str = Field(min_length=1, max_length=64)
    url: str
    shotId: Optional[str] = None
    prompt: Optional[str] = None
    model: Optional[str] = None
    aspectRatio: Optional[str] = None
    isFavorite: bool = False
    createdAt: Optional[int] = None


class ProjectCreateBody(BaseModel):
    name: str = Field(default="Untitled", max_length=255)


class ProjectSummary(BaseModel):
    id: str
    name: str
    createdAt: Optional[int] = None
    lastModified: Optional[int] = None
    shotCount: int = 0
    characterCount: int = 0


class SaveResponse(BaseModel):
    projectId: str
    failedTables: list[str] = []
    blobsDeleted: int = 0
    document: Optional[dict[str, Any]] = None


def dump_document(body: BaseModel) -> dict[str, Any]:
    """Request model -> plain document, keeping only what the client actually sent."""
    return body.model_dump(mode="json", exclude_unset=True)


BUNDLE_VERSION = 2


class ProjectBundle(BaseModel):
    """Exported project file: project document plus its cast, images inlined as data URIs."""

    version: int = Field(default=1, ge=1)
    metadata: Optional[dict[str, Any]] = None
    project: ProjectDocument
    characters: list[CharacterSchema] = Field(default_factory=list)
    outfits: list[OutfitSchema] = Field(default_factory=list)
