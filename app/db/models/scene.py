"""Scene and Shot models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONType

if TYPE_CHECKING:
    from app.db.models.project import Project


class Scene(Base):
    __tablename__ = "scenes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    heading: Mapped[str] = mapped_column(Text, nullable=False, default="")
    action_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    script_elements: Mapped[Optional[List[Any]]] = mapped_column(JSONType, nullable=True)
    metadata_: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSONType, nullable=True)

    project: Mapped["Project"] = relationship("Project", back_populates="scenes")
    shots: Mapped[List["Shot"]] = relationship(
        "Shot", back_populates="scene", cascade="all, delete-orphan", passive_deletes=True
    )


class Shot(Base):
    __tablename__ = "shots"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scene_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("scenes.id", ondelete="CASCADE"),
        nullable=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shot_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dialogue: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    camera_movement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # AI generation fields (model, aspect ratio, generated image, candidates, ...)
    metadata_: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSONType, nullable=True)

    project: Mapped["Project"] = relationship("Project", back_populates="shots")
    scene: Mapped[Optional["Scene"]] = relationship("Scene", back_populates="shots")
