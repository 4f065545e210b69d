"""Roadmap version model."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_engine.core.database import Base


class RoadmapStatus(str, Enum):
    """Lifecycle state of a roadmap version."""

    DRAFT = "DRAFT"
    FINAL = "FINAL"
    ARCHIVED = "ARCHIVED"


class RoadmapVersion(Base):
    """One generated curriculum version for a project."""

    __tablename__ = "roadmap_versions"
    __table_args__ = (
        UniqueConstraint("project_id", "version_number", name="uq_roadmap_versions_number"),
        # At most one FINAL per project, enforced by the database
        Index(
            "uq_roadmap_versions_one_final",
            "project_id",
            unique=True,
            sqlite_where=text("status = 'FINAL'"),
            postgresql_where=text("status = 'FINAL'"),
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), index=True)

    version_number: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String, default=RoadmapStatus.DRAFT.value)

    # Generated content
    diagnosis_summary: Mapped[str] = mapped_column(Text, default="")
    roadmap_matrix: Mapped[list] = mapped_column(JSON, default=list)
    pbl_course: Mapped[dict | None] = mapped_column(JSON, default=None)
    courses: Mapped[list] = mapped_column(JSON, default=list)
    revision_prompt: Mapped[str | None] = mapped_column(Text, default=None)
    consultant_profile_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)

    # Validation (computed from courses, never authored)
    free_tool_validated: Mapped[bool] = mapped_column(Boolean, default=False)
    time_limit_validated: Mapped[bool] = mapped_column(Boolean, default=False)
    validation_errors: Mapped[list] = mapped_column(JSON, default=list)
    validation_warnings: Mapped[list] = mapped_column(JSON, default=list)

    # Export of the FINAL rendering
    export_path: Mapped[str | None] = mapped_column(String, default=None)

    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), default=None)
    finalized_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
