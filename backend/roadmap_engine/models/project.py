"""Consulting project models (read-only inputs to roadmap generation)."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_engine.core.database import Base


class ProjectStatus(str, Enum):
    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    DIAGNOSED = "DIAGNOSED"
    INTERVIEWED = "INTERVIEWED"
    ROADMAP_DRAFTED = "ROADMAP_DRAFTED"
    FINALIZED = "FINALIZED"


# Statuses from which a roadmap may be generated
ROADMAP_READY_STATUSES = frozenset(
    {
        ProjectStatus.INTERVIEWED.value,
        ProjectStatus.ROADMAP_DRAFTED.value,
        ProjectStatus.FINALIZED.value,
    }
)


class Project(Base):
    """A company engagement handled by one consultant."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_name: Mapped[str] = mapped_column(String)
    industry: Mapped[str | None] = mapped_column(String)
    company_size: Mapped[str | None] = mapped_column(String)
    customer_comment: Mapped[str | None] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String, default=ProjectStatus.NEW.value)
    assigned_consultant_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class SelfAssessment(Base):
    """Self-diagnosis scores submitted for a project."""

    __tablename__ = "self_assessments"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), index=True)
    scores: Mapped[dict] = mapped_column(JSON, default=dict)
    summary_text: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Interview(Base):
    """Field interview results for a project."""

    __tablename__ = "interviews"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), index=True)

    job_tasks: Mapped[list] = mapped_column(JSON, default=list)
    pain_points: Mapped[list] = mapped_column(JSON, default=list)
    constraints: Mapped[list] = mapped_column(JSON, default=list)
    improvement_goals: Mapped[list] = mapped_column(JSON, default=list)
    customer_requirements: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ConsultantProfile(Base):
    """Consultant expertise used to personalize the roadmap prompt."""

    __tablename__ = "consultant_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True)

    expertise_domains: Mapped[list] = mapped_column(JSON, default=list)
    teaching_levels: Mapped[list] = mapped_column(JSON, default=list)
    coaching_methods: Mapped[list] = mapped_column(JSON, default=list)
    skill_tags: Mapped[list] = mapped_column(JSON, default=list)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
