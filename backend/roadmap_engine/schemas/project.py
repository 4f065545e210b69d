"""Project context schemas fed into roadmap generation."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ConsultantSnapshot(BaseModel):
    """Consultant profile as captured at generation time."""

    model_config = ConfigDict(from_attributes=True)

    expertise_domains: list[str] = Field(default_factory=list)
    teaching_levels: list[str] = Field(default_factory=list)
    coaching_methods: list[str] = Field(default_factory=list)
    skill_tags: list[str] = Field(default_factory=list)


class ProjectContext(BaseModel):
    """Everything the generator knows about a project."""

    project_id: str
    company_name: str
    industry: str | None = None
    company_size: str | None = None
    customer_comment: str | None = None

    assessment_scores: dict[str, Any] = Field(default_factory=dict)
    assessment_summary: str | None = None

    job_tasks: list[Any] = Field(default_factory=list)
    pain_points: list[Any] = Field(default_factory=list)
    constraints: list[Any] = Field(default_factory=list)
    improvement_goals: list[Any] = Field(default_factory=list)
    customer_requirements: str | None = None
    notes: str | None = None

    consultant: ConsultantSnapshot | None = None
