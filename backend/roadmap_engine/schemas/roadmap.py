"""Roadmap schemas: LLM output shape, stored version shape and edit requests."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roadmap_engine.models.roadmap import RoadmapStatus


class CourseLevel(str, Enum):
    """Proficiency level of a course; value order is the matrix column order."""

    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"

    @property
    def column(self) -> str:
        """Attribute name of this level on a RoadmapRow."""
        return self.value.lower()


class ToolInfo(BaseModel):
    """A tool used by a course, with the free-tier scope it relies on."""

    name: str
    free_tier_info: str = ""


class RoadmapCell(BaseModel):
    """One course of the curriculum."""

    course_name: str
    level: CourseLevel
    target_task: str
    target_audience: str = ""
    recommended_hours: int = Field(ge=0)
    curriculum: list[str] = Field(default_factory=list)
    practice_assignments: list[str] = Field(default_factory=list)
    tools: list[ToolInfo] = Field(default_factory=list)
    expected_outcome: str = ""
    measurement_method: str = ""
    prerequisites: list[str] = Field(default_factory=list)

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> object:
        # Models occasionally answer "beginner" or " Advanced "
        if isinstance(value, str):
            return value.strip().upper()
        return value


class RoadmapRow(BaseModel):
    """Matrix row: the courses for one job task, one cell per level."""

    task_id: str
    task_name: str
    beginner: RoadmapCell | None = None
    intermediate: RoadmapCell | None = None
    advanced: RoadmapCell | None = None

    def cell(self, level: CourseLevel) -> RoadmapCell | None:
        return getattr(self, level.column)


class PBLModule(BaseModel):
    module_name: str
    hours: int = Field(default=0, ge=0)
    description: str = ""
    practice: str = ""
    tools: list[ToolInfo] = Field(default_factory=list)


class PBLCourse(BaseModel):
    """The single project-based-learning course of a roadmap."""

    course_name: str
    total_hours: int = Field(default=0, ge=0)
    target_tasks: list[str] = Field(default_factory=list)
    target_audience: str = ""
    curriculum: list[PBLModule] = Field(default_factory=list)
    expected_outcomes: list[str] = Field(default_factory=list)
    measurement_methods: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)


class RoadmapResult(BaseModel):
    """Structured output requested from the LLM.

    ``roadmap_matrix`` is only a seed from the model; the stored matrix is
    always re-derived from ``courses``.
    """

    diagnosis_summary: str = ""
    roadmap_matrix: list[RoadmapRow] = Field(default_factory=list)
    pbl_course: PBLCourse | None = None
    courses: list[RoadmapCell] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Outcome of the business-rule checks over a course list."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    free_tool_validated: bool
    time_limit_validated: bool


class RoadmapVersionRecord(BaseModel):
    """Typed view of a stored roadmap version."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    version_number: int
    status: RoadmapStatus
    diagnosis_summary: str
    roadmap_matrix: list[RoadmapRow]
    pbl_course: PBLCourse | None
    courses: list[RoadmapCell]
    free_tool_validated: bool
    time_limit_validated: bool
    validation_errors: list[str]
    validation_warnings: list[str]
    revision_prompt: str | None
    consultant_profile_snapshot: dict
    export_path: str | None
    created_by: int | None
    finalized_by: int | None
    created_at: datetime
    updated_at: datetime
    finalized_at: datetime | None

    @property
    def is_valid(self) -> bool:
        return self.free_tool_validated and self.time_limit_validated


class RoadmapDraft(BaseModel):
    """Content of a version about to be created."""

    diagnosis_summary: str
    roadmap_matrix: list[RoadmapRow]
    pbl_course: PBLCourse | None
    courses: list[RoadmapCell]
    validation: ValidationResult
    revision_prompt: str | None = None
    consultant_profile_snapshot: dict = Field(default_factory=dict)
    created_by: int | None = None


class RoadmapVersionPatch(BaseModel):
    """Content fields of a version that may be rewritten; status is not among them."""

    diagnosis_summary: str | None = None
    roadmap_matrix: list[RoadmapRow] | None = None
    pbl_course: PBLCourse | None = None
    courses: list[RoadmapCell] | None = None
    free_tool_validated: bool | None = None
    time_limit_validated: bool | None = None
    validation_errors: list[str] | None = None
    validation_warnings: list[str] | None = None
    export_path: str | None = None


class RoadmapManualUpdate(BaseModel):
    """User edits to a DRAFT version."""

    diagnosis_summary: str | None = None
    roadmap_matrix: list[RoadmapRow] | None = None
    pbl_course: PBLCourse | None = None
    courses: list[RoadmapCell] | None = None


class MatrixCellEdit(BaseModel):
    """Replace (or fill) the course shown at one matrix cell."""

    row_index: int = Field(ge=0)
    level: CourseLevel
    course: RoadmapCell


class RoadmapCreateRequest(BaseModel):
    revision_prompt: str | None = None


class GenerationOutcome(BaseModel):
    roadmap_id: str
    result: RoadmapResult
    validation: ValidationResult


class EditOutcome(BaseModel):
    roadmap_id: str
    validation: ValidationResult


class FinalizeOutcome(BaseModel):
    roadmap_id: str
    archived_roadmap_id: str | None = None
    export_path: str | None = None
    export_error: str | None = None
