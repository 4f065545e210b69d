"""Pydantic schemas."""

from roadmap_engine.schemas.common import ActionResult
from roadmap_engine.schemas.roadmap import (
    CourseLevel,
    EditOutcome,
    FinalizeOutcome,
    GenerationOutcome,
    MatrixCellEdit,
    PBLCourse,
    PBLModule,
    RoadmapCell,
    RoadmapCreateRequest,
    RoadmapDraft,
    RoadmapManualUpdate,
    RoadmapResult,
    RoadmapRow,
    RoadmapVersionPatch,
    RoadmapVersionRecord,
    ToolInfo,
    ValidationResult,
)

__all__ = [
    "ActionResult",
    "CourseLevel",
    "ToolInfo",
    "RoadmapCell",
    "RoadmapRow",
    "PBLModule",
    "PBLCourse",
    "RoadmapResult",
    "ValidationResult",
    "RoadmapVersionRecord",
    "RoadmapDraft",
    "RoadmapVersionPatch",
    "RoadmapManualUpdate",
    "MatrixCellEdit",
    "RoadmapCreateRequest",
    "GenerationOutcome",
    "EditOutcome",
    "FinalizeOutcome",
]
