"""Manual edits of DRAFT roadmaps.

Edits always land on ``courses``. The matrix is rebuilt from scratch after
every edit and the validation flags are recomputed, so neither can drift
from the course list.
"""

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.core.errors import InvalidStateTransitionError, NotFoundError
from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.roadmap import RoadmapStatus
from roadmap_engine.schemas.roadmap import (
    CourseLevel,
    EditOutcome,
    MatrixCellEdit,
    PBLCourse,
    RoadmapCell,
    RoadmapManualUpdate,
    RoadmapRow,
    RoadmapVersionPatch,
    RoadmapVersionRecord,
)
from roadmap_engine.services import version_store
from roadmap_engine.services.matrix import derive_matrix, find_course_index, task_key
from roadmap_engine.services.validator import validate_roadmap

logger = get_logger(__name__)


def apply_cell_edit(
    courses: Sequence[RoadmapCell],
    task_name: str,
    level: CourseLevel,
    course: RoadmapCell | None,
) -> list[RoadmapCell]:
    """Courses with the (task, level) cell replaced, filled, or cleared.

    The new course is pinned to the cell's task and level. Clearing removes
    every course for that task and level.
    """
    updated = list(courses)
    if course is None:
        key = task_key(task_name)
        return [c for c in updated if not (c.level == level and task_key(c.target_task) == key)]

    pinned = course.model_copy(update={"target_task": task_name, "level": level})
    index = find_course_index(updated, task_name, level)
    if index is None:
        updated.append(pinned)
    else:
        updated[index] = pinned
    return updated


def courses_from_matrix(
    courses: Sequence[RoadmapCell], matrix: Sequence[RoadmapRow]
) -> list[RoadmapCell]:
    """Translate a full matrix submission into course edits.

    Tasks missing from the submission lose their courses; every submitted
    cell is applied with ``apply_cell_edit``.
    """
    submitted = {task_key(row.task_name) for row in matrix}
    updated = [c for c in courses if task_key(c.target_task) in submitted]
    for row in matrix:
        for level in CourseLevel:
            updated = apply_cell_edit(updated, row.task_name, level, row.cell(level))
    return updated


async def _load_draft(db: AsyncSession, roadmap_id: str) -> RoadmapVersionRecord:
    version = await version_store.get_version(db, roadmap_id)
    if version is None:
        raise NotFoundError(f"Roadmap {roadmap_id} not found")
    if version.status != RoadmapStatus.DRAFT:
        raise InvalidStateTransitionError(
            f"Only DRAFT versions can be edited; version {version.version_number} "
            f"is {version.status.value}"
        )
    return version


async def _save(
    db: AsyncSession,
    version: RoadmapVersionRecord,
    *,
    courses: list[RoadmapCell],
    pbl_course: PBLCourse | None,
    diagnosis_summary: str,
    extra_warnings: list[str],
) -> EditOutcome:
    matrix, matrix_warnings = derive_matrix(courses)
    validation = validate_roadmap(courses, pbl_course, diagnosis_summary)
    validation = validation.model_copy(
        update={"warnings": validation.warnings + matrix_warnings + extra_warnings}
    )

    await version_store.update_version(
        db,
        version.id,
        RoadmapVersionPatch(
            diagnosis_summary=diagnosis_summary,
            roadmap_matrix=matrix,
            pbl_course=pbl_course,
            courses=courses,
            free_tool_validated=validation.free_tool_validated,
            time_limit_validated=validation.time_limit_validated,
            validation_errors=validation.errors,
            validation_warnings=validation.warnings,
        ),
        require_status=RoadmapStatus.DRAFT,
    )
    await version_store.commit(db)

    logger.info(
        "Roadmap edited",
        roadmap_id=version.id,
        course_count=len(courses),
        is_valid=validation.is_valid,
    )
    return EditOutcome(roadmap_id=version.id, validation=validation)


async def edit_courses(
    db: AsyncSession,
    roadmap_id: str,
    actor_id: int,
    updates: RoadmapManualUpdate,
) -> EditOutcome:
    """Apply a partial update to a DRAFT.

    ``courses`` wins over ``roadmap_matrix`` when both are supplied.

    Note: This function commits the transaction.
    """
    version = await _load_draft(db, roadmap_id)
    warnings: list[str] = []

    if updates.courses is not None:
        courses = list(updates.courses)
        if updates.roadmap_matrix is not None:
            warnings.append("roadmap_matrix ignored because courses were supplied")
    elif updates.roadmap_matrix is not None:
        courses = courses_from_matrix(version.courses, updates.roadmap_matrix)
    else:
        courses = list(version.courses)

    pbl_course = (
        updates.pbl_course if "pbl_course" in updates.model_fields_set else version.pbl_course
    )
    diagnosis_summary = (
        updates.diagnosis_summary
        if updates.diagnosis_summary is not None
        else version.diagnosis_summary
    )

    logger.debug("Applying manual roadmap update", roadmap_id=roadmap_id, actor_id=actor_id)
    return await _save(
        db,
        version,
        courses=courses,
        pbl_course=pbl_course,
        diagnosis_summary=diagnosis_summary,
        extra_warnings=warnings,
    )


async def edit_matrix_cell(
    db: AsyncSession,
    roadmap_id: str,
    actor_id: int,
    edit: MatrixCellEdit,
) -> EditOutcome:
    """Replace the course shown at one matrix cell (or fill an empty cell).

    Note: This function commits the transaction.
    """
    version = await _load_draft(db, roadmap_id)
    rows, _ = derive_matrix(version.courses)
    if edit.row_index >= len(rows):
        raise NotFoundError(f"Matrix row {edit.row_index} does not exist")

    task_name = rows[edit.row_index].task_name
    courses = apply_cell_edit(version.courses, task_name, edit.level, edit.course)

    logger.debug(
        "Applying matrix cell edit",
        roadmap_id=roadmap_id,
        actor_id=actor_id,
        row_index=edit.row_index,
        level=edit.level.value,
    )
    return await _save(
        db,
        version,
        courses=courses,
        pbl_course=version.pbl_course,
        diagnosis_summary=version.diagnosis_summary,
        extra_warnings=[],
    )
