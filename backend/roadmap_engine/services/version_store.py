"""Versioned roadmap storage.

Rows are converted to ``RoadmapVersionRecord`` as soon as they are read.
This module never changes a version's status; that belongs to the finalizer.
"""

from collections.abc import Collection

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.core.errors import (
    InvalidStateTransitionError,
    NotFoundError,
    PersistenceError,
)
from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.project import Project
from roadmap_engine.models.roadmap import RoadmapStatus, RoadmapVersion
from roadmap_engine.schemas.roadmap import (
    RoadmapDraft,
    RoadmapVersionPatch,
    RoadmapVersionRecord,
)

logger = get_logger(__name__)

MAX_NUMBERING_ATTEMPTS = 3


def to_record(row: RoadmapVersion) -> RoadmapVersionRecord:
    return RoadmapVersionRecord.model_validate(row)


async def commit(db: AsyncSession) -> None:
    """Commit the unit of work, reporting store failures as PersistenceError."""
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Commit failed", error=str(exc))
        raise PersistenceError(f"Failed to save roadmap: {exc}") from exc


async def lock_project(db: AsyncSession, project_id: str) -> Project:
    """Load the project row FOR UPDATE, serializing writers on the same project.

    Databases without row locks (SQLite) ignore the lock clause; there the
    unique constraints on roadmap_versions are the guard.
    """
    result = await db.execute(
        select(Project)
        .where(Project.id == project_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


async def _next_version_number(db: AsyncSession, project_id: str) -> int:
    result = await db.execute(
        select(func.max(RoadmapVersion.version_number)).where(
            RoadmapVersion.project_id == project_id
        )
    )
    return (result.scalar_one_or_none() or 0) + 1


async def create_version(
    db: AsyncSession,
    project_id: str,
    draft: RoadmapDraft,
    *,
    allowed_project_statuses: Collection[str] | None = None,
) -> RoadmapVersionRecord:
    """Insert a DRAFT version numbered max(existing) + 1.

    A concurrent insert that took the same number trips the
    (project_id, version_number) constraint; the number is then recomputed.
    With ``allowed_project_statuses`` the locked project must be in one of
    them, otherwise InvalidStateTransitionError is raised.

    Note: This function flushes but does not commit.
    """
    project = await lock_project(db, project_id)
    if allowed_project_statuses is not None and project.status not in allowed_project_statuses:
        raise InvalidStateTransitionError(
            f"Project {project_id} is {project.status}; roadmaps cannot be generated now"
        )

    for attempt in range(1, MAX_NUMBERING_ATTEMPTS + 1):
        version_number = await _next_version_number(db, project_id)
        row = RoadmapVersion(
            project_id=project_id,
            version_number=version_number,
            status=RoadmapStatus.DRAFT.value,
            diagnosis_summary=draft.diagnosis_summary,
            roadmap_matrix=[r.model_dump(mode="json") for r in draft.roadmap_matrix],
            pbl_course=draft.pbl_course.model_dump(mode="json") if draft.pbl_course else None,
            courses=[c.model_dump(mode="json") for c in draft.courses],
            revision_prompt=draft.revision_prompt,
            consultant_profile_snapshot=draft.consultant_profile_snapshot,
            free_tool_validated=draft.validation.free_tool_validated,
            time_limit_validated=draft.validation.time_limit_validated,
            validation_errors=draft.validation.errors,
            validation_warnings=draft.validation.warnings,
            created_by=draft.created_by,
        )
        try:
            async with db.begin_nested():
                db.add(row)
        except IntegrityError:
            logger.warning(
                "Version number taken, retrying",
                project_id=project_id,
                version_number=version_number,
                attempt=attempt,
            )
            continue
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save roadmap: {exc}") from exc

        logger.info(
            "Roadmap version created",
            roadmap_id=row.id,
            project_id=project_id,
            version_number=version_number,
        )
        return to_record(row)

    raise PersistenceError(
        f"Could not allocate a version number for project {project_id} "
        f"after {MAX_NUMBERING_ATTEMPTS} attempts"
    )


async def get_version(db: AsyncSession, roadmap_id: str) -> RoadmapVersionRecord | None:
    row = await db.get(RoadmapVersion, roadmap_id, populate_existing=True)
    return to_record(row) if row else None


async def list_versions(db: AsyncSession, project_id: str) -> list[RoadmapVersionRecord]:
    """All versions of a project, newest first."""
    result = await db.execute(
        select(RoadmapVersion)
        .where(RoadmapVersion.project_id == project_id)
        .order_by(RoadmapVersion.version_number.desc())
        .execution_options(populate_existing=True)
    )
    return [to_record(row) for row in result.scalars().all()]


async def get_current_final(db: AsyncSession, project_id: str) -> RoadmapVersionRecord | None:
    result = await db.execute(
        select(RoadmapVersion)
        .where(
            RoadmapVersion.project_id == project_id,
            RoadmapVersion.status == RoadmapStatus.FINAL.value,
        )
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    return to_record(row) if row else None


async def update_version(
    db: AsyncSession,
    roadmap_id: str,
    patch: RoadmapVersionPatch,
    *,
    require_status: RoadmapStatus | None = None,
) -> RoadmapVersionRecord:
    """Apply the fields set on ``patch``.

    Note: This function flushes but does not commit.
    """
    row = await db.get(RoadmapVersion, roadmap_id, populate_existing=True)
    if row is None:
        raise NotFoundError(f"Roadmap {roadmap_id} not found")
    if require_status is not None and row.status != require_status.value:
        raise InvalidStateTransitionError(
            f"Roadmap version {row.version_number} is {row.status}, expected {require_status.value}"
        )

    for field, value in patch.model_dump(mode="json", exclude_unset=True).items():
        setattr(row, field, value)

    try:
        await db.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to update roadmap: {exc}") from exc

    logger.info("Roadmap version updated", roadmap_id=roadmap_id, fields=sorted(patch.model_fields_set))
    return to_record(row)
