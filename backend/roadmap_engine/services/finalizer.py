"""DRAFT -> FINAL transition with archival of the previous FINAL."""

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.core.errors import (
    InvalidStateTransitionError,
    NotFoundError,
    ValidationBlockedError,
)
from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.project import Project, ProjectStatus
from roadmap_engine.models.roadmap import RoadmapStatus, RoadmapVersion
from roadmap_engine.schemas.roadmap import FinalizeOutcome
from roadmap_engine.services import export_service, version_store
from roadmap_engine.services.export_service import ExportStore

logger = get_logger(__name__)


async def finalize_roadmap(
    db: AsyncSession,
    roadmap_id: str,
    actor_id: int,
    *,
    export_store: ExportStore | None = None,
) -> FinalizeOutcome:
    """Promote a validated DRAFT to FINAL.

    Archive and promote run in one transaction: the project row is locked,
    the promotion only matches a row still in DRAFT with both validation
    flags set, and a partial unique index rejects a second FINAL. The export
    is produced after commit; its failure is reported in the outcome and
    does not undo the finalize.

    Note: This function commits the transaction.
    """
    version = await version_store.get_version(db, roadmap_id)
    if version is None:
        raise NotFoundError(f"Roadmap {roadmap_id} not found")
    if version.status != RoadmapStatus.DRAFT:
        raise InvalidStateTransitionError(
            f"Only DRAFT versions can be finalized; version {version.version_number} "
            f"is {version.status.value}"
        )
    if not version.is_valid:
        raise ValidationBlockedError(
            "Validation not passed: fix paid tools and course hours before finalizing"
        )

    await version_store.lock_project(db, version.project_id)
    previous = await version_store.get_current_final(db, version.project_id)
    now = datetime.utcnow()

    try:
        await db.execute(
            update(RoadmapVersion)
            .where(
                RoadmapVersion.project_id == version.project_id,
                RoadmapVersion.status == RoadmapStatus.FINAL.value,
            )
            .values(status=RoadmapStatus.ARCHIVED.value, export_path=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        promoted = await db.execute(
            update(RoadmapVersion)
            .where(
                RoadmapVersion.id == roadmap_id,
                RoadmapVersion.status == RoadmapStatus.DRAFT.value,
                RoadmapVersion.free_tool_validated.is_(True),
                RoadmapVersion.time_limit_validated.is_(True),
            )
            .values(
                status=RoadmapStatus.FINAL.value,
                finalized_at=now,
                finalized_by=actor_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if promoted.rowcount != 1:
            await db.rollback()
            raise InvalidStateTransitionError(
                "Roadmap changed while finalizing; reload and try again"
            )
        await db.execute(
            update(Project)
            .where(Project.id == version.project_id)
            .values(status=ProjectStatus.FINALIZED.value)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as exc:
        await db.rollback()
        raise InvalidStateTransitionError(
            "Another version of this project was finalized at the same time"
        ) from exc

    await version_store.commit(db)
    logger.info(
        "Roadmap finalized",
        roadmap_id=roadmap_id,
        project_id=version.project_id,
        version_number=version.version_number,
        archived_roadmap_id=previous.id if previous else None,
    )

    store = export_store or export_service.get_export_store()
    if previous is not None and previous.export_path:
        await export_service.remove_export_files(store, [previous.export_path])

    outcome = FinalizeOutcome(
        roadmap_id=roadmap_id,
        archived_roadmap_id=previous.id if previous else None,
    )
    try:
        outcome.export_path = await export_service.save_final_export(db, roadmap_id, store)
        await version_store.commit(db)
    except Exception as exc:
        await db.rollback()
        logger.exception("Final export failed", roadmap_id=roadmap_id)
        outcome.export_path = None
        outcome.export_error = str(exc)
    return outcome
