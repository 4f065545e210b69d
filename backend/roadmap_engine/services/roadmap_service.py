"""Public roadmap operations.

Each operation checks who is asking, runs the engine, writes the audit log
and returns an ``ActionResult``. Expected failures come back as
``success=False`` with an error code; unexpected exceptions are logged and
reported as a generic failure.
"""

from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.agent.llm import LLMGateway
from roadmap_engine.core.errors import (
    AuthorizationError,
    InvalidStateTransitionError,
    NotFoundError,
    PersistenceError,
    RoadmapEngineError,
)
from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.audit import AuditAction
from roadmap_engine.models.project import ROADMAP_READY_STATUSES, Project
from roadmap_engine.models.user import ADMIN_ROLES, User, UserRole
from roadmap_engine.schemas.common import ActionResult
from roadmap_engine.schemas.roadmap import MatrixCellEdit, RoadmapManualUpdate
from roadmap_engine.services import (
    audit_service,
    export_service,
    finalizer,
    manual_editor,
    roadmap_generator,
    version_store,
)
from roadmap_engine.services.export_service import ExportStore

logger = get_logger(__name__)

ROADMAP_TARGET = "roadmap"


# ============================================================================
# Authorization
# ============================================================================


async def _get_actor(db: AsyncSession, actor_id: int) -> User:
    actor = await db.get(User, actor_id)
    if actor is None:
        raise AuthorizationError("Login required")
    return actor


async def _get_project(db: AsyncSession, project_id: str) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


async def require_assigned_consultant(db: AsyncSession, project_id: str, actor_id: int) -> Project:
    """The actor must be an approved consultant assigned to the project."""
    actor = await _get_actor(db, actor_id)
    if actor.role != UserRole.CONSULTANT_APPROVED.value:
        raise AuthorizationError("Only approved consultants can change roadmaps")
    project = await _get_project(db, project_id)
    if project.assigned_consultant_id != actor_id:
        raise AuthorizationError("You are not the consultant assigned to this project")
    return project


async def require_reader(db: AsyncSession, project_id: str, actor_id: int) -> Project:
    """Assigned consultant or an ops/system admin."""
    actor = await _get_actor(db, actor_id)
    project = await _get_project(db, project_id)
    if actor.role in ADMIN_ROLES:
        return project
    if actor.role == UserRole.CONSULTANT_APPROVED.value and project.assigned_consultant_id == actor_id:
        return project
    raise AuthorizationError("You do not have access to this project")


# ============================================================================
# Boundary
# ============================================================================


async def _run(
    db: AsyncSession,
    operation: str,
    body: Callable[[], Awaitable[ActionResult]],
    *,
    actor_id: int,
    audit_action: AuditAction | None = None,
    target_id: str = "",
) -> ActionResult:
    try:
        return await body()
    except RoadmapEngineError as exc:
        await db.rollback()
        logger.info("Roadmap operation rejected", operation=operation, code=exc.code, error=exc.message)
        if isinstance(exc, PersistenceError) and audit_action is not None:
            await audit_service.record_audit(
                db,
                actor_user_id=actor_id,
                action=audit_action,
                target_type=ROADMAP_TARGET,
                target_id=target_id,
                success=False,
                error_message=exc.message,
            )
        return ActionResult.from_error(exc)
    except Exception:
        await db.rollback()
        logger.exception("Roadmap operation crashed", operation=operation)
        return ActionResult.fail(f"Roadmap operation '{operation}' failed unexpectedly.")


# ============================================================================
# Operations
# ============================================================================


async def create_roadmap(
    db: AsyncSession,
    project_id: str,
    actor_id: int,
    revision_prompt: str | None = None,
    *,
    llm: LLMGateway | None = None,
) -> ActionResult:
    """Generate a new DRAFT version for a project."""

    async def body() -> ActionResult:
        project = await require_assigned_consultant(db, project_id, actor_id)
        if project.status not in ROADMAP_READY_STATUSES:
            raise InvalidStateTransitionError(
                "Roadmaps can only be generated for projects with a completed interview"
            )
        outcome = await roadmap_generator.generate_roadmap(
            db, project_id, actor_id, revision_prompt, llm=llm
        )
        await audit_service.record_audit(
            db,
            actor_user_id=actor_id,
            action=AuditAction.ROADMAP_CREATE,
            target_type=ROADMAP_TARGET,
            target_id=outcome.roadmap_id,
            meta={
                "project_id": project_id,
                "has_revision_prompt": bool(revision_prompt),
                "validation_passed": outcome.validation.is_valid,
            },
        )
        return ActionResult.ok(outcome.model_dump(mode="json"))

    return await _run(
        db,
        "create_roadmap",
        body,
        actor_id=actor_id,
        audit_action=AuditAction.ROADMAP_CREATE,
        target_id=project_id,
    )


async def finalize_roadmap(
    db: AsyncSession,
    roadmap_id: str,
    actor_id: int,
    *,
    export_store: ExportStore | None = None,
) -> ActionResult:
    """Promote a validated DRAFT to FINAL, archiving the previous FINAL."""

    async def body() -> ActionResult:
        version = await version_store.get_version(db, roadmap_id)
        if version is None:
            raise NotFoundError(f"Roadmap {roadmap_id} not found")
        await require_assigned_consultant(db, version.project_id, actor_id)

        outcome = await finalizer.finalize_roadmap(
            db, roadmap_id, actor_id, export_store=export_store
        )
        await audit_service.record_audit(
            db,
            actor_user_id=actor_id,
            action=AuditAction.ROADMAP_FINALIZE,
            target_type=ROADMAP_TARGET,
            target_id=roadmap_id,
            meta={
                "project_id": version.project_id,
                "version_number": version.version_number,
                "archived_roadmap_id": outcome.archived_roadmap_id,
                "export_error": outcome.export_error,
            },
        )
        return ActionResult.ok(outcome.model_dump(mode="json"))

    return await _run(
        db,
        "finalize_roadmap",
        body,
        actor_id=actor_id,
        audit_action=AuditAction.ROADMAP_FINALIZE,
        target_id=roadmap_id,
    )


async def list_roadmap_versions(db: AsyncSession, project_id: str, actor_id: int) -> ActionResult:
    """All versions of a project, newest first."""

    async def body() -> ActionResult:
        await require_reader(db, project_id, actor_id)
        versions = await version_store.list_versions(db, project_id)
        return ActionResult.ok([v.model_dump(mode="json") for v in versions])

    return await _run(db, "list_roadmap_versions", body, actor_id=actor_id)


async def get_roadmap_version(db: AsyncSession, roadmap_id: str, actor_id: int) -> ActionResult:
    """One version, or ``data=None`` when it does not exist."""

    async def body() -> ActionResult:
        version = await version_store.get_version(db, roadmap_id)
        if version is None:
            return ActionResult.ok(None)
        await require_reader(db, version.project_id, actor_id)
        return ActionResult.ok(version.model_dump(mode="json"))

    return await _run(db, "get_roadmap_version", body, actor_id=actor_id)


async def _edit(
    db: AsyncSession,
    operation: str,
    roadmap_id: str,
    actor_id: int,
    apply: Callable[[], Awaitable],
    meta: dict,
) -> ActionResult:
    async def body() -> ActionResult:
        version = await version_store.get_version(db, roadmap_id)
        if version is None:
            raise NotFoundError(f"Roadmap {roadmap_id} not found")
        await require_assigned_consultant(db, version.project_id, actor_id)

        outcome = await apply()
        await audit_service.record_audit(
            db,
            actor_user_id=actor_id,
            action=AuditAction.ROADMAP_EDIT,
            target_type=ROADMAP_TARGET,
            target_id=roadmap_id,
            meta={**meta, "validation_passed": outcome.validation.is_valid},
        )
        return ActionResult.ok(outcome.model_dump(mode="json"))

    return await _run(
        db,
        operation,
        body,
        actor_id=actor_id,
        audit_action=AuditAction.ROADMAP_EDIT,
        target_id=roadmap_id,
    )


async def update_roadmap_manually(
    db: AsyncSession,
    roadmap_id: str,
    actor_id: int,
    updates: RoadmapManualUpdate,
) -> ActionResult:
    """Apply user edits to a DRAFT; the result carries the fresh validation."""
    return await _edit(
        db,
        "update_roadmap_manually",
        roadmap_id,
        actor_id,
        lambda: manual_editor.edit_courses(db, roadmap_id, actor_id, updates),
        {"fields": sorted(updates.model_fields_set)},
    )


async def edit_roadmap_matrix_cell(
    db: AsyncSession,
    roadmap_id: str,
    actor_id: int,
    edit: MatrixCellEdit,
) -> ActionResult:
    """Replace the course behind one matrix cell of a DRAFT."""
    return await _edit(
        db,
        "edit_roadmap_matrix_cell",
        roadmap_id,
        actor_id,
        lambda: manual_editor.edit_matrix_cell(db, roadmap_id, actor_id, edit),
        {"row_index": edit.row_index, "level": edit.level.value},
    )


async def get_final_export_url(
    db: AsyncSession,
    project_id: str,
    actor_id: int,
    *,
    export_store: ExportStore | None = None,
) -> ActionResult:
    """Signed URL of the FINAL export (``data={"url": None}`` when there is none)."""

    async def body() -> ActionResult:
        await require_reader(db, project_id, actor_id)
        store = export_store or export_service.get_export_store()
        url = await export_service.get_final_export_url(db, project_id, store)
        return ActionResult.ok({"url": url})

    return await _run(db, "get_final_export_url", body, actor_id=actor_id)
