"""Roadmap generation: project context -> LLM -> validated DRAFT version."""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.agent.llm import LLMGateway, get_llm_gateway
from roadmap_engine.agent.prompts import build_roadmap_messages
from roadmap_engine.core.errors import IncompleteProjectError, NotFoundError
from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.project import (
    ROADMAP_READY_STATUSES,
    ConsultantProfile,
    Interview,
    Project,
    ProjectStatus,
    SelfAssessment,
)
from roadmap_engine.schemas.project import ConsultantSnapshot, ProjectContext
from roadmap_engine.schemas.roadmap import GenerationOutcome, RoadmapDraft, RoadmapResult
from roadmap_engine.services import quota_service, version_store
from roadmap_engine.services.matrix import derive_matrix
from roadmap_engine.services.validator import validate_roadmap

logger = get_logger(__name__)


async def load_project_context(db: AsyncSession, project_id: str) -> ProjectContext:
    """Collect the project, its latest assessment and interview, and the consultant profile.

    Raises:
        NotFoundError: Project does not exist.
        IncompleteProjectError: Self-assessment or interview is missing.
    """
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    assessment = (
        await db.execute(
            select(SelfAssessment)
            .where(SelfAssessment.project_id == project_id)
            .order_by(SelfAssessment.created_at.desc(), SelfAssessment.id.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if assessment is None:
        raise IncompleteProjectError("Project has no self-assessment result")

    interview = (
        await db.execute(
            select(Interview)
            .where(Interview.project_id == project_id)
            .order_by(Interview.created_at.desc(), Interview.id.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if interview is None:
        raise IncompleteProjectError("Project has no interview data")

    consultant = None
    if project.assigned_consultant_id is not None:
        profile = (
            await db.execute(
                select(ConsultantProfile).where(
                    ConsultantProfile.user_id == project.assigned_consultant_id
                )
            )
        ).scalar_one_or_none()
        if profile is not None:
            consultant = ConsultantSnapshot.model_validate(profile)

    return ProjectContext(
        project_id=project.id,
        company_name=project.company_name,
        industry=project.industry,
        company_size=project.company_size,
        customer_comment=project.customer_comment,
        assessment_scores=assessment.scores or {},
        assessment_summary=assessment.summary_text,
        job_tasks=interview.job_tasks or [],
        pain_points=interview.pain_points or [],
        constraints=interview.constraints or [],
        improvement_goals=interview.improvement_goals or [],
        customer_requirements=interview.customer_requirements,
        notes=interview.notes,
        consultant=consultant,
    )


async def generate_roadmap(
    db: AsyncSession,
    project_id: str,
    actor_id: int,
    revision_prompt: str | None = None,
    *,
    llm: LLMGateway | None = None,
) -> GenerationOutcome:
    """Generate and store a new DRAFT version for a project.

    The caller is responsible for authorization and for the project being
    past its interview. Quota is checked before any LLM call; nothing is
    written if the call fails. The read transaction is closed before the
    call so no database lock is held while waiting on the model, and the
    project status is checked again under the project lock afterwards.

    Note: This function commits the transaction.
    """
    await quota_service.ensure_quota_available(db, actor_id)
    context = await load_project_context(db, project_id)
    await db.commit()

    gateway = llm or get_llm_gateway()
    logger.info(
        "Generating roadmap",
        project_id=project_id,
        has_revision_prompt=bool(revision_prompt),
    )
    raw, usage = await gateway.call_for_json(
        build_roadmap_messages(context, revision_prompt), RoadmapResult
    )

    # The model's matrix is discarded; the stored one always comes from courses
    matrix, matrix_warnings = derive_matrix(raw.courses)
    validation = validate_roadmap(raw.courses, raw.pbl_course, raw.diagnosis_summary)
    validation = validation.model_copy(
        update={"warnings": validation.warnings + matrix_warnings}
    )
    result = raw.model_copy(update={"roadmap_matrix": matrix})

    record = await version_store.create_version(
        db,
        project_id,
        RoadmapDraft(
            diagnosis_summary=result.diagnosis_summary,
            roadmap_matrix=matrix,
            pbl_course=result.pbl_course,
            courses=result.courses,
            validation=validation,
            revision_prompt=revision_prompt,
            consultant_profile_snapshot=(
                context.consultant.model_dump() if context.consultant else {}
            ),
            created_by=actor_id,
        ),
        allowed_project_statuses=ROADMAP_READY_STATUSES,
    )

    project = await db.get(Project, project_id)
    if project is not None:
        project.status = ProjectStatus.ROADMAP_DRAFTED.value
    await version_store.commit(db)

    try:
        await quota_service.record_llm_usage(
            db, actor_id, usage.tokens_in, usage.tokens_out, calls=max(usage.calls, 1)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Failed to record LLM usage", user_id=actor_id, error=str(exc))

    logger.info(
        "Roadmap generated",
        roadmap_id=record.id,
        project_id=project_id,
        version_number=record.version_number,
        is_valid=validation.is_valid,
        course_count=len(result.courses),
    )
    return GenerationOutcome(roadmap_id=record.id, result=result, validation=validation)
