"""Audit trail for roadmap operations."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.audit import AuditAction, AuditLog

logger = get_logger(__name__)


async def record_audit(
    db: AsyncSession,
    *,
    actor_user_id: int | None,
    action: AuditAction,
    target_type: str,
    target_id: str,
    meta: dict | None = None,
    success: bool = True,
    error_message: str | None = None,
) -> None:
    """Write and commit one audit entry.

    Never raises: a failed audit write is logged and rolled back so the
    operation being audited keeps its outcome.
    """
    try:
        db.add(
            AuditLog(
                actor_user_id=actor_user_id,
                action=action.value,
                target_type=target_type,
                target_id=target_id,
                meta=meta or {},
                success=success,
                error_message=error_message,
            )
        )
        await db.commit()
    except Exception as exc:
        await db.rollback()
        logger.error(
            "Audit log write failed",
            action=action.value,
            target_id=target_id,
            error=str(exc),
        )


async def list_audit_logs(
    db: AsyncSession,
    *,
    action: AuditAction | None = None,
    target_type: str | None = None,
    actor_user_id: int | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """Audit entries newest first, with the total count before paging."""
    filters = []
    if action is not None:
        filters.append(AuditLog.action == action.value)
    if target_type is not None:
        filters.append(AuditLog.target_type == target_type)
    if actor_user_id is not None:
        filters.append(AuditLog.actor_user_id == actor_user_id)

    total = await db.execute(select(func.count(AuditLog.id)).where(*filters))
    result = await db.execute(
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total.scalar_one()
