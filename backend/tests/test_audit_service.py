"""Tests for audit_service."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.models import AuditAction, User
from roadmap_engine.services import audit_service


@pytest.mark.asyncio
async def test_record_and_list(test_session: AsyncSession, consultant: User) -> None:
    await audit_service.record_audit(
        test_session,
        actor_user_id=consultant.id,
        action=AuditAction.ROADMAP_CREATE,
        target_type="roadmap",
        target_id="r-1",
        meta={"project_id": "p-1"},
    )
    await audit_service.record_audit(
        test_session,
        actor_user_id=consultant.id,
        action=AuditAction.ROADMAP_FINALIZE,
        target_type="roadmap",
        target_id="r-1",
        success=False,
        error_message="boom",
    )

    logs, total = await audit_service.list_audit_logs(test_session)
    assert total == 2
    assert {log.action for log in logs} == {"ROADMAP_CREATE", "ROADMAP_FINALIZE"}

    logs, total = await audit_service.list_audit_logs(
        test_session, action=AuditAction.ROADMAP_FINALIZE
    )
    assert total == 1
    assert logs[0].success is False
    assert logs[0].error_message == "boom"


@pytest.mark.asyncio
async def test_paging(test_session: AsyncSession, consultant: User) -> None:
    for i in range(5):
        await audit_service.record_audit(
            test_session,
            actor_user_id=consultant.id,
            action=AuditAction.ROADMAP_EDIT,
            target_type="roadmap",
            target_id=f"r-{i}",
        )
    logs, total = await audit_service.list_audit_logs(test_session, page=2, limit=2)
    assert total == 5
    assert len(logs) == 2


@pytest.mark.asyncio
async def test_failed_write_does_not_raise(test_session: AsyncSession) -> None:
    # Unknown actor violates the users foreign key
    await audit_service.record_audit(
        test_session,
        actor_user_id=9999,
        action=AuditAction.ROADMAP_EDIT,
        target_type="roadmap",
        target_id="r-1",
    )
    _, total = await audit_service.list_audit_logs(test_session)
    assert total == 0
