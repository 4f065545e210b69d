"""Tests for manual edits of DRAFT roadmaps."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from factories import ORDER_TASK, SUPPORT_TASK, course, default_courses, make_draft
from roadmap_engine.core.errors import InvalidStateTransitionError, NotFoundError
from roadmap_engine.models import Project, User
from roadmap_engine.schemas.roadmap import (
    CourseLevel,
    MatrixCellEdit,
    RoadmapCell,
    RoadmapManualUpdate,
)
from roadmap_engine.services import finalizer, manual_editor, version_store
from roadmap_engine.services.matrix import derive_matrix


def _cells(raw: list[dict]) -> list[RoadmapCell]:
    return [RoadmapCell.model_validate(c) for c in raw]


class TestApplyCellEdit:
    def test_replace_pins_task_and_level(self):
        courses = _cells(default_courses())
        new = RoadmapCell.model_validate(course("Replacement", task="anything", level="ADVANCED"))

        updated = manual_editor.apply_cell_edit(courses, ORDER_TASK, CourseLevel.BEGINNER, new)

        assert updated[0].course_name == "Replacement"
        assert updated[0].target_task == ORDER_TASK
        assert updated[0].level == CourseLevel.BEGINNER
        assert courses[0].course_name == "Spreadsheet automation basics"

    def test_fill_empty_cell_appends(self):
        courses = _cells(default_courses())
        new = RoadmapCell.model_validate(course("Advanced orders"))
        updated = manual_editor.apply_cell_edit(courses, ORDER_TASK, CourseLevel.ADVANCED, new)
        assert len(updated) == 4
        assert updated[-1].level == CourseLevel.ADVANCED

    def test_clear_removes_course(self):
        courses = _cells(default_courses())
        updated = manual_editor.apply_cell_edit(courses, SUPPORT_TASK, CourseLevel.BEGINNER, None)
        assert [c.target_task for c in updated] == [ORDER_TASK, ORDER_TASK]


def test_courses_from_matrix_drops_missing_tasks():
    courses = _cells(default_courses())
    rows, _ = derive_matrix(courses)
    edited_row = rows[0].model_copy(update={"intermediate": None})

    updated = manual_editor.courses_from_matrix(courses, [edited_row])

    assert [c.course_name for c in updated] == ["Spreadsheet automation basics"]


@pytest.mark.asyncio
async def test_edit_courses_recomputes_validation_and_matrix(
    test_session: AsyncSession, project: Project, consultant: User
) -> None:
    version = await version_store.create_version(test_session, project.id, make_draft())
    await version_store.commit(test_session)

    raw = default_courses()
    raw[0]["recommended_hours"] = 45
    raw.append(course("Advanced order analytics", level="ADVANCED", hours=12))
    outcome = await manual_editor.edit_courses(
        test_session, version.id, consultant.id, RoadmapManualUpdate(courses=_cells(raw))
    )

    assert not outcome.validation.time_limit_validated
    assert not outcome.validation.is_valid

    stored = await version_store.get_version(test_session, version.id)
    assert not stored.time_limit_validated
    assert stored.validation_errors == outcome.validation.errors
    assert stored.roadmap_matrix[0].advanced.course_name == "Advanced order analytics"
    assert stored.roadmap_matrix[0].beginner.recommended_hours == 45


@pytest.mark.asyncio
async def test_edit_via_matrix(test_session: AsyncSession, project: Project, consultant: User) -> None:
    version = await version_store.create_version(test_session, project.id, make_draft())
    await version_store.commit(test_session)

    row = version.roadmap_matrix[1]
    paid = RoadmapCell.model_validate(
        course("Premium helpdesk", tools=[{"name": "Zendesk", "free_tier_info": "paid only"}])
    )
    updates = RoadmapManualUpdate(
        roadmap_matrix=[version.roadmap_matrix[0], row.model_copy(update={"beginner": paid})]
    )
    outcome = await manual_editor.edit_courses(test_session, version.id, consultant.id, updates)

    assert not outcome.validation.free_tool_validated
    stored = await version_store.get_version(test_session, version.id)
    support = [c for c in stored.courses if c.target_task == SUPPORT_TASK]
    assert [c.course_name for c in support] == ["Premium helpdesk"]


@pytest.mark.asyncio
async def test_courses_win_over_matrix(
    test_session: AsyncSession, project: Project, consultant: User
) -> None:
    version = await version_store.create_version(test_session, project.id, make_draft())
    await version_store.commit(test_session)

    updates = RoadmapManualUpdate(courses=version.courses[:1], roadmap_matrix=[])
    outcome = await manual_editor.edit_courses(test_session, version.id, consultant.id, updates)

    assert "roadmap_matrix ignored because courses were supplied" in outcome.validation.warnings
    stored = await version_store.get_version(test_session, version.id)
    assert len(stored.courses) == 1


@pytest.mark.asyncio
async def test_pbl_course_can_be_cleared(
    test_session: AsyncSession, project: Project, consultant: User
) -> None:
    version = await version_store.create_version(test_session, project.id, make_draft())
    await version_store.commit(test_session)

    outcome = await manual_editor.edit_courses(
        test_session, version.id, consultant.id, RoadmapManualUpdate(pbl_course=None)
    )
    assert "PBL course is missing." in outcome.validation.warnings
    stored = await version_store.get_version(test_session, version.id)
    assert stored.pbl_course is None

    await manual_editor.edit_courses(
        test_session, version.id, consultant.id, RoadmapManualUpdate(diagnosis_summary="New")
    )
    stored = await version_store.get_version(test_session, version.id)
    assert stored.diagnosis_summary == "New"
    assert stored.pbl_course is None


@pytest.mark.asyncio
async def test_edit_matrix_cell(test_session: AsyncSession, project: Project, consultant: User) -> None:
    version = await version_store.create_version(test_session, project.id, make_draft())
    await version_store.commit(test_session)

    edit = MatrixCellEdit(
        row_index=0,
        level=CourseLevel.ADVANCED,
        course=RoadmapCell.model_validate(course("Order forecasting", task="ignored", hours=10)),
    )
    await manual_editor.edit_matrix_cell(test_session, version.id, consultant.id, edit)

    stored = await version_store.get_version(test_session, version.id)
    assert stored.roadmap_matrix[0].advanced.course_name == "Order forecasting"
    added = stored.courses[-1]
    assert (added.target_task, added.level) == (ORDER_TASK, CourseLevel.ADVANCED)


@pytest.mark.asyncio
async def test_edit_matrix_cell_unknown_row(
    test_session: AsyncSession, project: Project, consultant: User
) -> None:
    version = await version_store.create_version(test_session, project.id, make_draft())
    await version_store.commit(test_session)

    edit = MatrixCellEdit(
        row_index=5,
        level=CourseLevel.BEGINNER,
        course=RoadmapCell.model_validate(course("x")),
    )
    with pytest.raises(NotFoundError):
        await manual_editor.edit_matrix_cell(test_session, version.id, consultant.id, edit)


@pytest.mark.asyncio
async def test_only_drafts_are_editable(
    test_session: AsyncSession, project: Project, consultant: User, export_store
) -> None:
    version = await version_store.create_version(test_session, project.id, make_draft())
    await version_store.commit(test_session)
    await finalizer.finalize_roadmap(test_session, version.id, consultant.id, export_store=export_store)

    with pytest.raises(InvalidStateTransitionError):
        await manual_editor.edit_courses(
            test_session, version.id, consultant.id, RoadmapManualUpdate(diagnosis_summary="late")
        )


@pytest.mark.asyncio
async def test_edit_missing_version(test_session: AsyncSession, consultant: User) -> None:
    with pytest.raises(NotFoundError):
        await manual_editor.edit_courses(
            test_session, "missing", consultant.id, RoadmapManualUpdate()
        )

