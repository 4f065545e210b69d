"""Generation against a file database shared by several sessions."""

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from factories import FakeChatModel, make_gateway, roadmap_payload
from roadmap_engine.core.database import Base, build_engine
from roadmap_engine.models import Project, ProjectStatus, RoadmapVersion, User, UserRole
from roadmap_engine.services import roadmap_service


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """File-backed SQLite engine, so each session gets its own connection."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'roadmaps.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


async def _version_count(factory: async_sessionmaker, project_id: str) -> int:
    async with factory() as db:
        result = await db.execute(
            select(func.count(RoadmapVersion.id)).where(RoadmapVersion.project_id == project_id)
        )
        return result.scalar_one()


@pytest.mark.asyncio
async def test_other_sessions_can_write_while_model_is_called(
    test_session: AsyncSession,
    session_factory: async_sessionmaker,
    project: Project,
    consultant: User,
) -> None:
    project_id, consultant_id = project.id, consultant.id
    written: list[int] = []

    async def write_elsewhere() -> None:
        async with session_factory() as other:
            user = User(name="Late Signup", email="late@example.com", role=UserRole.USER_PENDING.value)
            other.add(user)
            await other.commit()
            written.append(user.id)

    chat = FakeChatModel([roadmap_payload()], on_call=write_elsewhere)
    result = await roadmap_service.create_roadmap(
        test_session, project_id, consultant_id, llm=make_gateway(chat)
    )

    assert result.success, result.error
    assert len(written) == 1
    async with session_factory() as db:
        assert await db.get(User, written[0]) is not None
    assert await _version_count(session_factory, project_id) == 1


@pytest.mark.asyncio
async def test_project_status_is_rechecked_after_model_call(
    test_session: AsyncSession,
    session_factory: async_sessionmaker,
    project: Project,
    consultant: User,
) -> None:
    project_id, consultant_id = project.id, consultant.id

    async def reset_project() -> None:
        async with session_factory() as other:
            row = await other.get(Project, project_id)
            row.status = ProjectStatus.ASSIGNED.value
            await other.commit()

    chat = FakeChatModel([roadmap_payload()], on_call=reset_project)
    result = await roadmap_service.create_roadmap(
        test_session, project_id, consultant_id, llm=make_gateway(chat)
    )

    assert not result.success
    assert result.error_code == "INVALID_STATE"
    assert await _version_count(session_factory, project_id) == 0
