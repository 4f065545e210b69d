"""Shared test fixtures."""

import os

# Settings are read at import time by roadmap_engine.core.database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EXPORT_SIGNING_KEY", "test-signing-key")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from roadmap_engine.core.database import Base, build_engine  # noqa: E402
from roadmap_engine.models import (  # noqa: E402
    ConsultantProfile,
    Interview,
    Project,
    ProjectStatus,
    SelfAssessment,
    User,
    UserRole,
)
from roadmap_engine.services.export_service import LocalExportStore  # noqa: E402


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine with all tables created."""
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine):
    factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def consultant(test_session: AsyncSession) -> User:
    user = User(name="Kim Consultant", email="kim@example.com", role=UserRole.CONSULTANT_APPROVED.value)
    test_session.add(user)
    await test_session.flush()
    test_session.add(
        ConsultantProfile(
            user_id=user.id,
            expertise_domains=["logistics", "office automation"],
            teaching_levels=["BEGINNER", "INTERMEDIATE"],
            coaching_methods=["workshop"],
            skill_tags=["spreadsheets", "chatgpt"],
        )
    )
    await test_session.commit()
    return user


@pytest_asyncio.fixture
async def other_consultant(test_session: AsyncSession) -> User:
    user = User(name="Lee Consultant", email="lee@example.com", role=UserRole.CONSULTANT_APPROVED.value)
    test_session.add(user)
    await test_session.commit()
    return user


@pytest_asyncio.fixture
async def ops_admin(test_session: AsyncSession) -> User:
    user = User(name="Park Ops", email="ops@example.com", role=UserRole.OPS_ADMIN.value)
    test_session.add(user)
    await test_session.commit()
    return user


@pytest_asyncio.fixture
async def project(test_session: AsyncSession, consultant: User) -> Project:
    """Interviewed project assigned to ``consultant``."""
    project = Project(
        company_name="Acme Logistics",
        industry="Logistics",
        company_size="50-99",
        customer_comment="We want to cut manual order entry.",
        status=ProjectStatus.INTERVIEWED.value,
        assigned_consultant_id=consultant.id,
    )
    test_session.add(project)
    await test_session.flush()
    test_session.add(
        SelfAssessment(
            project_id=project.id,
            scores={"data_literacy": 2, "tool_usage": 3},
            summary_text="Low automation maturity.",
        )
    )
    test_session.add(
        Interview(
            project_id=project.id,
            job_tasks=["Order processing", "Customer support"],
            pain_points=["Orders retyped from email"],
            constraints=["No budget for paid software"],
            improvement_goals=["Halve order entry time"],
            customer_requirements="Free tools only",
            notes="Team is comfortable with spreadsheets.",
        )
    )
    await test_session.commit()
    return project


@pytest.fixture
def export_store(tmp_path) -> LocalExportStore:
    return LocalExportStore(tmp_path / "exports", "test-signing-key")
