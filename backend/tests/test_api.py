"""API tests over an ASGI transport."""

import io
from urllib.parse import urlsplit

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from openpyxl import load_workbook
from sqlalchemy.ext.asyncio import AsyncSession

from factories import FakeChatModel, make_gateway, roadmap_payload
from roadmap_engine.api.deps import get_db
from roadmap_engine.api.routes import roadmaps as roadmap_routes
from roadmap_engine.main import app
from roadmap_engine.models import Project, User
from roadmap_engine.schemas.common import ActionResult
from roadmap_engine.services import export_service, roadmap_generator, roadmap_service
from roadmap_engine.services.export_service import XLSX_CONTENT_TYPE


@pytest_asyncio.fixture
async def client(test_session: AsyncSession, export_store, monkeypatch):
    async def override_get_db():
        yield test_session

    gateway = make_gateway(FakeChatModel([roadmap_payload() for _ in range(3)]))
    monkeypatch.setattr(roadmap_generator, "get_llm_gateway", lambda: gateway)
    monkeypatch.setattr(export_service, "get_export_store", lambda: export_store)
    monkeypatch.setattr(roadmap_routes, "get_export_store", lambda: export_store)

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def _as(user: User) -> dict:
    return {"X-User-Id": str(user.id)}


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_missing_user_header(client: AsyncClient, project: Project) -> None:
    resp = await client.get(f"/api/projects/{project.id}/roadmaps")
    assert resp.status_code == 401

    resp = await client.get(
        f"/api/projects/{project.id}/roadmaps", headers={"X-User-Id": "not-a-number"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_generate_finalize_and_download(
    client: AsyncClient, project: Project, consultant: User
) -> None:
    project_id, headers = project.id, _as(consultant)

    resp = await client.post(f"/api/projects/{project_id}/roadmaps", json={}, headers=headers)
    assert resp.status_code == 201
    roadmap_id = resp.json()["roadmap_id"]

    resp = await client.get(f"/api/roadmaps/{roadmap_id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "DRAFT"

    resp = await client.post(f"/api/roadmaps/{roadmap_id}/finalize", headers=headers)
    assert resp.status_code == 200

    resp = await client.post(f"/api/roadmaps/{roadmap_id}/finalize", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["error_code"] == "INVALID_STATE"

    resp = await client.get(f"/api/projects/{project_id}/roadmaps/final/export", headers=headers)
    assert resp.status_code == 200
    url = resp.json()["url"]

    download = await client.get(url)
    assert download.status_code == 200
    assert download.headers["content-type"] == XLSX_CONTENT_TYPE
    overview = load_workbook(io.BytesIO(download.content))["Overview"]
    assert ("Company", "Acme Logistics") in overview.iter_rows(values_only=True)

    parts = urlsplit(url)
    tampered = await client.get(f"{parts.path}?{parts.query.replace('token=', 'token=0')}")
    assert tampered.status_code == 403

    other_path = parts.path.replace("roadmap_v1", "roadmap_v9")
    assert (await client.get(f"{other_path}?{parts.query}")).status_code == 403


@pytest.mark.asyncio
async def test_error_codes_map_to_http_status(
    client: AsyncClient, project: Project, consultant: User, other_consultant: User
) -> None:
    project_id = project.id
    consultant_headers, other_headers = _as(consultant), _as(other_consultant)

    resp = await client.get(f"/api/projects/{project_id}/roadmaps", headers=other_headers)
    assert resp.status_code == 403

    resp = await client.get("/api/roadmaps/missing", headers=consultant_headers)
    assert resp.status_code == 404

    resp = await client.get(
        f"/api/projects/{project_id}/roadmaps/final/export", headers=consultant_headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_manual_update_returns_validation(
    client: AsyncClient, project: Project, consultant: User
) -> None:
    project_id, headers = project.id, _as(consultant)
    resp = await client.post(f"/api/projects/{project_id}/roadmaps", json={}, headers=headers)
    roadmap_id = resp.json()["roadmap_id"]

    version = (await client.get(f"/api/roadmaps/{roadmap_id}", headers=headers)).json()
    courses = version["courses"]
    courses[0]["recommended_hours"] = 45

    resp = await client.patch(
        f"/api/roadmaps/{roadmap_id}", json={"courses": courses}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["validation"]["is_valid"] is False

    resp = await client.post(f"/api/roadmaps/{roadmap_id}/finalize", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"]["error_code"] == "VALIDATION_BLOCKED"


@pytest.mark.asyncio
async def test_actor_is_bound_to_request_log_context(
    client: AsyncClient, project: Project, consultant: User, monkeypatch
) -> None:
    project_id, consultant_id = project.id, consultant.id
    seen: list[dict] = []

    async def list_versions(db, project_id, actor_id):
        seen.append(structlog.contextvars.get_contextvars())
        return ActionResult.ok([])

    monkeypatch.setattr(roadmap_service, "list_roadmap_versions", list_versions)
    try:
        resp = await client.get(f"/api/projects/{project_id}/roadmaps", headers=_as(consultant))
    finally:
        structlog.contextvars.clear_contextvars()

    assert resp.status_code == 200
    assert seen == [{"actor_id": consultant_id}]
