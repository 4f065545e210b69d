"""Roadmap API routes."""

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import FileResponse

from roadmap_engine.api.deps import CurrentUser, DBSession
from roadmap_engine.core.logging import get_logger
from roadmap_engine.schemas.common import ActionResult
from roadmap_engine.schemas.roadmap import (
    MatrixCellEdit,
    RoadmapCreateRequest,
    RoadmapManualUpdate,
)
from roadmap_engine.services import roadmap_service
from roadmap_engine.services.export_service import XLSX_CONTENT_TYPE, get_export_store

logger = get_logger(__name__)
router = APIRouter(tags=["roadmaps"])

ERROR_STATUS = {
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "VALIDATION_BLOCKED": status.HTTP_409_CONFLICT,
    "INCOMPLETE_PROJECT": status.HTTP_409_CONFLICT,
    "QUOTA_EXCEEDED": status.HTTP_429_TOO_MANY_REQUESTS,
    "GENERATION_FAILED": status.HTTP_502_BAD_GATEWAY,
    "PERSISTENCE_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: ActionResult):
    """Return ``result.data`` or raise the HTTP error matching its code."""
    if result.success:
        return result.data
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error_code or "", status.HTTP_400_BAD_REQUEST),
        detail={"error": result.error, "error_code": result.error_code},
    )


@router.post("/projects/{project_id}/roadmaps", status_code=status.HTTP_201_CREATED)
async def create_roadmap(
    project_id: str,
    data: RoadmapCreateRequest,
    db: DBSession,
    user_id: CurrentUser,
) -> dict:
    """Generate a new DRAFT roadmap version for a project."""
    result = await roadmap_service.create_roadmap(
        db, project_id, user_id, revision_prompt=data.revision_prompt
    )
    return unwrap(result)


@router.get("/projects/{project_id}/roadmaps")
async def list_roadmap_versions(project_id: str, db: DBSession, user_id: CurrentUser) -> list:
    """List all roadmap versions of a project, newest first."""
    return unwrap(await roadmap_service.list_roadmap_versions(db, project_id, user_id))


@router.get("/projects/{project_id}/roadmaps/final/export")
async def get_final_export_url(project_id: str, db: DBSession, user_id: CurrentUser) -> dict:
    """Signed download URL of the project's FINAL roadmap export."""
    data = unwrap(await roadmap_service.get_final_export_url(db, project_id, user_id))
    if data["url"] is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No exported FINAL roadmap for this project",
        )
    return data


@router.get("/roadmaps/{roadmap_id}")
async def get_roadmap_version(roadmap_id: str, db: DBSession, user_id: CurrentUser) -> dict:
    """Get a roadmap version by ID."""
    data = unwrap(await roadmap_service.get_roadmap_version(db, roadmap_id, user_id))
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Roadmap not found",
        )
    return data


@router.patch("/roadmaps/{roadmap_id}")
async def update_roadmap(
    roadmap_id: str,
    data: RoadmapManualUpdate,
    db: DBSession,
    user_id: CurrentUser,
) -> dict:
    """Apply user edits to a DRAFT version."""
    return unwrap(await roadmap_service.update_roadmap_manually(db, roadmap_id, user_id, data))


@router.put("/roadmaps/{roadmap_id}/matrix-cell")
async def edit_matrix_cell(
    roadmap_id: str,
    data: MatrixCellEdit,
    db: DBSession,
    user_id: CurrentUser,
) -> dict:
    """Replace the course behind one matrix cell of a DRAFT version."""
    return unwrap(await roadmap_service.edit_roadmap_matrix_cell(db, roadmap_id, user_id, data))


@router.post("/roadmaps/{roadmap_id}/finalize")
async def finalize_roadmap(roadmap_id: str, db: DBSession, user_id: CurrentUser) -> dict:
    """Promote a validated DRAFT to FINAL."""
    return unwrap(await roadmap_service.finalize_roadmap(db, roadmap_id, user_id))


exports_router = APIRouter(prefix="/exports", tags=["exports"])


@exports_router.get("/{path:path}")
async def download_export(
    path: str,
    token: str = Query(...),
) -> FileResponse:
    """Serve an export file behind a signed, expiring URL."""
    store = get_export_store()
    if not store.verify(path, token):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired download link",
        )
    try:
        target = store.local_path(path)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not target.is_file():
        logger.warning("Signed export missing on disk", path=path)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export not found")
    return FileResponse(target, media_type=XLSX_CONTENT_TYPE, filename=target.name)
