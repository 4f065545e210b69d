"""Export of FINAL roadmaps to a file store."""

import asyncio
import io
from collections.abc import Iterable, Sequence
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.core.config import get_settings
from roadmap_engine.core.errors import NotFoundError
from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.project import Project
from roadmap_engine.schemas.roadmap import (
    CourseLevel,
    RoadmapVersionPatch,
    RoadmapVersionRecord,
)
from roadmap_engine.services import version_store

logger = get_logger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_SALT = "roadmap-export"


# ============================================================================
# Store
# ============================================================================


class ExportStore(Protocol):
    async def put(self, path: str, data: bytes, content_type: str) -> str: ...

    async def remove(self, paths: Sequence[str]) -> None: ...

    def signed_url(self, path: str) -> str: ...


class LocalExportStore:
    """Export store on the local filesystem.

    Download URLs carry an itsdangerous token over the file path; the token
    expires ``url_ttl_seconds`` after signing.
    """

    def __init__(
        self,
        root: Path,
        signing_key: str,
        url_ttl_seconds: int = 3600,
        base_url: str = "/exports",
    ) -> None:
        self.root = root.resolve()
        self.url_ttl_seconds = url_ttl_seconds
        self.base_url = base_url.rstrip("/")
        self._serializer = URLSafeTimedSerializer(signing_key, salt=EXPORT_SALT)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Export path escapes the store root: {path}")
        return target

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_bytes, data)
        logger.info("Export stored", path=path, size=len(data), content_type=content_type)
        return path

    async def remove(self, paths: Sequence[str]) -> None:
        for path in paths:
            await asyncio.to_thread(self._resolve(path).unlink, missing_ok=True)
        if paths:
            logger.info("Exports removed", paths=list(paths))

    def signed_url(self, path: str) -> str:
        token = self._serializer.dumps(path)
        return f"{self.base_url}/{quote(path)}?token={token}"

    def local_path(self, path: str) -> Path:
        return self._resolve(path)

    def verify(self, path: str, token: str) -> bool:
        """True when ``token`` was signed for ``path`` and has not expired."""
        try:
            signed_path = self._serializer.loads(token, max_age=self.url_ttl_seconds)
        except SignatureExpired:
            logger.info("Expired export link", path=path)
            return False
        except BadSignature:
            logger.warning("Bad export link signature", path=path)
            return False
        return signed_path == path


@lru_cache
def get_export_store() -> LocalExportStore:
    settings = get_settings()
    return LocalExportStore(
        settings.EXPORT_DIR,
        settings.EXPORT_SIGNING_KEY,
        url_ttl_seconds=settings.EXPORT_URL_TTL_SECONDS,
    )


# ============================================================================
# Rendering
# ============================================================================


def export_path_for(version: RoadmapVersionRecord) -> str:
    return f"projects/{version.project_id}/roadmap_v{version.version_number}_final.xlsx"


def _add_sheet(
    workbook: Workbook,
    title: str,
    rows: Iterable[Sequence[Any]],
    widths: Sequence[int],
) -> Worksheet:
    sheet = workbook.create_sheet(title)
    for row in rows:
        sheet.append(list(row))
    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    for row in sheet.iter_rows():
        for cell in row:
            cell.alignment = Alignment(wrap_text=True, vertical="top")
    return sheet


def _tool_names(tools) -> str:
    return ", ".join(t.name for t in tools) or "-"


def _tool_tiers(tools) -> str:
    return ", ".join(t.free_tier_info for t in tools) or "-"


def _overview_rows(version: RoadmapVersionRecord, company_name: str) -> list[list]:
    return [
        ["AI Training Roadmap"],
        [],
        ["Company", company_name],
        ["Project ID", version.project_id],
        ["Version", f"v{version.version_number}"],
        ["Status", version.status.value],
        ["Created", version.created_at.date().isoformat()],
        ["Finalized", version.finalized_at.date().isoformat() if version.finalized_at else "-"],
        [],
        ["Diagnosis summary"],
        [version.diagnosis_summary],
    ]


def _matrix_rows(version: RoadmapVersionRecord) -> list[list]:
    header = ["Task"]
    for level in CourseLevel:
        header += [f"{level.value.title()} course", f"{level.value.title()} hours"]
    rows = [header]
    for row in version.roadmap_matrix:
        line = [row.task_name]
        for level in CourseLevel:
            cell = row.cell(level)
            line += [cell.course_name, cell.recommended_hours] if cell else ["-", "-"]
        rows.append(line)
    return rows


def _pbl_rows(version: RoadmapVersionRecord) -> list[list]:
    pbl = version.pbl_course
    if pbl is None:
        return [["PBL course"], [], ["No PBL course in this version"]]
    rows = [
        ["PBL course"],
        [],
        ["Course", pbl.course_name],
        ["Total hours", pbl.total_hours],
        ["Audience", pbl.target_audience],
        ["Target tasks", ", ".join(pbl.target_tasks) or "-"],
        [],
        ["Curriculum"],
        ["Module", "Hours", "Description", "Practice", "Tools", "Free tier"],
    ]
    rows += [
        [
            module.module_name,
            module.hours,
            module.description,
            module.practice,
            _tool_names(module.tools),
            _tool_tiers(module.tools),
        ]
        for module in pbl.curriculum
    ]
    for title, items in (
        ("Expected outcomes", pbl.expected_outcomes),
        ("Measurement", pbl.measurement_methods),
        ("Prerequisites", pbl.prerequisites),
    ):
        rows += [[], [title]] + [[item] for item in items]
    return rows


def _course_rows(version: RoadmapVersionRecord) -> list[list]:
    rows = [
        [
            "Course",
            "Level",
            "Task",
            "Audience",
            "Hours",
            "Curriculum",
            "Practice",
            "Tools",
            "Free tier",
            "Expected outcome",
            "Measurement",
            "Prerequisites",
        ]
    ]
    for course in version.courses:
        rows.append(
            [
                course.course_name,
                course.level.value,
                course.target_task,
                course.target_audience,
                course.recommended_hours,
                "\n".join(course.curriculum) or "-",
                "\n".join(course.practice_assignments) or "-",
                _tool_names(course.tools),
                _tool_tiers(course.tools),
                course.expected_outcome,
                course.measurement_method,
                ", ".join(course.prerequisites) or "-",
            ]
        )
    return rows


def _tool_rows(version: RoadmapVersionRecord) -> list[list]:
    """Every tool once, first mention wins, courses before the PBL course."""
    tiers: dict[str, str] = {}
    for course in version.courses:
        for tool in course.tools:
            tiers.setdefault(tool.name, tool.free_tier_info)
    if version.pbl_course is not None:
        for module in version.pbl_course.curriculum:
            for tool in module.tools:
                tiers.setdefault(tool.name, tool.free_tier_info)
    return [["Tools and free tiers"], [], ["Tool", "Free tier"]] + [
        [name, info] for name, info in tiers.items()
    ]


def render_roadmap_xlsx(version: RoadmapVersionRecord, company_name: str) -> bytes:
    """Workbook with overview, matrix, PBL course, course details and tool sheets."""
    workbook = Workbook()
    workbook.remove(workbook.active)

    overview = _add_sheet(workbook, "Overview", _overview_rows(version, company_name), (20, 60))
    overview.merge_cells("A1:B1")
    overview.merge_cells("A10:B10")
    overview.merge_cells("A11:B11")
    overview["A1"].font = Font(bold=True, size=14)

    matrix = _add_sheet(workbook, "Matrix", _matrix_rows(version), (25, 30, 10, 30, 10, 30, 10))
    _add_sheet(workbook, "PBL course", _pbl_rows(version), (25, 10, 40, 40, 25, 30))
    courses = _add_sheet(
        workbook,
        "Courses",
        _course_rows(version),
        (25, 12, 20, 15, 10, 40, 40, 25, 30, 30, 25, 25),
    )
    tools = _add_sheet(workbook, "Tools", _tool_rows(version), (25, 50))
    tools.merge_cells("A1:B1")

    for sheet in (matrix, courses):
        for cell in sheet[1]:
            cell.font = Font(bold=True)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ============================================================================
# Operations
# ============================================================================


async def save_final_export(
    db: AsyncSession,
    roadmap_id: str,
    store: ExportStore,
) -> str:
    """Render a version, store it, and record its path on the version.

    Note: This function flushes but does not commit.
    """
    version = await version_store.get_version(db, roadmap_id)
    if version is None:
        raise NotFoundError(f"Roadmap {roadmap_id} not found")
    project = await db.get(Project, version.project_id)
    company_name = project.company_name if project else ""

    data = await asyncio.to_thread(render_roadmap_xlsx, version, company_name)
    path = await store.put(export_path_for(version), data, XLSX_CONTENT_TYPE)
    await version_store.update_version(db, roadmap_id, RoadmapVersionPatch(export_path=path))
    return path


async def remove_export_files(store: ExportStore, paths: Sequence[str]) -> None:
    """Best-effort deletion of stale exports; failures are only logged."""
    if not paths:
        return
    try:
        await store.remove(paths)
    except Exception as exc:
        logger.warning("Stale export cleanup failed", paths=list(paths), error=str(exc))


async def get_final_export_url(
    db: AsyncSession,
    project_id: str,
    store: ExportStore,
) -> str | None:
    """Signed download URL of the current FINAL export, if there is one."""
    final = await version_store.get_current_final(db, project_id)
    if final is None or not final.export_path:
        return None
    return store.signed_url(final.export_path)
