"""Business-rule checks for generated roadmaps.

Two rules gate finalization:

- time limit: no course may recommend more than ``MAX_COURSE_HOURS`` hours;
- free tools: every tool must state its free-tier scope, and neither its
  name nor that scope may mention a paid-only plan.

Everything here is pure and deterministic; calling it twice on the same
input gives the same result.
"""

from collections.abc import Iterable, Sequence

from roadmap_engine.schemas.roadmap import PBLCourse, RoadmapCell, ToolInfo, ValidationResult

MAX_COURSE_HOURS = 40

# Matched case-insensitively as substrings of tool names and free-tier text
PAID_TOOL_KEYWORDS: tuple[str, ...] = (
    "paid",
    "premium",
    "subscription required",
    "pro version",
    "pro plan",
    "enterprise plan",
    "구독 필요",
    "유료",
    "결제",
    "pro 버전",
)


def find_paid_keyword(text: str | None) -> str | None:
    """Return the first paid-tool keyword contained in ``text``, if any."""
    if not text:
        return None
    lowered = text.lower()
    for keyword in PAID_TOOL_KEYWORDS:
        if keyword.lower() in lowered:
            return keyword
    return None


def _tool_errors(tools: Iterable[ToolInfo], owner: str) -> list[str]:
    errors: list[str] = []
    for tool in tools:
        if not tool.free_tier_info or not tool.free_tier_info.strip():
            errors.append(f"Free tier not stated: {tool.name} ({owner})")
        keyword = find_paid_keyword(tool.name) or find_paid_keyword(tool.free_tier_info)
        if keyword:
            errors.append(
                f"Paid tool detected: {tool.name} - {tool.free_tier_info} "
                f"({owner}, matched '{keyword}')"
            )
    return errors


def _course_hour_errors(courses: Sequence[RoadmapCell]) -> list[str]:
    return [
        f"Time limit exceeded: {c.course_name} ({c.recommended_hours}h > {MAX_COURSE_HOURS}h)"
        for c in courses
        if c.recommended_hours > MAX_COURSE_HOURS
    ]


def validate_courses(courses: Sequence[RoadmapCell]) -> ValidationResult:
    """Check the time-limit and free-tool rules over a course list."""
    tool_errors: list[str] = []
    for course in courses:
        tool_errors.extend(_tool_errors(course.tools, course.course_name))
    hour_errors = _course_hour_errors(courses)

    free_ok = not tool_errors
    time_ok = not hour_errors
    return ValidationResult(
        is_valid=free_ok and time_ok,
        errors=tool_errors + hour_errors,
        warnings=[],
        free_tool_validated=free_ok,
        time_limit_validated=time_ok,
    )


def validate_roadmap(
    courses: Sequence[RoadmapCell],
    pbl_course: PBLCourse | None = None,
    diagnosis_summary: str | None = None,
) -> ValidationResult:
    """Validate a whole roadmap.

    PBL tool problems count against the free-tool flag and PBL hour overruns
    against the time-limit flag, so ``is_valid`` stays the conjunction of the
    two flags. Structural gaps are reported as warnings only.
    """
    base = validate_courses(courses)
    tool_errors: list[str] = []
    hour_errors: list[str] = []
    warnings: list[str] = []

    if pbl_course is not None:
        for module in pbl_course.curriculum:
            tool_errors.extend(_tool_errors(module.tools, f"PBL: {module.module_name}"))
        if pbl_course.total_hours > MAX_COURSE_HOURS:
            hour_errors.append(
                f"PBL course time limit exceeded: {pbl_course.total_hours}h > {MAX_COURSE_HOURS}h"
            )
        module_hours = sum(m.hours for m in pbl_course.curriculum)
        if module_hours > MAX_COURSE_HOURS:
            hour_errors.append(
                f"PBL module hours exceed limit: {module_hours}h > {MAX_COURSE_HOURS}h"
            )
    else:
        warnings.append("PBL course is missing.")

    if not courses:
        warnings.append("Roadmap has no courses.")
    if not (diagnosis_summary or "").strip():
        warnings.append("Diagnosis summary is empty.")

    free_ok = base.free_tool_validated and not tool_errors
    time_ok = base.time_limit_validated and not hour_errors
    return ValidationResult(
        is_valid=free_ok and time_ok,
        errors=base.errors + tool_errors + hour_errors,
        warnings=base.warnings + warnings,
        free_tool_validated=free_ok,
        time_limit_validated=time_ok,
    )
