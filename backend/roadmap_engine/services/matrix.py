"""Task x level matrix derived from the flat course list."""

from collections.abc import Sequence

from roadmap_engine.schemas.roadmap import CourseLevel, RoadmapCell, RoadmapRow


def task_key(task_name: str) -> str:
    return " ".join(task_name.split()).casefold()


def derive_matrix(courses: Sequence[RoadmapCell]) -> tuple[list[RoadmapRow], list[str]]:
    """Group courses into one row per target task, one cell per level.

    Rows follow the order in which tasks first appear in ``courses`` and get
    ids ``T1``, ``T2``, ... in that order. Task names are matched ignoring
    case and repeated whitespace. When two courses share a task and level the
    first one fills the cell and a warning names the one left out; it stays in
    ``courses`` untouched.

    Returns:
        (rows, warnings)
    """
    rows: dict[str, RoadmapRow] = {}
    warnings: list[str] = []

    for course in courses:
        key = task_key(course.target_task)
        row = rows.get(key)
        if row is None:
            row = RoadmapRow(task_id=f"T{len(rows) + 1}", task_name=course.target_task.strip())
            rows[key] = row

        existing = row.cell(course.level)
        if existing is not None:
            warnings.append(
                f"Duplicate course for task '{row.task_name}' at level {course.level.value}: "
                f"kept '{existing.course_name}', left '{course.course_name}' out of the matrix"
            )
            continue
        setattr(row, course.level.column, course)

    return list(rows.values()), warnings


def find_course_index(
    courses: Sequence[RoadmapCell], task_name: str, level: CourseLevel
) -> int | None:
    """Index of the course shown in the matrix cell for (task, level)."""
    key = task_key(task_name)
    for index, course in enumerate(courses):
        if course.level == level and task_key(course.target_task) == key:
            return index
    return None
