"""Tests for the roadmap business-rule validator."""

import pytest

from factories import course, default_courses, pbl_course, tool
from roadmap_engine.schemas.roadmap import PBLCourse, RoadmapCell
from roadmap_engine.services.validator import (
    MAX_COURSE_HOURS,
    find_paid_keyword,
    validate_courses,
    validate_roadmap,
)


def _cells(raw: list[dict]) -> list[RoadmapCell]:
    return [RoadmapCell.model_validate(c) for c in raw]


def _pbl(**kwargs) -> PBLCourse:
    return PBLCourse.model_validate(pbl_course(**kwargs))


class TestTimeLimit:
    def test_valid_roadmap_passes(self):
        result = validate_roadmap(_cells(default_courses()), _pbl(), "Summary")
        assert result.is_valid
        assert result.free_tool_validated
        assert result.time_limit_validated
        assert result.errors == []
        assert result.warnings == []

    def test_exactly_at_limit_passes(self):
        result = validate_courses(_cells([course("Long course", hours=MAX_COURSE_HOURS)]))
        assert result.time_limit_validated

    def test_over_limit_fails(self):
        result = validate_courses(_cells([course("Marathon course", hours=45)]))
        assert not result.time_limit_validated
        assert result.free_tool_validated
        assert not result.is_valid
        assert result.errors == ["Time limit exceeded: Marathon course (45h > 40h)"]

    def test_pbl_total_over_limit_fails_time_flag(self):
        result = validate_roadmap(_cells(default_courses()), _pbl(module_hours=(20, 20, 8)), "S")
        assert not result.time_limit_validated
        assert result.free_tool_validated
        assert any("PBL course time limit exceeded" in e for e in result.errors)
        assert any("PBL module hours exceed limit" in e for e in result.errors)


class TestFreeTools:
    @pytest.mark.parametrize(
        "name,free_tier_info",
        [
            ("Notion", "Premium plan required for automation"),
            ("Zapier PAID", "free: 100 tasks"),
            ("Canva", "Pro Plan only"),
            ("Slack", "Enterprise plan"),
            ("Some tool", "subscription required"),
            ("국내 서비스", "유료 플랜 전용"),
            ("결제 도구", "무료 체험"),
        ],
    )
    def test_paid_keyword_fails_free_flag(self, name, free_tier_info):
        result = validate_courses(_cells([course("Course", tools=[tool(name, free_tier_info)])]))
        assert not result.free_tool_validated
        assert result.time_limit_validated
        assert not result.is_valid
        assert any(e.startswith("Paid tool detected") for e in result.errors)

    def test_missing_free_tier_info_fails(self):
        result = validate_courses(_cells([course("Course", tools=[tool("Mystery tool", "  ")])]))
        assert not result.free_tool_validated
        assert result.errors == ["Free tier not stated: Mystery tool (Course)"]

    def test_pbl_tool_counts_against_free_flag(self):
        pbl = _pbl(tools=[tool("Airtable", "premium features needed")])
        result = validate_roadmap(_cells(default_courses()), pbl, "Summary")
        assert not result.free_tool_validated
        assert result.time_limit_validated
        assert any("PBL: Module 1" in e for e in result.errors)

    def test_find_paid_keyword_is_case_insensitive(self):
        assert find_paid_keyword("Requires PREMIUM") == "premium"
        assert find_paid_keyword("free forever") is None
        assert find_paid_keyword(None) is None
        assert find_paid_keyword("") is None


class TestStructure:
    def test_missing_pbl_is_warning_only(self):
        result = validate_roadmap(_cells(default_courses()), None, "Summary")
        assert result.is_valid
        assert result.warnings == ["PBL course is missing."]

    def test_empty_roadmap_warns(self):
        result = validate_roadmap([], None, "")
        assert result.is_valid
        assert "Roadmap has no courses." in result.warnings
        assert "Diagnosis summary is empty." in result.warnings

    def test_is_valid_is_conjunction_of_flags(self):
        raw = [
            course("Too long", hours=41),
            course("Paid", task="Customer support", tools=[tool("X", "paid only")]),
        ]
        result = validate_roadmap(_cells(raw), _pbl(), "Summary")
        assert result.is_valid == (result.free_tool_validated and result.time_limit_validated)
        assert not result.free_tool_validated
        assert not result.time_limit_validated
        assert len(result.errors) == 2

    def test_validation_is_deterministic(self):
        cells = _cells(default_courses() + [course("Too long", hours=50)])
        assert validate_roadmap(cells, _pbl(), "S") == validate_roadmap(cells, _pbl(), "S")
