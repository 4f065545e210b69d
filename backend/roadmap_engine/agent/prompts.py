"""Prompts for roadmap generation."""

import json
from typing import Any

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from roadmap_engine.schemas.project import ProjectContext
from roadmap_engine.services.validator import MAX_COURSE_HOURS

ROADMAP_SYSTEM_PROMPT = f"""
You are an expert in corporate AI training roadmaps. You analyze a company's
situation and needs and design a tailored curriculum for using AI at work.

## Core principles

1. **Free tools only**: every tool used in any course must be usable within its
   free tier.
   - State the free-tier scope of every tool explicitly,
     e.g. "Google Sheets (free: all features)".
   - Never use tools that require a paid plan.

2. **{MAX_COURSE_HOURS}-hour limit**: no course may recommend more than
   {MAX_COURSE_HOURS} hours. The PBL course in total must also stay within
   {MAX_COURSE_HOURS} hours.

3. **Hands-on**: prefer practice over theory.

4. **Measurable results**: every course states its expected outcome and how
   to measure it.

## Output format

Answer with JSON only, exactly in this structure:

{{
  "diagnosis_summary": "Company situation and training needs (2-3 sentences)",
  "roadmap_matrix": [
    {{
      "task_id": "task id",
      "task_name": "job task",
      "beginner": null,
      "intermediate": null,
      "advanced": null
    }}
  ],
  "pbl_course": {{
    "course_name": "PBL course name",
    "total_hours": 40,
    "target_tasks": ["task 1", "task 2"],
    "target_audience": "audience",
    "curriculum": [
      {{
        "module_name": "module",
        "hours": 8,
        "description": "what the module covers",
        "practice": "hands-on exercise",
        "tools": [{{"name": "tool", "free_tier_info": "free-tier scope"}}]
      }}
    ],
    "expected_outcomes": ["outcome"],
    "measurement_methods": ["method"],
    "prerequisites": ["prerequisite"]
  }},
  "courses": [
    {{
      "course_name": "course name",
      "level": "BEGINNER | INTERMEDIATE | ADVANCED",
      "target_task": "job task (same wording as task_name)",
      "target_audience": "audience",
      "recommended_hours": 8,
      "curriculum": ["item"],
      "practice_assignments": ["assignment"],
      "tools": [{{"name": "tool", "free_tier_info": "free-tier scope"}}],
      "expected_outcome": "expected outcome",
      "measurement_method": "measurement method",
      "prerequisites": ["prerequisite"]
    }}
  ]
}}

`courses` must list every course of the matrix; use at most one course per
job task and level.
"""


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2)


def build_user_prompt(context: ProjectContext, revision_prompt: str | None = None) -> str:
    """Render the project context (and optional revision request) as the user turn."""
    sections = [
        "## Company",
        "",
        f"- Name: {context.company_name}",
        f"- Industry: {context.industry or 'n/a'}",
        f"- Size: {context.company_size or 'n/a'}",
        f"- Request: {context.customer_comment or 'none'}",
        "",
        "## Self-assessment",
        "",
        _dump(context.assessment_scores),
        "",
        f"Summary: {context.assessment_summary or 'none'}",
        "",
        "## Field interview",
        "",
        "### Job tasks",
        _dump(context.job_tasks),
        "",
        "### Pain points",
        _dump(context.pain_points),
        "",
        "### Constraints",
        _dump(context.constraints),
        "",
        "### Improvement goals",
        _dump(context.improvement_goals),
        "",
        "### Customer requirements",
        context.customer_requirements or "none",
        "",
        "### Notes",
        context.notes or "none",
    ]

    if context.consultant is not None:
        consultant = context.consultant
        sections += [
            "",
            "## Assigned consultant",
            "",
            f"- Expertise: {', '.join(consultant.expertise_domains)}",
            f"- Teaching levels: {', '.join(consultant.teaching_levels)}",
            f"- Coaching methods: {', '.join(consultant.coaching_methods)}",
            f"- Skills: {', '.join(consultant.skill_tags)}",
        ]

    if revision_prompt:
        sections += [
            "",
            "## Revision request",
            "",
            "The previous roadmap needs the following changes:",
            revision_prompt,
            "",
            "Regenerate the roadmap with these changes applied.",
        ]

    sections += [
        "",
        "Create a tailored AI training roadmap from the information above.",
        "Respond in JSON only.",
    ]
    return "\n".join(sections)


def build_roadmap_messages(
    context: ProjectContext, revision_prompt: str | None = None
) -> list[BaseMessage]:
    return [
        SystemMessage(content=ROADMAP_SYSTEM_PROMPT),
        HumanMessage(content=build_user_prompt(context, revision_prompt)),
    ]
