"""instructor_guide.py — build a DocxSpec for a lesson's instructor guide."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from teachdoc.core.types import DEFAULT_CREATOR, ActivityData, CompetencyData, CourseData, LessonData

RULE_LINE = "_" * 72
HEADER_SHADING = "DDDDDD"
MISSING_CODE = "—"


@dataclass
class InstructorGuideOptions:
    include_timing_notes: bool = True
    include_facilitation_tips: bool = True
    include_assessment_notes: bool = True


def _para(text: str | None = None, runs: list[dict[str, Any]] | None = None, **kw: Any) -> dict[str, Any]:
    p: dict[str, Any] = {"type": "paragraph"}
    if runs is not None:
        p["runs"] = runs
    elif text is not None:
        p["text"] = text
    p.update(kw)
    return p


def _section_heading(text: str, before: int) -> dict[str, Any]:
    return _para(text, heading="3", spacing={"before": before, "after": 100})


def build_title_section(course: CourseData, lesson: LessonData) -> list[dict[str, Any]]:
    content = [
        _para(course.title, heading="1", alignment="center", spacing={"after": 100}),
        _para(
            runs=[{"text": "Instructor Guide: ", "bold": True}, {"text": lesson.title}],
            heading="2",
            alignment="center",
            spacing={"after": 200},
        ),
    ]
    if lesson.description:
        content.append(
            _para(runs=[{"text": "Overview: ", "bold": True}, {"text": lesson.description}], spacing={"after": 200})
        )
    return content


def build_objectives_section(competencies: list[CompetencyData]) -> list[dict[str, Any]]:
    if not competencies:
        return []

    header = {
        "cells": [
            {"content": "Code", "bold": True, "shading": HEADER_SHADING},
            {"content": "Competency", "bold": True, "shading": HEADER_SHADING},
            {"content": "Assessment Notes", "bold": True, "shading": HEADER_SHADING},
        ],
        "isHeader": True,
    }
    rows = [header] + [
        # last column left blank for the instructor
        {"cells": [{"content": c.code or MISSING_CODE}, {"content": c.title}, {"content": ""}]}
        for c in competencies
    ]
    return [
        _para("Learning Objectives", heading="3", spacing={"before": 200, "after": 100}),
        {"type": "table", "rows": rows, "columnWidths": [1, 3, 2], "borders": True},
    ]


def build_activities_section(activities: list[ActivityData], options: InstructorGuideOptions) -> list[dict[str, Any]]:
    if not activities:
        return []

    content = [_section_heading("Activities & Facilitation", 300)]
    for activity in activities:
        content.append(
            _para(
                runs=[{"text": activity.title, "bold": True}, {"text": f" ({activity.type})", "italic": True}],
                spacing={"before": 200, "after": 50},
            )
        )
        if activity.instructions:
            content.append(_para(activity.instructions, spacing={"after": 100}))

        if options.include_timing_notes:
            content.append(
                _para(
                    runs=[{"text": "Suggested Time: ", "bold": True, "italic": True}, {"text": "_____ minutes"}],
                    spacing={"after": 50},
                )
            )

        if options.include_facilitation_tips:
            content.append(
                _para(runs=[{"text": "Facilitation Tips:", "bold": True, "italic": True}], spacing={"after": 50})
            )
            content.append(_para(RULE_LINE, spacing={"after": 50}))
            content.append(_para(RULE_LINE, spacing={"after": 100}))
    return content


def build_assessment_section(competencies: list[CompetencyData], options: InstructorGuideOptions) -> list[dict[str, Any]]:
    if not options.include_assessment_notes or not competencies:
        return []

    content = [
        _section_heading("Assessment Guidelines", 300),
        _para("Use the following criteria to assess student competency:", spacing={"after": 100}),
    ]
    for comp in competencies:
        content.append(
            _para(
                runs=[{"text": f"{comp.code or MISSING_CODE}: ", "bold": True}, {"text": comp.title}],
                bullet=True,
                spacing={"after": 50},
            )
        )
        if comp.description:
            content.append(_para(comp.description, spacing={"after": 100}))
    return content


def build_notes_section(line_count: int = 10) -> list[dict[str, Any]]:
    return [_section_heading("Additional Notes", 300)] + [
        _para(RULE_LINE, spacing={"after": 50}) for _ in range(line_count)
    ]


def build_instructor_guide_spec(
    course: CourseData,
    lesson: LessonData,
    competencies: list[CompetencyData],
    activities: list[ActivityData],
    options: InstructorGuideOptions | None = None,
) -> dict[str, Any]:
    opts = options or InstructorGuideOptions()

    content = (
        build_title_section(course, lesson)
        + build_objectives_section(competencies)
        + build_activities_section(activities, opts)
        + build_assessment_section(competencies, opts)
        + build_notes_section()
    )

    section = {
        "header": {
            "paragraphs": [
                _para(runs=[{"text": course.title, "bold": True}, {"text": "  |  INSTRUCTOR GUIDE"}], alignment="left")
            ]
        },
        "footer": {"paragraphs": [_para("Confidential - For Instructor Use Only", alignment="center")]},
        "content": content,
    }

    return {
        "title": f"{lesson.title} - Instructor Guide",
        "creator": DEFAULT_CREATOR,
        "description": f"Instructor guide for {lesson.title} in {course.title}",
        "sections": [section],
    }
