"""student_handout.py — build a PdfSpec for a one-lesson student handout.

The builder lays sections out top to bottom with a running y cursor (PDF
points, origin bottom-left) and starts a new page whenever a section's
estimated height would cross the bottom margin.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from teachdoc.core.builders.markdown_text import extract_key_points, wrap_text
from teachdoc.core.types import DEFAULT_CREATOR, ActivityData, CompetencyData, CourseData, LessonData, rgb

COLORS = {
    "black": rgb(0, 0, 0),
    "darkGray": rgb(0.3, 0.3, 0.3),
    "lightGray": rgb(0.85, 0.85, 0.85),
    "headerBg": rgb(0.95, 0.95, 0.95),
    "checkboxBlue": rgb(0.2, 0.4, 0.8),
}

# Letter, 1in margins
PAGE_WIDTH = 612
PAGE_HEIGHT = 792
MARGIN_TOP = 72
MARGIN_BOTTOM = 72
MARGIN_LEFT = 72
MARGIN_RIGHT = 72
CONTENT_WIDTH = PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT

NOTES_LINE_SPACING = 25


@dataclass
class StudentHandoutOptions:
    page_size: str = "Letter"
    include_notes: bool = True
    notes_lines: int = 8


def _text(x: float, y: float, text: str, size: float, font: str = "Helvetica", color: str = "black") -> dict[str, Any]:
    return {"type": "text", "x": x, "y": y, "text": text, "fontSize": size, "font": font, "color": COLORS[color]}


def _heading(y: float, text: str) -> dict[str, Any]:
    return _text(MARGIN_LEFT, y, text, 14, "HelveticaBold")


def build_header(course: CourseData, lesson: LessonData, y: float) -> tuple[list[dict[str, Any]], float]:
    elements = [
        {
            "type": "rectangle",
            "x": MARGIN_LEFT - 10,
            "y": y - 50,
            "width": CONTENT_WIDTH + 20,
            "height": 60,
            "color": COLORS["headerBg"],
        },
        _text(MARGIN_LEFT, y - 15, course.title, 10, color="darkGray"),
        _text(MARGIN_LEFT, y - 35, lesson.title, 18, "HelveticaBold"),
        {
            "type": "line",
            "startX": MARGIN_LEFT,
            "startY": y - 55,
            "endX": PAGE_WIDTH - MARGIN_RIGHT,
            "endY": y - 55,
            "color": COLORS["darkGray"],
            "thickness": 1,
        },
    ]
    return elements, y - 75


def _objective_text(comp: CompetencyData) -> str:
    if comp.description.startswith("Can "):
        return comp.description
    return f"Can {comp.description.lower()}"


def build_objectives(competencies: list[CompetencyData], y: float) -> tuple[list[dict[str, Any]], float]:
    if not competencies:
        return [], y

    elements = [_heading(y, "Learning Objectives")]
    current_y = y - 25
    for comp in competencies:
        elements.append(
            {
                "type": "rectangle",
                "x": MARGIN_LEFT,
                "y": current_y - 10,
                "width": 12,
                "height": 12,
                "borderColor": COLORS["checkboxBlue"],
                "borderWidth": 1,
            }
        )
        lines = wrap_text(_objective_text(comp), CONTENT_WIDTH - 25, 11)
        for i, line in enumerate(lines):
            elements.append(_text(MARGIN_LEFT + 20, current_y - i * 14, line, 11))
        current_y -= len(lines) * 14 + 8

    return elements, current_y - 15


def build_key_concepts(lesson: LessonData, y: float) -> tuple[list[dict[str, Any]], float]:
    points = extract_key_points(lesson.body, lesson.content_type)
    if not points:
        return [], y

    elements = [_heading(y, "Key Concepts")]
    current_y = y - 25
    for point in points:
        elements.append(_text(MARGIN_LEFT, current_y, "•", 11, color="darkGray"))
        lines = wrap_text(point, CONTENT_WIDTH - 20, 11)
        for i, line in enumerate(lines):
            elements.append(_text(MARGIN_LEFT + 15, current_y - i * 14, line, 11))
        current_y -= len(lines) * 14 + 8

    return elements, current_y - 15


def build_activities(activities: list[ActivityData], y: float) -> tuple[list[dict[str, Any]], float]:
    if not activities:
        return [], y

    elements = [_heading(y, "Activities")]
    current_y = y - 25
    for activity in activities:
        elements.append(_text(MARGIN_LEFT, current_y, activity.title, 12, "HelveticaBold"))
        current_y -= 18

        lines = wrap_text(activity.instructions, CONTENT_WIDTH - 10, 10)
        shown = lines[:4]
        for i, line in enumerate(shown):
            if i == 3 and len(lines) > 4:
                line += "..."
            elements.append(_text(MARGIN_LEFT + 10, current_y - i * 13, line, 10, color="darkGray"))
        current_y -= len(shown) * 13 + 15

    return elements, current_y - 10


def build_notes(y: float, line_count: int = 10) -> tuple[list[dict[str, Any]], float]:
    elements = [_heading(y, "Notes")]
    current_y = y - 25
    drawn = 0
    while drawn < line_count and current_y > MARGIN_BOTTOM + NOTES_LINE_SPACING:
        elements.append(
            {
                "type": "line",
                "startX": MARGIN_LEFT,
                "startY": current_y,
                "endX": PAGE_WIDTH - MARGIN_RIGHT,
                "endY": current_y,
                "color": COLORS["lightGray"],
                "thickness": 0.5,
            }
        )
        current_y -= NOTES_LINE_SPACING
        drawn += 1
    return elements, current_y


class _Pager:
    def __init__(self, page_size: str) -> None:
        self.page_size = page_size
        self.pages: list[dict[str, Any]] = []
        self.current: list[dict[str, Any]] = []
        self.y: float = PAGE_HEIGHT - MARGIN_TOP

    def ensure_room(self, needed: float) -> None:
        if self.y - needed < MARGIN_BOTTOM:
            self.pages.append({"size": self.page_size, "elements": self.current})
            self.current = []
            self.y = PAGE_HEIGHT - MARGIN_TOP

    def add(self, section: tuple[list[dict[str, Any]], float]) -> None:
        elements, new_y = section
        self.current.extend(elements)
        self.y = new_y

    def finish(self) -> list[dict[str, Any]]:
        self.pages.append({"size": self.page_size, "elements": self.current})
        return self.pages


def build_student_handout_spec(
    course: CourseData,
    lesson: LessonData,
    competencies: list[CompetencyData],
    activities: list[ActivityData],
    options: StudentHandoutOptions | None = None,
) -> dict[str, Any]:
    opts = options or StudentHandoutOptions()
    pager = _Pager(opts.page_size)

    pager.add(build_header(course, lesson, pager.y))

    if competencies:
        pager.ensure_room(100)
        pager.add(build_objectives(competencies, pager.y))

    if lesson.body:
        pager.ensure_room(100)
        pager.add(build_key_concepts(lesson, pager.y))

    if activities:
        pager.ensure_room(80)
        pager.add(build_activities(activities, pager.y))

    if opts.include_notes:
        pager.ensure_room(80)
        pager.add(build_notes(pager.y, opts.notes_lines))

    return {
        "title": f"{lesson.title} - Student Handout",
        "author": course.title,
        "subject": lesson.description,
        "creator": DEFAULT_CREATOR,
        "pages": pager.finish(),
    }
