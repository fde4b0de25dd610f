"""types.py — shared value types: colors, compiler results and course records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PT_PER_INCH = 72.0

# Named page presets in points (width, height).
PAGE_SIZES: dict[str, tuple[float, float]] = {
    "A4": (595.28, 841.89),
    "Letter": (612.0, 792.0),
    "Legal": (612.0, 1008.0),
}

SLIDE_TYPES = (
    "title",
    "assertion",
    "definition",
    "process",
    "comparison",
    "quote",
    "question",
    "example",
    "summary",
    "default",
)

DOCUMENT_TYPES = (
    "lecture-slides",
    "student-handout",
    "instructor-guide",
    "assessment-worksheet",
    "grading-rubric",
)

DEFAULT_CREATOR = "Teach Document Generator"


def rgb(r: float, g: float, b: float) -> dict[str, float]:
    return {"r": r, "g": g, "b": b}


def to_rgb_tuple(color: Any, default: tuple[float, float, float] | None = None) -> tuple[float, float, float] | None:
    if not isinstance(color, dict):
        return default
    return (float(color["r"]), float(color["g"]), float(color["b"]))


def resolve_page_size(size: Any) -> tuple[float, float]:
    if size is None:
        return PAGE_SIZES["Letter"]
    if isinstance(size, str):
        return PAGE_SIZES[size]
    w, h = size
    return (float(w), float(h))


@dataclass
class GenerationResult:
    buffer: bytes
    filename: str
    content_type: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _str(d: dict[str, Any], key: str) -> str:
    v = d.get(key)
    return v if isinstance(v, str) else ""


@dataclass
class CourseData:
    id: str
    title: str
    description: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "CourseData":
        return cls(id=_str(d, "id"), title=_str(d, "title"), description=_str(d, "description"))


@dataclass
class LessonData:
    id: str
    title: str
    description: str = ""
    content_type: str = "markdown"
    body: str = ""
    # Slide markdown ("---" separated); only needed for lecture slides.
    slide_content: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "LessonData":
        content = d.get("content") if isinstance(d.get("content"), dict) else {}
        return cls(
            id=_str(d, "id"),
            title=_str(d, "title"),
            description=_str(d, "description"),
            content_type=_str(content, "type") or "markdown",
            body=_str(content, "body"),
            slide_content=_str(d, "slide_content") or _str(d, "slideContent"),
        )


@dataclass
class CompetencyData:
    id: str
    code: str
    title: str
    description: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "CompetencyData":
        return cls(id=_str(d, "id"), code=_str(d, "code"), title=_str(d, "title"), description=_str(d, "description"))


@dataclass
class ActivityData:
    id: str
    type: str
    title: str
    instructions: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ActivityData":
        return cls(id=_str(d, "id"), type=_str(d, "type"), title=_str(d, "title"), instructions=_str(d, "instructions"))


@dataclass
class LessonBundle:
    """Everything one generation request needs about a lesson."""

    course: CourseData
    lesson: LessonData
    unit_id: str | None = None
    competencies: list[CompetencyData] = field(default_factory=list)
    activities: list[ActivityData] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "LessonBundle":
        unit_id = d.get("unitId", d.get("unit_id"))
        return cls(
            course=CourseData.from_dict(d.get("course") or {}),
            lesson=LessonData.from_dict(d.get("lesson") or {}),
            unit_id=unit_id if isinstance(unit_id, str) and unit_id else None,
            competencies=[CompetencyData.from_dict(c) for c in d.get("competencies") or []],
            activities=[ActivityData.from_dict(a) for a in d.get("activities") or []],
        )
