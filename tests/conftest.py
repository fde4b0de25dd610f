"""
Pytest configuration and fixtures: sample lesson records, a tiny PNG, and a
four-slide PPTX template built in code.
"""

from pathlib import Path

import fitz  # PyMuPDF
import pytest
from pptx import Presentation
from pptx.util import Inches

from teachdoc.core.config import GeneratorConfig
from teachdoc.core.store import DocumentStore
from teachdoc.core.types import LessonBundle

TEMPLATE_SLIDES = [
    ["{{course_title}}", "{{subtitle}}", "{{date}}"],
    ["{{slide_title}}", "{{main_content}}"],
    ["{{quote_text}}", "{{attribution}}"],
    ["{{slide_title}}", "{{left_column}}", "{{right_column}}"],
]

SLIDE_MARKDOWN = """## Welcome to Fractions
<!-- type: title -->

---

## What is a fraction?
- A part of a whole
- Written as numerator over denominator
Notes: Use the pizza example.

---

<!-- type: quote -->
## Famous words
> "Mathematics is the language of nature" - Galileo
"""


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """A fresh temporary directory per test."""
    return tmp_path


@pytest.fixture
def slide_markdown() -> str:
    return SLIDE_MARKDOWN


@pytest.fixture
def png_bytes() -> bytes:
    """A 4x4 opaque RGB PNG."""
    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, 4, 4), False)
    pix.clear_with(200)
    return pix.tobytes("png")


@pytest.fixture
def bundle_dict() -> dict:
    return {
        "unitId": "unit-1",
        "course": {"id": "course-1", "title": "Everyday Mathematics", "description": "Grade 4 maths"},
        "lesson": {
            "id": "lesson-1",
            "title": "Introduction to Fractions",
            "description": "Parts of a whole",
            "content": {
                "type": "markdown",
                "body": (
                    "# Fractions\n\n"
                    "A fraction describes a part of a whole object or a group.\n\n"
                    "The **numerator** counts how many equal parts are taken.\n\n"
                    "Short line.\n\n"
                    "The denominator tells how many equal parts make the whole."
                ),
            },
            "slide_content": SLIDE_MARKDOWN,
        },
        "competencies": [
            {"id": "c1", "code": "MATH.4.1", "title": "Identify fractions", "description": "Identify simple fractions"},
            {"id": "c2", "code": "", "title": "Compare fractions", "description": "Can compare two fractions"},
        ],
        "activities": [
            {"id": "a1", "type": "group", "title": "Pizza party", "instructions": "Cut a paper pizza into equal slices."},
            {"id": "a2", "type": "individual", "title": "Worksheet", "instructions": "Shade the given fraction."},
        ],
    }


@pytest.fixture
def bundle(bundle_dict: dict) -> LessonBundle:
    return LessonBundle.from_dict(bundle_dict)


@pytest.fixture
def template_path(temp_dir: Path) -> Path:
    """Template deck: title, content (with template notes), quote, two column."""
    prs = Presentation()
    blank = prs.slide_layouts[6]
    for i, tags in enumerate(TEMPLATE_SLIDES):
        slide = prs.slides.add_slide(blank)
        for j, tag in enumerate(tags):
            box = slide.shapes.add_textbox(Inches(1), Inches(1 + j * 1.5), Inches(8), Inches(1))
            box.text_frame.text = tag
        if i == 1:
            slide.notes_slide.notes_text_frame.text = "template notes"

    path = temp_dir / "template.pptx"
    prs.save(str(path))
    return path


@pytest.fixture
def config(temp_dir: Path, template_path: Path) -> GeneratorConfig:
    return GeneratorConfig(
        storage_dir=temp_dir / "storage",
        database_path=temp_dir / "data" / "teachdoc.db",
        template_path=template_path,
    )


@pytest.fixture
def store(config: GeneratorConfig) -> DocumentStore:
    s = DocumentStore(config.database_path, config.storage_dir)
    s.ensure_schema()
    return s
