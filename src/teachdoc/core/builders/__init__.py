"""Spec builders package.

Turns course/lesson/competency/activity records into compiler specs:

- `build_student_handout_spec(course, lesson, competencies, activities, options)` -> PdfSpec dict
- `build_instructor_guide_spec(course, lesson, competencies, activities, options)` -> DocxSpec dict

Keep this module as a thin re-export layer:

    from teachdoc.core.builders import build_student_handout_spec
"""

from __future__ import annotations

from .instructor_guide import InstructorGuideOptions, build_instructor_guide_spec
from .student_handout import StudentHandoutOptions, build_student_handout_spec

__all__ = [
    "InstructorGuideOptions",
    "StudentHandoutOptions",
    "build_instructor_guide_spec",
    "build_student_handout_spec",
]
