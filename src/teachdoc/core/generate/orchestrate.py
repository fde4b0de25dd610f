"""orchestrate.py — compile the requested documents for a lesson, then persist them.

Generation is two-phase: every requested document is compiled in memory
first; only when all of them succeed is the batch written through the
store. A failure in either phase leaves nothing behind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable

from teachdoc.core.builders import build_instructor_guide_spec, build_student_handout_spec
from teachdoc.core.config import GeneratorConfig
from teachdoc.core.errors import DocumentGenerationError
from teachdoc.core.render.docx_renderer import generate_docx
from teachdoc.core.render.pdf_renderer import generate_pdf
from teachdoc.core.render.pptx_renderer import generate_pptx_from_slides
from teachdoc.core.render.pptx_template import PptxOptions
from teachdoc.core.slides.slide_markdown import parse_slide_markdown
from teachdoc.core.store.document_store import DocumentStore, GeneratedDocument, PendingDocument
from teachdoc.core.types import DOCUMENT_TYPES, GenerationResult, LessonBundle

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def _student_handout(bundle: LessonBundle, config: GeneratorConfig) -> GenerationResult:
    spec = build_student_handout_spec(bundle.course, bundle.lesson, bundle.competencies, bundle.activities)
    spec["creator"] = config.creator
    return generate_pdf(spec)


def _instructor_guide(bundle: LessonBundle, config: GeneratorConfig) -> GenerationResult:
    spec = build_instructor_guide_spec(bundle.course, bundle.lesson, bundle.competencies, bundle.activities)
    spec["creator"] = config.creator
    return generate_docx(spec)


def _lecture_slides(bundle: LessonBundle, config: GeneratorConfig) -> GenerationResult:
    lesson = bundle.lesson
    if not lesson.slide_content.strip():
        raise DocumentGenerationError("lecture-slides", "lesson has no slide content")
    if config.template_path is None:
        raise DocumentGenerationError("lecture-slides", "no PPTX template configured")

    slides = parse_slide_markdown(lesson.slide_content, lesson.title)
    if not slides:
        raise DocumentGenerationError("lecture-slides", "slide content produced no slides")

    options = PptxOptions(
        title=lesson.title,
        subtitle=bundle.course.title,
        template_path=config.template_path,
        template_id=config.template_id,
        manifest_path=config.manifest_path,
    )
    return generate_pptx_from_slides(slides, options)


def _not_implemented(document_type: str) -> Callable[[LessonBundle, GeneratorConfig], GenerationResult]:
    def compile_(_bundle: LessonBundle, _config: GeneratorConfig) -> GenerationResult:
        raise DocumentGenerationError(document_type, "document type not implemented yet")

    return compile_


COMPILERS: dict[str, Callable[[LessonBundle, GeneratorConfig], GenerationResult]] = {
    "student-handout": _student_handout,
    "instructor-guide": _instructor_guide,
    "lecture-slides": _lecture_slides,
    "assessment-worksheet": _not_implemented("assessment-worksheet"),
    "grading-rubric": _not_implemented("grading-rubric"),
}


def _dedupe(document_types: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for t in document_types:
        if t not in seen:
            seen.append(t)
    return seen


def compile_documents(
    bundle: LessonBundle,
    document_types: Iterable[str],
    config: GeneratorConfig,
    *,
    progress: Callable[[Iterable[str]], Iterable[str]] | None = None,
) -> list[tuple[str, GenerationResult]]:
    """Phase 1: compile every requested type in memory, in request order."""
    types = _dedupe(document_types)
    compiled: list[tuple[str, GenerationResult]] = []
    for document_type in progress(types) if progress else types:
        if document_type not in DOCUMENT_TYPES:
            raise DocumentGenerationError(document_type, "unknown document type")
        try:
            result = COMPILERS[document_type](bundle, config)
        except DocumentGenerationError:
            raise
        except Exception as e:
            logger.error("compiling %s failed: %s", document_type, e)
            raise DocumentGenerationError(document_type, str(e)) from e
        logger.info("compiled %s: %s (%d bytes)", document_type, result.filename, len(result.buffer))
        compiled.append((document_type, result))
    return compiled


def generate_documents(
    store: DocumentStore,
    bundle: LessonBundle,
    document_types: Iterable[str],
    config: GeneratorConfig,
    generated_by: str | None = None,
    *,
    progress: Callable[[Iterable[str]], Iterable[str]] | None = None,
) -> list[GeneratedDocument]:
    compiled = compile_documents(bundle, document_types, config, progress=progress)

    pending = [
        PendingDocument(
            course_id=bundle.course.id,
            unit_id=bundle.unit_id,
            lesson_id=bundle.lesson.id,
            document_type=document_type,
            template_id=config.template_id if document_type == "lecture-slides" else None,
            generated_by=generated_by,
            result=result,
        )
        for document_type, result in compiled
    ]
    records = store.save_batch(pending)
    logger.info("generated %d document(s) for lesson %s", len(records), bundle.lesson.id)
    return records


def summarize(records: list[GeneratedDocument]) -> list[dict[str, Any]]:
    return [
        {
            "id": r.id,
            "documentType": r.document_type,
            "filename": r.filename,
            "storagePath": r.storage_path,
            "fileSize": r.file_size,
            "checksum": r.checksum,
            "metadata": r.metadata,
        }
        for r in records
    ]
