"""
Tests for lesson document generation (compile, then persist)
"""

from io import BytesIO

import fitz  # PyMuPDF
import pytest
from docx import Document
from pptx import Presentation

from teachdoc.core.errors import DocumentGenerationError
from teachdoc.core.generate import compile_documents, content_type_for, generate_documents, summarize
from teachdoc.core.store.document_store import md5_hex


class TestContentType:
    def test_known_and_unknown(self):
        assert content_type_for("a.pdf") == "application/pdf"
        assert content_type_for("A.DOCX").endswith("wordprocessingml.document")
        assert content_type_for("deck.pptx").endswith("presentationml.presentation")
        assert content_type_for("notes.txt") == "application/octet-stream"


class TestCompile:
    """In-memory compilation."""

    def test_all_implemented_types(self, bundle, config):
        compiled = dict(compile_documents(bundle, ["student-handout", "instructor-guide", "lecture-slides"], config))

        handout = compiled["student-handout"]
        assert handout.filename.endswith(".pdf")
        with fitz.open(stream=handout.buffer, filetype="pdf") as doc:
            assert doc.page_count == handout.metadata["pageCount"]
            assert doc.metadata["creator"] == config.creator

        guide = Document(BytesIO(compiled["instructor-guide"].buffer))
        assert guide.core_properties.title == "Introduction to Fractions - Instructor Guide"

        deck = Presentation(BytesIO(compiled["lecture-slides"].buffer))
        assert len(deck.slides) == 3

    def test_duplicates_compiled_once(self, bundle, config):
        compiled = compile_documents(bundle, ["student-handout", "instructor-guide", "student-handout"], config)
        assert [t for t, _ in compiled] == ["student-handout", "instructor-guide"]

    def test_progress_wraps_types(self, bundle, config):
        seen = []

        def progress(types):
            seen.extend(types)
            return types

        compile_documents(bundle, ["instructor-guide"], config, progress=progress)
        assert seen == ["instructor-guide"]

    @pytest.mark.parametrize("document_type", ["assessment-worksheet", "grading-rubric"])
    def test_unimplemented_types(self, bundle, config, document_type):
        with pytest.raises(DocumentGenerationError) as info:
            compile_documents(bundle, [document_type], config)
        assert info.value.document_type == document_type

    def test_unknown_type(self, bundle, config):
        with pytest.raises(DocumentGenerationError, match="unknown document type"):
            compile_documents(bundle, ["poster"], config)

    def test_slides_need_content(self, bundle, config):
        bundle.lesson.slide_content = "   "
        with pytest.raises(DocumentGenerationError, match="no slide content"):
            compile_documents(bundle, ["lecture-slides"], config)

    def test_slides_need_template(self, bundle, config):
        config.template_path = None
        with pytest.raises(DocumentGenerationError, match="no PPTX template"):
            compile_documents(bundle, ["lecture-slides"], config)

    def test_missing_template_file_wrapped(self, bundle, config, temp_dir):
        config.template_path = temp_dir / "gone.pptx"
        with pytest.raises(DocumentGenerationError) as info:
            compile_documents(bundle, ["lecture-slides"], config)
        assert info.value.document_type == "lecture-slides"
        assert info.value.__cause__ is not None


class TestGenerate:
    """Compile then persist through the store."""

    def test_records_and_files(self, store, bundle, config):
        config.template_id = "tpl-1"
        records = generate_documents(
            store, bundle, ["student-handout", "lecture-slides"], config, generated_by="teacher-1"
        )
        assert [r.document_type for r in records] == ["student-handout", "lecture-slides"]
        for r in records:
            assert r.course_id == "course-1"
            assert r.unit_id == "unit-1"
            assert r.lesson_id == "lesson-1"
            assert r.generated_by == "teacher-1"
            data = store.absolute_path(r).read_bytes()
            assert r.checksum == md5_hex(data)
            assert r.file_size == len(data)

        by_type = {r.document_type: r for r in records}
        assert by_type["lecture-slides"].template_id == "tpl-1"
        assert by_type["student-handout"].template_id is None
        assert len(store.list_for_lesson("lesson-1")) == 2

    def test_failure_persists_nothing(self, store, bundle, config):
        with pytest.raises(DocumentGenerationError):
            generate_documents(store, bundle, ["student-handout", "grading-rubric"], config)
        assert store.list_for_lesson("lesson-1") == []
        assert not store.storage_dir.exists() or not any(p.is_file() for p in store.storage_dir.rglob("*"))

    def test_summarize(self, store, bundle, config):
        records = generate_documents(store, bundle, ["instructor-guide"], config)
        [row] = summarize(records)
        assert row["documentType"] == "instructor-guide"
        assert row["storagePath"] == records[0].storage_path
        assert row["fileSize"] == records[0].file_size
