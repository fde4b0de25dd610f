"""
Tests for slide markdown parsing
"""

from teachdoc.core.slides.slide_markdown import parse_annotations, parse_slide_markdown
from teachdoc.core.validate.schema_validate import iter_spec_errors


class TestParseAnnotations:
    """One slide's annotations, body and notes."""

    def test_type_layout_notes(self):
        ann = parse_annotations("<!-- type: quote -->\n<!-- layout: two-column -->\n## T\nbody\nNotes: aloud")
        assert ann["type"] == "quote"
        assert ann["layout"] == "two-column"
        assert ann["notes"] == "aloud"
        assert ann["content"] == "## T\nbody"

    def test_defaults(self):
        ann = parse_annotations("## Plain")
        assert ann["type"] is None
        assert ann["layout"] == "single"
        assert ann["notes"] is None


class TestParseSlideMarkdown:
    """Whole-deck parsing."""

    def test_sample_deck(self, slide_markdown):
        slides = parse_slide_markdown(slide_markdown, "Fallback")
        assert [s["title"] for s in slides] == ["Welcome to Fractions", "What is a fraction?", "Famous words"]
        assert slides[0]["type"] == "title"
        assert slides[0]["content"] == []
        assert slides[1]["content"] == ["A part of a whole", "Written as numerator over denominator"]
        assert slides[1]["notes"] == "Use the pizza example."
        assert "type" not in slides[1]
        assert slides[2]["type"] == "quote"
        assert slides[2]["rawContent"].startswith("## Famous words")

    def test_output_is_valid_slide_data(self, slide_markdown):
        assert iter_spec_errors("slide_data", parse_slide_markdown(slide_markdown, "Fallback")) == []

    def test_default_title_used(self):
        slides = parse_slide_markdown("- one\n- two", "Lesson title")
        assert slides == [{"title": "Lesson title", "content": ["one", "two"], "rawContent": "- one\n- two"}]

    def test_unknown_type_becomes_default(self):
        slides = parse_slide_markdown("<!-- type: poem -->\n## Verse\nline", "x")
        assert slides[0]["type"] == "default"

    def test_placeholder_lines_skipped(self):
        slides = parse_slide_markdown("## Diagram\n[IMAGE: a pizza]\n[DIAGRAM: flow]\n<div>x</div>\nkept", "x")
        assert slides[0]["content"] == ["kept"]

    def test_empty_parts_dropped(self):
        assert parse_slide_markdown("\n\n---\n\n", "x") == []
