"""
Tests for the PPTX template compiler
"""

import json
import logging
import zipfile
from io import BytesIO

import pytest
from pptx import Presentation

from teachdoc.core.errors import SpecValidationError, TemplateError
from teachdoc.core.render.pptx_renderer import generate_pptx_from_slides
from teachdoc.core.render.pptx_template import PptxOptions

SLIDES = [
    {"title": "Introduction to Fractions", "content": []},
    {"title": "What is a fraction?", "content": ["A part of a whole", "Numerator over denominator"], "notes": "Use the pizza example."},
    {
        "type": "quote",
        "title": "Famous words",
        "content": ['> "Mathematics is the language of nature" - Galileo'],
        "rawContent": '> "Mathematics is the language of nature" - Galileo',
    },
]


def _options(template_path, **extra):
    kw = {"title": "Fractions Deck", "subtitle": "Everyday Mathematics", "template_path": template_path, "date": "01/02/2026"}
    kw.update(extra)
    return PptxOptions(**kw)


def _slide_text(slide):
    return "\n".join(shape.text_frame.text for shape in slide.shapes if shape.has_text_frame)


class TestGeneratePptx:
    """Template-driven deck compilation."""

    def test_slide_count_and_result(self, template_path):
        result = generate_pptx_from_slides(SLIDES, _options(template_path))
        assert result.filename == "fractions-deck.pptx"
        assert result.content_type.endswith("presentationml.presentation")
        assert result.metadata == {"slideCount": 3}

        prs = Presentation(BytesIO(result.buffer))
        assert len(prs.slides) == 3
        assert prs.core_properties.title == "Fractions Deck"

    def test_filename_keeps_only_letters_and_digits(self, template_path):
        result = generate_pptx_from_slides(SLIDES, _options(template_path, title="Unit_3 Deck"))
        assert result.filename == "unit-3-deck.pptx"

    def test_filename_fallback(self, template_path):
        result = generate_pptx_from_slides(SLIDES, _options(template_path, title=""))
        assert result.filename == "presentation.pptx"

    def test_title_slide_filled(self, template_path):
        prs = Presentation(BytesIO(generate_pptx_from_slides(SLIDES, _options(template_path)).buffer))
        text = _slide_text(prs.slides[0])
        assert "Introduction to Fractions" in text
        assert "Everyday Mathematics" in text
        assert "01/02/2026" in text
        assert "{{" not in text

    def test_content_slide_bullets_and_notes(self, template_path):
        prs = Presentation(BytesIO(generate_pptx_from_slides(SLIDES, _options(template_path)).buffer))
        slide = prs.slides[1]
        text = _slide_text(slide)
        assert "What is a fraction?" in text
        assert "• A part of a whole" in text
        assert "• Numerator over denominator" in text
        assert slide.has_notes_slide
        assert slide.notes_slide.notes_text_frame.text == "Use the pizza example."

    def test_quote_slide(self, template_path):
        prs = Presentation(BytesIO(generate_pptx_from_slides(SLIDES, _options(template_path)).buffer))
        text = _slide_text(prs.slides[2])
        assert "Mathematics is the language of nature" in text
        assert "Galileo" in text

    def test_template_notes_dropped(self, template_path):
        """Notes carried by template slides never leak into the output."""
        result = generate_pptx_from_slides(SLIDES[:1], _options(template_path))
        with zipfile.ZipFile(BytesIO(result.buffer)) as zf:
            for name in zf.namelist():
                assert b"template notes" not in zf.read(name)

    def test_relationship_ids_unique(self, template_path):
        result = generate_pptx_from_slides(SLIDES, _options(template_path))
        with zipfile.ZipFile(BytesIO(result.buffer)) as zf:
            rels = zf.read("ppt/_rels/presentation.xml.rels").decode("utf-8")
        ids = [part.split('"')[0] for part in rels.split('Id="')[1:]]
        assert len(ids) == len(set(ids))

    def test_deterministic_output(self, template_path):
        opts = _options(template_path)
        assert generate_pptx_from_slides(SLIDES, opts).buffer == generate_pptx_from_slides(SLIDES, opts).buffer


class TestTemplateErrors:
    """Missing template and bad input."""

    def test_missing_template(self, temp_dir):
        with pytest.raises(TemplateError):
            generate_pptx_from_slides(SLIDES, _options(temp_dir / "missing.pptx"))

    def test_no_template_path(self):
        with pytest.raises(TemplateError):
            generate_pptx_from_slides(SLIDES, PptxOptions(title="x"))

    def test_invalid_slides(self, template_path):
        with pytest.raises(SpecValidationError):
            generate_pptx_from_slides([{"title": "no content"}], _options(template_path))

    def test_manifest_slide_out_of_range_falls_back(self, temp_dir, template_path, caplog):
        """A manifest layout pointing past the deck reuses the first template slide."""
        manifest = temp_dir / "manifest.json"
        manifest.write_text(
            json.dumps({"tpl": {"layouts": [{"name": "Content", "slideNumber": 9, "placeholders": [{"name": "slide_title"}]}]}}),
            encoding="utf-8",
        )
        opts = _options(template_path, template_id="tpl", manifest_path=manifest)
        with caplog.at_level(logging.WARNING):
            result = generate_pptx_from_slides([{"title": "Only", "content": []}], opts)

        assert "template slide 9 not found" in caplog.text
        prs = Presentation(BytesIO(result.buffer))
        assert len(prs.slides) == 1
        assert "{{" not in _slide_text(prs.slides[0])
