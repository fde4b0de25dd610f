"""
Tests for the DOCX compiler
"""

from io import BytesIO

import pytest
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml.ns import qn

from teachdoc.core.errors import SpecValidationError
from teachdoc.core.render.docx_renderer import generate_docx


def _doc(result):
    return Document(BytesIO(result.buffer))


def _spec(content, **extra):
    spec = {"title": "Guide", "sections": [{"content": content}]}
    spec.update(extra)
    return spec


class TestParagraphs:
    """Paragraph text, runs, headings and lists."""

    def test_plain_and_runs(self):
        result = generate_docx(
            _spec(
                [
                    {"type": "paragraph", "text": "Plain text"},
                    {
                        "type": "paragraph",
                        "runs": [
                            {"text": "Bold ", "bold": True},
                            {"text": "red", "color": "#FF0000", "italic": True, "fontSize": 14},
                        ],
                    },
                ]
            )
        )
        assert result.filename == "guide.docx"
        assert result.metadata == {}

        paras = _doc(result).paragraphs
        assert paras[0].text == "Plain text"
        runs = paras[1].runs
        assert runs[0].bold is True
        assert str(runs[1].font.color.rgb) == "FF0000"
        assert runs[1].italic is True
        assert runs[1].font.size.pt == 14

    def test_heading_and_alignment(self):
        result = generate_docx(_spec([{"type": "paragraph", "text": "Title", "heading": "1", "alignment": "center"}]))
        p = _doc(result).paragraphs[0]
        assert p.style.name == "Heading 1"
        assert p.alignment == WD_ALIGN_PARAGRAPH.CENTER

    def test_numbered_paragraphs_share_definition(self):
        result = generate_docx(
            _spec(
                [
                    {"type": "paragraph", "text": "first", "numbering": True},
                    {"type": "paragraph", "text": "second", "numbering": True},
                ]
            )
        )
        doc = _doc(result)
        num_ids = [p._p.pPr.numPr.numId.val for p in doc.paragraphs[:2]]
        assert num_ids[0] == num_ids[1]

        numbering = doc.part.numbering_part.element
        lvl_texts = numbering.xpath(".//w:lvlText/@w:val")
        assert "%1." in lvl_texts

    def test_bullet_style(self):
        result = generate_docx(_spec([{"type": "paragraph", "text": "point", "bullet": True}]))
        assert _doc(result).paragraphs[0].style.name == "List Bullet"

    def test_heading_bullet_keeps_both(self):
        result = generate_docx(_spec([{"type": "paragraph", "text": "Topic", "heading": "2", "bullet": True}]))
        doc = _doc(result)
        p = doc.paragraphs[0]
        assert p.style.name == "Heading 2"
        num_id = p._p.pPr.numPr.numId.val

        numbering = doc.part.numbering_part.element
        [abstract_id] = numbering.xpath(f"./w:num[@w:numId='{num_id}']/w:abstractNumId/@w:val")
        [abstract] = numbering.xpath(f"./w:abstractNum[@w:abstractNumId='{abstract_id}']")
        assert abstract.xpath(".//w:numFmt/@w:val") == ["bullet"]

    def test_spacing(self):
        result = generate_docx(_spec([{"type": "paragraph", "text": "x", "spacing": {"before": 200, "after": 100}}]))
        fmt = _doc(result).paragraphs[0].paragraph_format
        assert fmt.space_before.twips == 200
        assert fmt.space_after.twips == 100


class TestTables:
    """Tables, borders, merges and shading."""

    def test_header_row_and_shading(self):
        rows = [
            {"cells": [{"content": "Code", "bold": True, "shading": "DDDDDD"}, {"content": "Title"}], "isHeader": True},
            {"cells": [{"content": "A1"}, {"content": "Alpha"}]},
        ]
        result = generate_docx(_spec([{"type": "table", "rows": rows, "columnWidths": [1, 3]}]))
        table = _doc(result).tables[0]
        assert table.cell(1, 1).text == "Alpha"
        assert table.rows[0]._tr.trPr.find(qn("w:tblHeader")) is not None

        shd = table.cell(0, 0)._tc.tcPr.find(qn("w:shd"))
        assert shd.get(qn("w:fill")) == "DDDDDD"

        tblW = table._tbl.tblPr.find(qn("w:tblW"))
        assert (tblW.get(qn("w:type")), tblW.get(qn("w:w"))) == ("pct", "5000")

    def test_invisible_borders(self):
        rows = [{"cells": [{"content": "a"}, {"content": "b"}]}]
        result = generate_docx(_spec([{"type": "table", "rows": rows, "borders": False}]))
        borders = _doc(result).tables[0]._tbl.tblPr.find(qn("w:tblBorders"))
        edges = list(borders)
        assert len(edges) == 6
        assert {e.get(qn("w:val")) for e in edges} == {"none"}
        assert {e.get(qn("w:color")) for e in edges} == {"FFFFFF"}

    def test_column_span(self):
        rows = [
            {"cells": [{"content": "wide", "colSpan": 2}]},
            {"cells": [{"content": "l"}, {"content": "r"}]},
        ]
        result = generate_docx(_spec([{"type": "table", "rows": rows}]))
        table = _doc(result).tables[0]
        assert len(table.columns) == 2
        assert table.cell(0, 0).text == "wide"
        assert table.cell(0, 1).text == "wide"
        assert table.cell(1, 1).text == "r"


class TestSections:
    """Headers, footers, page breaks and properties."""

    def test_header_footer_per_section(self):
        spec = {
            "sections": [
                {
                    "header": {"paragraphs": [{"text": "Header one"}]},
                    "footer": {"paragraphs": [{"text": "Footer one"}]},
                    "content": [{"type": "paragraph", "text": "body"}, {"type": "pageBreak"}],
                },
                {"header": {"paragraphs": [{"text": "Header two"}]}, "content": [{"type": "paragraph", "text": "more"}]},
            ]
        }
        doc = _doc(generate_docx(spec))
        assert len(doc.sections) == 2
        assert doc.sections[0].header.paragraphs[0].text == "Header one"
        assert doc.sections[0].footer.paragraphs[0].text == "Footer one"
        assert doc.sections[1].header.paragraphs[0].text == "Header two"
        assert doc.sections[1].header.is_linked_to_previous is False

    def test_core_properties(self):
        doc = _doc(generate_docx(_spec([], creator="Me", description="About")))
        cp = doc.core_properties
        assert cp.title == "Guide"
        assert cp.author == "Me"
        assert cp.comments == "About"
        assert cp.created.year == 2000

    def test_deterministic_output(self):
        spec = _spec([{"type": "paragraph", "text": "same", "numbering": True}])
        assert generate_docx(spec).buffer == generate_docx(spec).buffer

    def test_invalid_spec_rejected(self):
        with pytest.raises(SpecValidationError):
            generate_docx({"sections": [{"content": [{"type": "image"}]}]})
