"""docx_renderer.py — compile a DocxSpec dict into a Word document with python-docx.

Flow layout only: sections hold paragraphs, tables and page breaks in order.
Every numbered paragraph shares one single-level `%1.` definition that is
registered on the document the first time a numbered paragraph appears.
Bullets use the "List Bullet" style; a heading that is also a bullet keeps
its heading style and gets a registered bullet definition instead.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from io import BytesIO
from typing import Any

from docx import Document
from docx.enum.section import WD_SECTION
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK, WD_COLOR_INDEX
from docx.oxml import OxmlElement, parse_xml
from docx.oxml.ns import nsdecls, qn
from docx.shared import Inches, Pt, RGBColor, Twips

from teachdoc.core.render.ooxml import normalize_zip, slugify_filename
from teachdoc.core.types import DEFAULT_CREATOR, GenerationResult
from teachdoc.core.validate.schema_validate import ensure_valid

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# core.xml timestamps are pinned so the same spec always packs to the same bytes.
FIXED_TIMESTAMP = datetime(2000, 1, 1, tzinfo=timezone.utc)

ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

# OOXML ST_HighlightColor names -> python-docx enum.
HIGHLIGHTS = {
    "black": WD_COLOR_INDEX.BLACK,
    "blue": WD_COLOR_INDEX.BLUE,
    "cyan": WD_COLOR_INDEX.TURQUOISE,
    "green": WD_COLOR_INDEX.BRIGHT_GREEN,
    "magenta": WD_COLOR_INDEX.PINK,
    "red": WD_COLOR_INDEX.RED,
    "yellow": WD_COLOR_INDEX.YELLOW,
    "white": WD_COLOR_INDEX.WHITE,
    "darkblue": WD_COLOR_INDEX.DARK_BLUE,
    "darkcyan": WD_COLOR_INDEX.TEAL,
    "darkgreen": WD_COLOR_INDEX.GREEN,
    "darkmagenta": WD_COLOR_INDEX.VIOLET,
    "darkred": WD_COLOR_INDEX.DARK_RED,
    "darkyellow": WD_COLOR_INDEX.DARK_YELLOW,
    "darkgray": WD_COLOR_INDEX.GRAY_50,
    "lightgray": WD_COLOR_INDEX.GRAY_25,
}

BORDER_EDGES = ("top", "left", "bottom", "right", "insideH", "insideV")


class _Numbering:
    """Lazily registers the shared list definitions (`%1.` and bullet) on a document."""

    def __init__(self, doc: Any) -> None:
        self._doc = doc
        self._num_id: int | None = None
        self._bullet_num_id: int | None = None

    @property
    def num_id(self) -> int:
        if self._num_id is None:
            self._num_id = self._register("decimal", "%1.")
        return self._num_id

    @property
    def bullet_num_id(self) -> int:
        """Bullet list used where the paragraph style is not "List Bullet" (e.g. headings)."""
        if self._bullet_num_id is None:
            self._bullet_num_id = self._register("bullet", "•")
        return self._bullet_num_id

    def _register(self, num_fmt: str, lvl_text: str) -> int:
        numbering = self._doc.part.numbering_part.element
        used = [int(v) for v in numbering.xpath("./w:abstractNum/@w:abstractNumId")]
        abstract_id = max(used, default=-1) + 1
        abstract = parse_xml(
            f'<w:abstractNum {nsdecls("w")} w:abstractNumId="{abstract_id}">'
            '<w:multiLevelType w:val="singleLevel"/>'
            '<w:lvl w:ilvl="0">'
            '<w:start w:val="1"/>'
            f'<w:numFmt w:val="{num_fmt}"/>'
            f'<w:lvlText w:val="{lvl_text}"/>'
            '<w:lvlJc w:val="left"/>'
            '<w:pPr><w:ind w:left="720" w:hanging="360"/></w:pPr>'
            "</w:lvl>"
            "</w:abstractNum>"
        )
        # abstractNum elements must precede every num element
        nums = numbering.xpath("./w:num")
        if nums:
            nums[0].addprevious(abstract)
        else:
            numbering.append(abstract)
        num = numbering.add_num(abstract_id)
        logger.debug("registered %s numbering abstractNumId=%s numId=%s", num_fmt, abstract_id, num.numId)
        return num.numId


def _apply_run(run: Any, spec: dict[str, Any]) -> None:
    if spec.get("bold"):
        run.bold = True
    if spec.get("italic"):
        run.italic = True
    if spec.get("underline"):
        run.underline = True
    if spec.get("strike"):
        run.font.strike = True
    if spec.get("color"):
        run.font.color.rgb = RGBColor.from_string(spec["color"].lstrip("#").upper())
    if spec.get("highlight"):
        run.font.highlight_color = HIGHLIGHTS.get(spec["highlight"].lower(), WD_COLOR_INDEX.YELLOW)
    if spec.get("fontSize"):
        run.font.size = Pt(spec["fontSize"])


def _set_numbering(paragraph: Any, num_id: int) -> None:
    numPr = paragraph._p.get_or_add_pPr().get_or_add_numPr()
    numPr.get_or_add_ilvl().val = 0
    numPr.get_or_add_numId().val = num_id


def _fill_paragraph(paragraph: Any, spec: dict[str, Any], numbering: _Numbering) -> None:
    if spec.get("heading"):
        paragraph.style = f"Heading {spec['heading']}"
    elif spec.get("bullet"):
        paragraph.style = "List Bullet"
    elif spec.get("numbering"):
        paragraph.style = "List Paragraph"

    if spec.get("numbering"):
        _set_numbering(paragraph, numbering.num_id)
    elif spec.get("heading") and spec.get("bullet"):
        _set_numbering(paragraph, numbering.bullet_num_id)

    if spec.get("alignment"):
        paragraph.alignment = ALIGNMENTS[spec["alignment"]]

    spacing = spec.get("spacing") or {}
    fmt = paragraph.paragraph_format
    if "before" in spacing:
        fmt.space_before = Twips(spacing["before"])
    if "after" in spacing:
        fmt.space_after = Twips(spacing["after"])
    if "line" in spacing:
        # 240ths of a line, as in w:spacing/@w:line with lineRule=auto
        fmt.line_spacing = spacing["line"] / 240

    if spec.get("runs"):
        for run_spec in spec["runs"]:
            _apply_run(paragraph.add_run(run_spec["text"]), run_spec)
    elif spec.get("text"):
        paragraph.add_run(spec["text"])


def _fill_block(container: Any, paragraphs: list[dict[str, Any]], numbering: _Numbering) -> None:
    """Write header/footer paragraphs, reusing the empty paragraph a new part starts with."""
    for i, spec in enumerate(paragraphs):
        p = container.paragraphs[0] if i == 0 and container.paragraphs else container.add_paragraph()
        _fill_paragraph(p, spec, numbering)


def _layout_grid(rows: list[dict[str, Any]]) -> tuple[list[tuple[int, int, int, int, dict[str, Any]]], int]:
    """Place cells on a grid honouring spans; returns (placements, column count)."""
    occupied: set[tuple[int, int]] = set()
    placements: list[tuple[int, int, int, int, dict[str, Any]]] = []
    for r, row in enumerate(rows):
        c = 0
        for cell in row["cells"]:
            while (r, c) in occupied:
                c += 1
            col_span = int(cell.get("colSpan", 1))
            row_span = min(int(cell.get("rowSpan", 1)), len(rows) - r)
            for dr in range(row_span):
                for dc in range(col_span):
                    occupied.add((r + dr, c + dc))
            placements.append((r, c, row_span, col_span, cell))
            c += col_span
    n_cols = max((c for _, c in occupied), default=0) + 1
    return placements, n_cols


def _border_el(edge: str, visible: bool) -> Any:
    el = OxmlElement(f"w:{edge}")
    if visible:
        el.set(qn("w:val"), "single")
        el.set(qn("w:sz"), "4")
        el.set(qn("w:space"), "0")
        el.set(qn("w:color"), "000000")
    else:
        # hidden edges stay in the grid as zero-width white lines
        el.set(qn("w:val"), "none")
        el.set(qn("w:sz"), "0")
        el.set(qn("w:space"), "0")
        el.set(qn("w:color"), "FFFFFF")
    return el


def _set_table_borders(table: Any, visible: bool) -> None:
    tblPr = table._tbl.tblPr
    for old in tblPr.findall(qn("w:tblBorders")):
        tblPr.remove(old)
    borders = OxmlElement("w:tblBorders")
    for edge in BORDER_EDGES:
        borders.append(_border_el(edge, visible))
    tblPr.insert_element_before(
        borders, "w:shd", "w:tblLayout", "w:tblCellMar", "w:tblLook", "w:tblCaption", "w:tblDescription"
    )


def _set_full_width(table: Any) -> None:
    tblPr = table._tbl.tblPr
    tblW = tblPr.find(qn("w:tblW"))
    if tblW is None:
        tblW = OxmlElement("w:tblW")
        tblPr.insert_element_before(
            tblW, "w:jc", "w:tblCellSpacing", "w:tblInd", "w:tblBorders", "w:shd", "w:tblLayout", "w:tblCellMar", "w:tblLook"
        )
    tblW.set(qn("w:type"), "pct")
    tblW.set(qn("w:w"), "5000")


def _shade_cell(cell: Any, fill: str) -> None:
    tcPr = cell._tc.get_or_add_tcPr()
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill.lstrip("#").upper())
    tcPr.insert_element_before(
        shd, "w:noWrap", "w:tcMar", "w:textDirection", "w:tcFitText", "w:vAlign", "w:hideMark"
    )


def _mark_header_row(row: Any) -> None:
    trPr = row._tr.get_or_add_trPr()
    el = OxmlElement("w:tblHeader")
    el.set(qn("w:val"), "true")
    trPr.append(el)


def _add_table(doc: Any, spec: dict[str, Any]) -> None:
    rows = spec["rows"]
    placements, n_cols = _layout_grid(rows)
    table = doc.add_table(rows=len(rows), cols=n_cols)

    borders = spec.get("borders", True)
    if borders:
        table.style = "Table Grid"
    _set_table_borders(table, visible=borders)
    _set_full_width(table)

    widths = spec.get("columnWidths") or []
    if widths:
        table.autofit = False
        for c, w in enumerate(widths[:n_cols]):
            table.columns[c].width = Inches(w)
            for r in range(len(rows)):
                table.cell(r, c).width = Inches(w)

    for r, row in enumerate(rows):
        if row.get("isHeader"):
            _mark_header_row(table.rows[r])

    for r, c, row_span, col_span, cell_spec in placements:
        cell = table.cell(r, c)
        if row_span > 1 or col_span > 1:
            cell = cell.merge(table.cell(r + row_span - 1, c + col_span - 1))
        if cell_spec["content"]:
            run = cell.paragraphs[0].add_run(cell_spec["content"])
            if cell_spec.get("bold"):
                run.bold = True
        if cell_spec.get("shading"):
            _shade_cell(cell, cell_spec["shading"])


def _add_page_break(doc: Any) -> None:
    doc.add_paragraph().add_run().add_break(WD_BREAK.PAGE)


def _set_core_properties(doc: Any, spec: dict[str, Any]) -> None:
    cp = doc.core_properties
    creator = spec.get("creator", DEFAULT_CREATOR)
    cp.title = spec.get("title", "")
    cp.author = creator
    cp.last_modified_by = creator
    cp.comments = spec.get("description", "")
    cp.created = FIXED_TIMESTAMP
    cp.modified = FIXED_TIMESTAMP
    cp.revision = 1


def generate_docx(spec: dict[str, Any]) -> GenerationResult:
    ensure_valid("docx_spec", spec)

    doc = Document()
    numbering = _Numbering(doc)

    for i, section_spec in enumerate(spec["sections"]):
        section = doc.sections[0] if i == 0 else doc.add_section(WD_SECTION.NEW_PAGE)

        # unlinked so each section's header/footer is independent of the previous one
        section.header.is_linked_to_previous = False
        section.footer.is_linked_to_previous = False
        if section_spec.get("header"):
            _fill_block(section.header, section_spec["header"]["paragraphs"], numbering)
        if section_spec.get("footer"):
            _fill_block(section.footer, section_spec["footer"]["paragraphs"], numbering)

        for item in section_spec["content"]:
            kind = item["type"]
            if kind == "paragraph":
                _fill_paragraph(doc.add_paragraph(), item, numbering)
            elif kind == "table":
                _add_table(doc, item)
            elif kind == "pageBreak":
                _add_page_break(doc)

    _set_core_properties(doc, spec)

    out = BytesIO()
    doc.save(out)
    buffer = normalize_zip(out.getvalue())
    logger.debug("compiled docx: %d section(s), %d bytes", len(spec["sections"]), len(buffer))
    return GenerationResult(
        buffer=buffer,
        filename=slugify_filename(spec.get("title"), "docx"),
        content_type=CONTENT_TYPE,
        metadata={},
    )
