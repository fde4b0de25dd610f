"""pptx_renderer.py — build a deck by cloning template slides and filling their tags.

The template package is edited at the zip level: each generated slide is a
copy of the matched template slide with its `{{tags}}` substituted, the
template's own slides are dropped, and the presentation part, its
relationships and the content types are rewritten to list the new slides.
The result is then reopened with python-pptx to attach speaker notes.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from io import BytesIO
from typing import Any

from pptx import Presentation

from teachdoc.core.errors import TemplateError
from teachdoc.core.render.ooxml import normalize_zip, read_zip_parts, slugify_filename, write_zip_parts
from teachdoc.core.render.pptx_template import (
    PptxOptions,
    apply_replacements,
    build_layout_map,
    discover_layouts,
    find_matching_layout,
    get_slide_files,
    populate_placeholders,
    resolve_slide_type,
)
from teachdoc.core.types import GenerationResult
from teachdoc.core.validate.schema_validate import ensure_valid

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
SLIDE_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.slide+xml"
REL_SLIDE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/slide"

FIXED_TIMESTAMP = datetime(2000, 1, 1, tzinfo=timezone.utc)

_NOTES_PART_RE = re.compile(r"^ppt/notesSlides/(?:_rels/)?notesSlide\d+\.xml(?:\.rels)?$")
_SLIDE_REL_RE = re.compile(r'<Relationship\b[^>]*Type="[^"]*/relationships/slide"[^>]*/>\s*')
_NOTES_REL_RE = re.compile(r'<Relationship\b[^>]*Type="[^"]*/relationships/notesSlide"[^>]*/>\s*')
_RID_RE = re.compile(r'Id="rId(\d+)"')
_SLD_ID_LST_RE = re.compile(r"<p:sldIdLst\s*/>|<p:sldIdLst>.*?</p:sldIdLst>", re.S)
_CT_SLIDE_RE = re.compile(r'<Override\b[^>]*PartName="/ppt/(?:slides/slide|notesSlides/notesSlide)\d+\.xml"[^>]*/>')


def _rels_name(slide_part: str) -> str:
    return slide_part.replace("ppt/slides/", "ppt/slides/_rels/") + ".rels"


def _extract_template_slides(parts: dict[str, bytes]) -> dict[int, tuple[str, str | None]]:
    """slide number (deck order) -> (slide xml, rels xml without notes links)."""
    out: dict[int, tuple[str, str | None]] = {}
    for i, name in enumerate(get_slide_files(list(parts)), 1):
        rels = parts.get(_rels_name(name))
        rels_xml = _NOTES_REL_RE.sub("", rels.decode("utf-8")) if rels is not None else None
        out[i] = (parts[name].decode("utf-8"), rels_xml)
    return out


def _clear_template_slides(parts: dict[str, bytes]) -> None:
    for name in get_slide_files(list(parts)):
        parts.pop(name, None)
        parts.pop(_rels_name(name), None)
    for name in [n for n in parts if _NOTES_PART_RE.match(n)]:
        del parts[name]


def _update_presentation(parts: dict[str, bytes], slide_count: int) -> None:
    rels_xml = parts["ppt/_rels/presentation.xml.rels"].decode("utf-8")
    rels_xml = _SLIDE_REL_RE.sub("", rels_xml)
    # new ids sit above every id still in use
    base = max((int(n) for n in _RID_RE.findall(rels_xml)), default=0) + 1
    rids = [f"rId{base + i}" for i in range(slide_count)]
    new_rels = "".join(
        f'<Relationship Id="{rid}" Type="{REL_SLIDE}" Target="slides/slide{i}.xml"/>' for i, rid in enumerate(rids, 1)
    )
    parts["ppt/_rels/presentation.xml.rels"] = rels_xml.replace("</Relationships>", f"{new_rels}</Relationships>").encode(
        "utf-8"
    )

    pres_xml = parts["ppt/presentation.xml"].decode("utf-8")
    entries = "".join(f'<p:sldId id="{256 + i}" r:id="{rid}"/>' for i, rid in enumerate(rids))
    if _SLD_ID_LST_RE.search(pres_xml):
        pres_xml = _SLD_ID_LST_RE.sub(f"<p:sldIdLst>{entries}</p:sldIdLst>", pres_xml, count=1)
    else:
        pres_xml = re.sub(r"(</p:sldMasterIdLst>)", rf"\1<p:sldIdLst>{entries}</p:sldIdLst>", pres_xml, count=1)
    parts["ppt/presentation.xml"] = pres_xml.encode("utf-8")

    ct_xml = parts["[Content_Types].xml"].decode("utf-8")
    ct_xml = _CT_SLIDE_RE.sub("", ct_xml)
    overrides = "".join(
        f'<Override PartName="/ppt/slides/slide{i}.xml" ContentType="{SLIDE_CONTENT_TYPE}"/>'
        for i in range(1, slide_count + 1)
    )
    parts["[Content_Types].xml"] = ct_xml.replace("</Types>", f"{overrides}</Types>").encode("utf-8")


def _finish_with_notes(package: bytes, slides: list[dict[str, Any]], options: PptxOptions) -> tuple[bytes, int]:
    prs = Presentation(BytesIO(package))
    for slide_spec, slide in zip(slides, prs.slides):
        notes = slide_spec.get("notes")
        if not notes:
            continue
        frame = slide.notes_slide.notes_text_frame
        if frame is None:
            logger.warning("notes slide has no body placeholder; notes dropped")
            continue
        frame.text = notes

    cp = prs.core_properties
    cp.title = options.title
    cp.created = FIXED_TIMESTAMP
    cp.modified = FIXED_TIMESTAMP
    cp.revision = 1

    out = BytesIO()
    prs.save(out)
    return normalize_zip(out.getvalue()), len(prs.slides)


def generate_pptx_from_slides(slides: list[dict[str, Any]], options: PptxOptions) -> GenerationResult:
    ensure_valid("slide_data", slides)

    template_path = options.template_path
    if template_path is None or not template_path.exists():
        raise TemplateError(f"PPTX template not found at {template_path}")

    template_bytes = template_path.read_bytes()
    parts = read_zip_parts(template_bytes)
    layouts = discover_layouts(template_bytes, template_id=options.template_id, manifest_path=options.manifest_path)
    if not layouts:
        raise TemplateError(f"no layouts found in template {template_path}")
    layout_map = build_layout_map(layouts)

    template_slides = _extract_template_slides(parts)
    if not template_slides:
        raise TemplateError(f"template {template_path} has no slides")
    first_slide_number = next(iter(template_slides))
    _clear_template_slides(parts)

    for i, slide in enumerate(slides):
        slide_type = resolve_slide_type(slide, i)
        layout = find_matching_layout(layout_map, slide_type)
        source = template_slides.get(layout.slide_number)
        if source is None:
            logger.warning("template slide %d not found; using slide %d", layout.slide_number, first_slide_number)
            source = template_slides[first_slide_number]
        slide_xml, rels_xml = source

        replacements = populate_placeholders(layout.placeholders, slide, options)
        out_name = f"ppt/slides/slide{i + 1}.xml"
        parts[out_name] = apply_replacements(slide_xml, replacements).encode("utf-8")
        if rels_xml is not None:
            parts[_rels_name(out_name)] = rels_xml.encode("utf-8")
        logger.debug("slide %d: type=%s layout=%r", i + 1, slide_type, layout.name)

    _update_presentation(parts, len(slides))
    buffer, slide_count = _finish_with_notes(write_zip_parts(parts), slides, options)

    logger.debug("compiled pptx: %d slide(s), %d bytes", slide_count, len(buffer))
    return GenerationResult(
        buffer=buffer,
        filename=slugify_filename(options.title, "pptx", fallback="presentation", strict=True),
        content_type=CONTENT_TYPE,
        metadata={"slideCount": slide_count},
    )
