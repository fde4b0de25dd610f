"""pdf_renderer.py — compile a PdfSpec dict into PDF bytes with PyMuPDF.

Spec coordinates are PDF points with the origin at the bottom-left of the
page; PyMuPDF draws with the origin at the top-left, so every y is flipped
against the page height before drawing.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import fitz  # PyMuPDF

from teachdoc.core.errors import UnsupportedImageFormatError
from teachdoc.core.render.ooxml import slugify_filename
from teachdoc.core.types import DEFAULT_CREATOR, GenerationResult, resolve_page_size, to_rgb_tuple
from teachdoc.core.validate.schema_validate import ensure_valid

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/pdf"

BLACK = (0.0, 0.0, 0.0)

# Spec font names -> PDF base-14 font codes understood by PyMuPDF.
FONT_CODES: dict[str, str] = {
    "Helvetica": "helv",
    "HelveticaBold": "hebo",
    "HelveticaOblique": "heit",
    "TimesRoman": "tiro",
    "TimesRomanBold": "tibo",
    "Courier": "cour",
    "CourierBold": "cobo",
}

PNG_MAGIC = b"\x89PNG"
JPEG_MAGIC = b"\xff\xd8"


def sniff_image_format(data: bytes) -> str:
    head = bytes(data[:4])
    if head.startswith(PNG_MAGIC):
        return "png"
    if head.startswith(JPEG_MAGIC):
        return "jpeg"
    raise UnsupportedImageFormatError(
        f"unsupported image format (signature {head.hex(' ') or 'empty'}); only PNG and JPEG are supported"
    )


def _check_images(spec: dict[str, Any]) -> None:
    for pi, page in enumerate(spec.get("pages", [])):
        for ei, el in enumerate(page.get("elements", [])):
            if el.get("type") != "image":
                continue
            try:
                sniff_image_format(el["data"])
            except UnsupportedImageFormatError as e:
                raise UnsupportedImageFormatError(f"pages[{pi}].elements[{ei}]: {e}") from e


def _opacity(el: dict[str, Any]) -> float:
    v = el.get("opacity")
    return 1.0 if v is None else float(v)


def wrap_to_width(text: str, max_width: float, fontname: str, fontsize: float) -> list[str]:
    """Greedy word wrap using the base-14 advance widths."""
    lines: list[str] = []
    for raw in text.split("\n"):
        words = raw.split(" ")
        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if not current or fitz.get_text_length(candidate, fontname=fontname, fontsize=fontsize) <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


def _draw_text(page: Any, el: dict[str, Any]) -> None:
    height = page.rect.height
    fontsize = float(el.get("fontSize", 12))
    fontname = FONT_CODES[el.get("font", "Helvetica")]
    color = to_rgb_tuple(el.get("color"), BLACK)
    line_height = float(el.get("lineHeight") or fontsize * 1.2)

    text = el["text"]
    if el.get("maxWidth"):
        lines = wrap_to_width(text, float(el["maxWidth"]), fontname, fontsize)
    else:
        lines = text.split("\n")

    origin = fitz.Point(float(el["x"]), height - float(el["y"]))
    rotate = float(el.get("rotate") or 0)
    # Spec angles are counter-clockwise in a y-up system.
    morph = (origin, fitz.Matrix(-rotate)) if rotate else None

    for i, line in enumerate(lines):
        if not line:
            continue
        point = fitz.Point(origin.x, origin.y + i * line_height)
        page.insert_text(point, line, fontsize=fontsize, fontname=fontname, color=color, morph=morph)


def _image_pixmap(data: bytes, opacity: float) -> Any:
    pix = fitz.Pixmap(data)
    if opacity >= 1.0:
        return pix
    if pix.alpha:
        n = pix.n
        alphas = bytes(int(a * opacity) for a in pix.samples[n - 1 :: n])
    else:
        pix = fitz.Pixmap(pix, 1)
        alphas = bytes([int(round(opacity * 255))]) * (pix.width * pix.height)
    pix.set_alpha(alphas)
    return pix


def _draw_image(page: Any, el: dict[str, Any]) -> None:
    height = page.rect.height
    data = bytes(el["data"])
    opacity = _opacity(el)
    try:
        pix = _image_pixmap(data, opacity)
    except RuntimeError as e:
        raise UnsupportedImageFormatError(f"cannot decode {sniff_image_format(data)} image: {e}") from e

    w = float(el.get("width") or pix.width)
    h = float(el.get("height") or pix.height)
    x = float(el["x"])
    y = height - float(el["y"])
    rect = fitz.Rect(x, y - h, x + w, y)

    rotate = float(el.get("rotate") or 0)
    if rotate % 90:
        logger.warning("image rotation %.1f is not a multiple of 90; drawing unrotated", rotate)
        rotate = 0

    if opacity >= 1.0:
        page.insert_image(rect, stream=data, rotate=int(rotate) % 360, keep_proportion=False)
    else:
        page.insert_image(rect, pixmap=pix, rotate=int(rotate) % 360, keep_proportion=False)


def _fill_and_stroke(el: dict[str, Any]) -> dict[str, Any]:
    fill = to_rgb_tuple(el.get("color"))
    stroke = to_rgb_tuple(el.get("borderColor"))
    if fill is None and stroke is None:
        fill = BLACK
    width = float(el.get("borderWidth", 1 if stroke is not None else 0))
    if width <= 0:
        stroke = None
    opacity = _opacity(el)
    return {
        "color": stroke,
        "fill": fill,
        "width": width,
        "fill_opacity": opacity,
        "stroke_opacity": opacity,
    }


def _draw_rectangle(page: Any, el: dict[str, Any]) -> None:
    height = page.rect.height
    x, y = float(el["x"]), float(el["y"])
    w, h = float(el["width"]), float(el["height"])
    rect = fitz.Rect(x, height - (y + h), x + w, height - y)
    rect.normalize()
    page.draw_rect(rect, **_fill_and_stroke(el))


def _draw_line(page: Any, el: dict[str, Any]) -> None:
    height = page.rect.height
    p1 = fitz.Point(float(el["startX"]), height - float(el["startY"]))
    p2 = fitz.Point(float(el["endX"]), height - float(el["endY"]))
    page.draw_line(
        p1,
        p2,
        color=to_rgb_tuple(el.get("color"), BLACK),
        width=float(el.get("thickness", 1)),
        stroke_opacity=_opacity(el),
    )


def _draw_circle(page: Any, el: dict[str, Any]) -> None:
    radius = float(el["radius"])
    if radius <= 0:
        logger.debug("skipping circle with radius %s", radius)
        return
    height = page.rect.height
    center = fitz.Point(float(el["x"]), height - float(el["y"]))
    page.draw_circle(center, radius, **_fill_and_stroke(el))


def _draw_table(page: Any, el: dict[str, Any]) -> None:
    """Fixed-height grid; cells do not wrap and long text overflows."""
    height = page.rect.height
    fontsize = float(el.get("fontSize", 10))
    row_height = float(el.get("rowHeight", 20))
    padding = float(el.get("padding", 5))
    widths = el["columnWidths"]
    border = to_rgb_tuple(el.get("borderColor"), BLACK)
    header_bg = to_rgb_tuple(el.get("headerBackground"))

    current_y = float(el["y"])
    for row_index, row in enumerate(el["rows"]):
        current_x = float(el["x"])
        for col_index, cell_text in enumerate(row):
            cell_width = float(widths[col_index]) if col_index < len(widths) and widths[col_index] else 100.0
            top = height - current_y
            rect = fitz.Rect(current_x, top, current_x + cell_width, top + row_height)

            if row_index == 0 and header_bg is not None:
                page.draw_rect(rect, color=None, fill=header_bg, width=0)
            page.draw_rect(rect, color=border, fill=None, width=0.5)

            if cell_text:
                baseline = fitz.Point(current_x + padding, height - (current_y - row_height + padding + 2))
                page.insert_text(baseline, cell_text, fontsize=fontsize, fontname="helv", color=BLACK)

            current_x += cell_width
        current_y -= row_height


_DRAWERS: dict[str, Callable[[Any, dict[str, Any]], None]] = {
    "text": _draw_text,
    "image": _draw_image,
    "rectangle": _draw_rectangle,
    "line": _draw_line,
    "circle": _draw_circle,
    "table": _draw_table,
}


def _set_metadata(doc: Any, spec: dict[str, Any]) -> None:
    doc.set_metadata(
        {
            "title": spec.get("title", ""),
            "author": spec.get("author", ""),
            "subject": spec.get("subject", ""),
            "keywords": "",
            "creator": spec.get("creator", DEFAULT_CREATOR),
            "producer": "teachdoc",
            # Left empty so identical specs produce identical bytes.
            "creationDate": "",
            "modDate": "",
        }
    )


def generate_pdf(spec: dict[str, Any]) -> GenerationResult:
    ensure_valid("pdf_spec", spec)
    _check_images(spec)

    doc = fitz.open()
    try:
        for page_spec in spec["pages"]:
            width, height = resolve_page_size(page_spec.get("size"))
            page = doc.new_page(width=width, height=height)
            for el in page_spec["elements"]:
                _DRAWERS[el["type"]](page, el)

        _set_metadata(doc, spec)
        page_count = doc.page_count
        buffer = doc.tobytes(garbage=3, deflate=True, no_new_id=True)
    finally:
        doc.close()

    logger.debug("compiled pdf: %d page(s), %d bytes", page_count, len(buffer))
    return GenerationResult(
        buffer=buffer,
        filename=slugify_filename(spec.get("title"), "pdf"),
        content_type=CONTENT_TYPE,
        metadata={"pageCount": page_count},
    )
