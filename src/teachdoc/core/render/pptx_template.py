"""pptx_template.py — layout discovery, layout matching and placeholder routing.

A template deck carries `{{tag}}` markers in its slide text. Each template
slide is one layout. Generated slides are matched to a layout by semantic
type and the layout's tags are filled from the slide data.

The tables here are plain module-level tuples evaluated first-match-wins.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable
from xml.sax.saxutils import escape as xml_escape

import orjson

from teachdoc.core.errors import TemplateError
from teachdoc.core.render.ooxml import read_zip_parts
from teachdoc.core.types import SLIDE_TYPES
from teachdoc.core.validate.schema_validate import iter_spec_errors

logger = logging.getLogger(__name__)

SLIDE_PART_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
TAG_RE = re.compile(r"\{\{([^}]+)\}\}")

TagScanner = Callable[[str], list[str]]


@dataclass
class DiscoveredLayout:
    name: str
    slide_number: int
    placeholders: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "slideNumber": self.slide_number, "placeholders": list(self.placeholders)}


@dataclass
class PptxOptions:
    title: str = ""
    subtitle: str = ""
    template_path: Path | None = None
    template_id: str | None = None
    manifest_path: Path | None = None
    # Value for {{date}} tags; today's date when unset.
    date: str | None = None

    def date_text(self) -> str:
        return self.date if self.date is not None else date.today().strftime("%m/%d/%Y")


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def get_slide_files(names: list[str]) -> list[str]:
    """Slide part names in numeric order (slide2 before slide10)."""
    found = [(int(m.group(1)), n) for n in names if (m := SLIDE_PART_RE.match(n))]
    return [n for _, n in sorted(found)]


def scan_tags_regex(slide_xml: str) -> list[str]:
    """Find `{{tag}}` markers in raw slide XML, de-duplicated in first-seen order.

    Only sees markers whose text is not split across runs.
    """
    seen: list[str] = []
    for m in TAG_RE.finditer(slide_xml):
        tag = f"{{{{{m.group(1)}}}}}"
        if tag not in seen:
            seen.append(tag)
    return seen


def infer_layout_name(placeholders: list[str], slide_number: int) -> str:
    s = " ".join(placeholders).lower()
    if "course_title" in s or "instructor" in s:
        return "title slide"
    if "section_title" in s and "slide_title" not in s:
        return "section header"
    if "left_column" in s or "right_column" in s:
        return "two column"
    if "quote_text" in s or "attribution" in s:
        return "quote"
    if "discussion_prompt" in s or "teaching_notes" in s:
        return "q&a / discussion"
    if "competency_title" in s or "competency_description" in s:
        return "competency overview"
    if "activity_title" in s or "time_estimate" in s:
        return "activity instructions"
    if "big_text_content" in s:
        return "big text"
    if "image_caption" in s:
        return "full image"
    if "slide_title" in s or "main_content" in s:
        return "content slide"
    return f"slide {slide_number}"


def discover_layouts_from_parts(parts: dict[str, bytes], scanner: TagScanner = scan_tags_regex) -> list[DiscoveredLayout]:
    layouts: list[DiscoveredLayout] = []
    for i, name in enumerate(get_slide_files(list(parts)), 1):
        tags = scanner(parts[name].decode("utf-8"))
        layouts.append(DiscoveredLayout(name=infer_layout_name(tags, i), slide_number=i, placeholders=tags))
    return layouts


def discover_layouts_from_template(template_bytes: bytes, scanner: TagScanner = scan_tags_regex) -> list[DiscoveredLayout]:
    return discover_layouts_from_parts(read_zip_parts(template_bytes), scanner)


def _as_tag(name: str) -> str:
    name = name.strip()
    return name if name.startswith("{{") and name.endswith("}}") else f"{{{{{name}}}}}"


def load_layouts_from_manifest(template_id: str, manifest_path: Path) -> list[DiscoveredLayout] | None:
    """Curated layouts for `template_id`, or None when the manifest has none."""
    if not manifest_path.exists():
        logger.debug("manifest not found: %s", manifest_path)
        return None
    try:
        manifest = orjson.loads(manifest_path.read_bytes())
    except orjson.JSONDecodeError as e:
        logger.warning("manifest %s is not valid JSON: %s", manifest_path, e)
        return None

    entry = manifest.get(template_id) if isinstance(manifest, dict) else None
    if not isinstance(entry, dict) or not entry.get("layouts"):
        logger.debug("no layouts for template id %r in %s", template_id, manifest_path)
        return None

    errors = iter_spec_errors("pptx_manifest", {template_id: entry})
    if errors:
        logger.warning(
            "manifest %s entry %r is malformed, scanning the template instead: %s",
            manifest_path,
            template_id,
            "; ".join(errors[:5]),
        )
        return None

    layouts = [
        DiscoveredLayout(
            name=str(l["name"]).lower(),
            slide_number=int(l["slideNumber"]),
            placeholders=[_as_tag(p["name"]) for p in l.get("placeholders", [])],
        )
        for l in entry["layouts"]
    ]
    logger.debug(
        "loaded %d layouts from manifest: %s",
        len(layouts),
        ", ".join(f"{l.name} (slide {l.slide_number})" for l in layouts),
    )
    return layouts


def discover_layouts(
    template_bytes: bytes,
    *,
    template_id: str | None = None,
    manifest_path: Path | None = None,
    scanner: TagScanner = scan_tags_regex,
) -> list[DiscoveredLayout]:
    """Manifest layouts when available, otherwise scan the template slides."""
    if template_id and manifest_path is not None:
        layouts = load_layouts_from_manifest(template_id, manifest_path)
        if layouts:
            return layouts
    return discover_layouts_from_template(template_bytes, scanner)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

TYPE_TO_LAYOUT_PATTERNS: dict[str, tuple[str, ...]] = {
    "title": ("title", "cover", "opening"),
    "assertion": ("content", "assertion", "standard"),
    "default": ("content", "standard", "basic"),
    "definition": ("big text", "definition", "statement"),
    "quote": ("quote", "quotation", "callout"),
    "comparison": ("two column", "comparison", "side by side", "split"),
    "question": ("q&a", "question", "discussion", "qa"),
    "process": ("content", "process", "steps"),
    "summary": ("content", "summary", "takeaway", "key points"),
    "example": ("content", "example", "case study"),
}

_NON_NAME_RE = re.compile(r"[^a-z0-9\s]")


def normalize_layout_name(name: str) -> str:
    return _NON_NAME_RE.sub("", name.lower())


def build_layout_map(layouts: list[DiscoveredLayout]) -> dict[str, DiscoveredLayout]:
    layout_map: dict[str, DiscoveredLayout] = {}
    for layout in layouts:
        layout_map[normalize_layout_name(layout.name)] = layout
    return layout_map


def find_matching_layout(layout_map: dict[str, DiscoveredLayout], slide_type: str) -> DiscoveredLayout:
    if not layout_map:
        raise TemplateError("template has no layouts to match slides against")

    patterns = TYPE_TO_LAYOUT_PATTERNS.get(slide_type, TYPE_TO_LAYOUT_PATTERNS["default"])
    for pattern in patterns:
        if pattern in layout_map:
            logger.debug("layout match: type=%s exact pattern=%r", slide_type, pattern)
            return layout_map[pattern]
        for name, layout in layout_map.items():
            if pattern in name:
                logger.debug("layout match: type=%s pattern=%r in name=%r", slide_type, pattern, name)
                return layout

    for name, layout in layout_map.items():
        if "content" in name:
            logger.debug("layout match: type=%s fallback to content layout %r", slide_type, name)
            return layout

    first = next(iter(layout_map.values()))
    logger.debug("layout match: type=%s last resort first layout %r", slide_type, first.name)
    return first


def resolve_slide_type(slide: dict[str, Any], index: int) -> str:
    t = slide.get("type")
    if not t:
        return "title" if index == 0 else "default"
    return t if t in SLIDE_TYPES else "default"


# ---------------------------------------------------------------------------
# Content formatting
# ---------------------------------------------------------------------------

QUOTE_RE = re.compile(r'>\s*"?([^"]+)"?\s*(?:[-—–]|$)', re.S)
ATTRIBUTION_RE = re.compile(r"[-—–]\s*(.+?)$", re.M)
TABLE_SEPARATOR_RE = re.compile(r"^\|[\s\-:|]+\|$")


def format_as_bullets(content: list[str]) -> str:
    return "\n".join(f"• {line}" for line in content)


def format_as_numbered(content: list[str]) -> str:
    return "\n".join(f"{i}. {line}" for i, line in enumerate(content, 1))


def format_big_text(slide: dict[str, Any]) -> str:
    if slide["content"]:
        return f"{slide['title']}\n\n" + "\n".join(slide["content"])
    return slide["title"]


def extract_quote_text(slide: dict[str, Any]) -> str:
    content = slide["content"]
    raw = slide.get("rawContent") or " ".join(content)
    m = QUOTE_RE.search(raw)
    if m:
        return m.group(1).strip()
    if len(content) == 1 and len(content[0]) > 20:
        return content[0]
    if len(slide["title"]) > 30:
        return slide["title"]
    return " ".join(content) or slide["title"]


def extract_attribution(slide: dict[str, Any]) -> str:
    m = ATTRIBUTION_RE.search(slide.get("rawContent") or "")
    return m.group(1).strip() if m else ""


def parse_markdown_table(text: str) -> list[list[str]]:
    rows: list[list[str]] = []
    for line in text.split("\n"):
        s = line.strip()
        if not s.startswith("|") or TABLE_SEPARATOR_RE.match(s):
            continue
        if s.endswith("|"):
            cells = [c.strip() for c in s[1:-1].split("|")]
            if any(cells):
                rows.append(cells)
    return rows


def _extract_column(slide: dict[str, Any], index: int) -> str:
    table = parse_markdown_table(slide.get("rawContent") or "")
    if len(table) > 1 and len(table[0]) >= 2:
        column = [row[index] if index < len(row) else "" for row in table[1:]]
        return format_as_bullets([c for c in column if c])
    content = slide["content"]
    half = math.ceil(len(content) / 2)
    return format_as_bullets(content[:half] if index == 0 else content[half:])


def extract_left_column(slide: dict[str, Any]) -> str:
    return _extract_column(slide, 0)


def extract_right_column(slide: dict[str, Any]) -> str:
    return _extract_column(slide, 1)


def _title(s: dict[str, Any], _o: PptxOptions) -> str:
    return s["title"]


def _bullets(s: dict[str, Any], _o: PptxOptions) -> str:
    return format_as_bullets(s["content"])


def _empty(_s: dict[str, Any], _o: PptxOptions) -> str:
    return ""


Resolver = Callable[[dict[str, Any], PptxOptions], str]


def _rule(pattern: str, resolver: Resolver) -> tuple[re.Pattern[str], Resolver]:
    return (re.compile(pattern, re.I), resolver)


PLACEHOLDER_RULES: tuple[tuple[re.Pattern[str], Resolver], ...] = (
    _rule(r"course[_\s]?title", _title),
    _rule(r"slide[_\s]?title", _title),
    _rule(r"section[_\s]?title", _title),
    _rule(r"competency[_\s]?title", _title),
    _rule(r"activity[_\s]?title", _title),
    _rule(r"^title$", _title),
    _rule(r"heading", _title),
    _rule(r"main[_\s]?content", _bullets),
    _rule(r"section[_\s]?description", _bullets),
    _rule(r"content|body", _bullets),
    _rule(r"bullets?|points?", _bullets),
    _rule(r"learning[_\s]?objectives", _bullets),
    _rule(r"activity[_\s]?instructions", lambda s, o: format_as_numbered(s["content"])),
    _rule(r"discussion[_\s]?points", _bullets),
    _rule(r"quote[_\s]?text|quotation", lambda s, o: extract_quote_text(s)),
    _rule(r"attribution|author|source", lambda s, o: extract_attribution(s)),
    _rule(r"big[_\s]?text[_\s]?content", lambda s, o: format_big_text(s)),
    _rule(r"left[_\s]?column|column[_\s]?1|first[_\s]?column", lambda s, o: extract_left_column(s)),
    _rule(r"right[_\s]?column|column[_\s]?2|second[_\s]?column", lambda s, o: extract_right_column(s)),
    _rule(r"discussion[_\s]?prompt|prompt|question", _title),
    _rule(r"teaching[_\s]?notes", lambda s, o: s.get("notes") or ""),
    _rule(r"competency[_\s]?description", lambda s, o: "\n".join(s["content"])),
    _rule(r"time[_\s]?estimate", _empty),
    _rule(r"materials[_\s]?needed", _empty),
    _rule(r"date|course[_\s]?date", lambda s, o: o.date_text()),
    _rule(r"subtitle|course[_\s]?subtitle", lambda s, o: o.subtitle or ""),
    _rule(r"instructor[_\s]?name", _empty),
    _rule(r"image[_\s]?caption", _empty),
)


def resolve_placeholder(tag: str, slide: dict[str, Any], options: PptxOptions) -> str:
    inner = tag[2:-2] if tag.startswith("{{") and tag.endswith("}}") else tag
    for pattern, resolver in PLACEHOLDER_RULES:
        if pattern.search(inner):
            return resolver(slide, options)
    return ""


def populate_placeholders(placeholders: list[str], slide: dict[str, Any], options: PptxOptions) -> dict[str, str]:
    """Map every tag to its substitution; unknown tags map to ""."""
    return {tag: resolve_placeholder(tag, slide, options) for tag in placeholders}


# ---------------------------------------------------------------------------
# Substitution in slide XML
# ---------------------------------------------------------------------------

_RUN_RE = re.compile(
    r"<a:r>(?P<rpr><a:rPr\b[^>]*/>|<a:rPr\b[^>]*(?<!/)>.*?</a:rPr>)?(?P<topen><a:t(?:\s[^>]*)?>)(?P<text>[^<]*)</a:t></a:r>",
    re.S,
)


def _split_multiline_runs(xml: str) -> str:
    """Turn newlines inside run text into <a:br/> breaks carrying the run's properties."""

    def repl(m: re.Match[str]) -> str:
        text = m.group("text")
        if "\n" not in text:
            return m.group(0)
        rpr = m.group("rpr") or ""
        topen = m.group("topen")
        pieces = [f"<a:r>{rpr}{topen}{line}</a:t></a:r>" for line in text.split("\n")]
        br = f"<a:br>{rpr}</a:br>" if rpr else "<a:br/>"
        return br.join(pieces)

    return _RUN_RE.sub(repl, xml)


def apply_replacements(xml: str, replacements: dict[str, str]) -> str:
    for tag, value in replacements.items():
        xml = xml.replace(tag, xml_escape(value))
    leftover = TAG_RE.findall(xml)
    if leftover:
        logger.warning("clearing %d unmapped placeholder(s): %s", len(leftover), ", ".join(sorted(set(leftover))))
        xml = TAG_RE.sub("", xml)
    return _split_multiline_runs(xml)
